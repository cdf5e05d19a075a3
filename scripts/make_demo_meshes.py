from __future__ import annotations

import os

from quadflow import saddle_field_mesh, save_ply, uniform_field_mesh, vortex_field_mesh


ART = os.environ.get("ARTIFACTS_DIR", "artifacts")
os.makedirs(ART, exist_ok=True)


def main() -> None:
    meshes = {
        "vortex": vortex_field_mesh(n=51),
        "saddle": saddle_field_mesh(n=51),
        "uniform": uniform_field_mesh(n=21, direction=(1.0, 0.5), scalar=1.0),
    }
    for name, mesh in meshes.items():
        path = os.path.join(ART, f"{name}.ply")
        save_ply(mesh, path)
        print(f"wrote {path}: {mesh!r}")


if __name__ == "__main__":
    main()
