"""
Wavefront OBJ parser — ``v`` and ``f`` records only.

Faces keep their native arity; texture/normal references are dropped.
"""

from pathlib import Path

from mesh import MalformedInputError, Mesh
from processors import BaseProcessor, MeshFormat, decode_text


class ObjProcessor(BaseProcessor):
    name = "OBJ Parser"
    formats = frozenset({MeshFormat.OBJ})

    @classmethod
    def parse(cls, data: bytes | str, base_dir: Path | None = None) -> Mesh:
        coords: list[float] = []
        faces: list[list[int]] = []

        for lineno, line in enumerate(decode_text(data).split("\n"), 1):
            line = line.strip()
            try:
                if line.startswith("v "):
                    parts = line.split()
                    if len(parts) < 4:
                        raise ValueError(f"expected 3 coordinates, got {len(parts) - 1}")
                    coords.extend(float(p) for p in parts[1:4])
                elif line.startswith("f "):
                    faces.append([
                        _resolve_index(int(vert_str.split("/")[0]), len(coords) // 3)
                        for vert_str in line.split()[1:]
                    ])
            except ValueError as e:
                raise MalformedInputError(f"OBJ line {lineno}: {e}") from e

        return Mesh.from_flat(coords, faces)


def _resolve_index(raw: int, vertex_count: int) -> int:
    # 1-based; negative values count back from the last vertex read so far
    if raw < 0:
        return vertex_count + raw
    return raw - 1
