"""
Collada (.dae) parser built on the minimal XML tree in ``xml_parser``.

Reads every ``<geometry><mesh>`` under ``<library_geometries>``: positions
come from the ``<vertices>`` POSITION source, faces from the first
``<triangles>``, ``<polylist>`` or ``<polygons>`` block.
"""

import logging
from pathlib import Path

from mesh import MalformedInputError, Mesh, MissingChunkError, fan_triangulate
from processors import BaseProcessor, MeshFormat, decode_text
from processors.xml_parser import XmlElement, parse_xml

logger = logging.getLogger(__name__)

_PRIMITIVE_TAGS = ("triangles", "polylist", "polygons")


def _floats(text: str, what: str) -> list[float]:
    try:
        return [float(t) for t in text.split()]
    except ValueError as e:
        raise MalformedInputError(f"Bad number in {what}: {e}") from e


def _ints(text: str, what: str) -> list[int]:
    try:
        return [int(t) for t in text.split()]
    except ValueError as e:
        raise MalformedInputError(f"Bad index in {what}: {e}") from e


def _source_arrays(mesh: XmlElement) -> dict[str, list[float]]:
    sources = {}
    for source in mesh.findall("source"):
        source_id = source.get("id")
        float_array = source.find("float_array")
        if source_id and float_array is not None and float_array.text:
            sources[source_id] = _floats(float_array.text, f"source {source_id}")
    return sources


def _position_source_id(mesh: XmlElement) -> str | None:
    vertices = mesh.find("vertices")
    if vertices is None:
        return None
    for inp in vertices.findall("input"):
        if inp.get("semantic") == "POSITION":
            return (inp.get("source") or "").lstrip("#")
    return None


def _input_layout(primitive: XmlElement) -> tuple[int, int]:
    """Return (stride, offset of the VERTEX input) for interleaved <p> data."""
    stride = 1
    vertex_offset = 0
    for inp in primitive.findall("input"):
        try:
            offset = int(inp.get("offset") or 0)
        except ValueError as e:
            raise MalformedInputError(f"Bad input offset: {e}") from e
        stride = max(stride, offset + 1)
        if inp.get("semantic") == "VERTEX":
            vertex_offset = offset
    return stride, vertex_offset


def _polylist_faces(indices: list[int], vcounts: list[int],
                    stride: int, vertex_input: int) -> list[list[int]]:
    faces = []
    pos = 0
    for vcount in vcounts:
        end = pos + vcount * stride
        if end > len(indices):
            raise MalformedInputError(
                f"<p> has {len(indices)} indices, <vcount> needs at least {end}")
        face = [indices[pos + v * stride + vertex_input] for v in range(vcount)]
        faces.extend(fan_triangulate(face))
        pos = end
    return faces


def _triangle_faces(indices: list[int], stride: int,
                    vertex_input: int) -> list[list[int]]:
    group = stride * 3
    if len(indices) % group:
        raise MalformedInputError(
            f"<triangles> index count {len(indices)} is not a multiple of {group}")
    return [
        [indices[i + vertex_input],
         indices[i + stride + vertex_input],
         indices[i + 2 * stride + vertex_input]]
        for i in range(0, len(indices), group)
    ]


def _primitive_faces(primitive: XmlElement) -> list[list[int]]:
    stride, vertex_input = _input_layout(primitive)

    if primitive.tag == "polygons" and primitive.find("vcount") is None:
        faces = []
        for p in primitive.findall("p"):
            indices = _ints(p.text, "<polygons><p>")
            faces.extend(fan_triangulate(indices[vertex_input::stride]))
        return faces

    p = primitive.find("p")
    if p is None or not p.text:
        return []
    indices = _ints(p.text, f"<{primitive.tag}><p>")

    vcount = primitive.find("vcount")
    if vcount is not None and vcount.text:
        return _polylist_faces(indices, _ints(vcount.text, "<vcount>"),
                               stride, vertex_input)
    return _triangle_faces(indices, stride, vertex_input)


class DaeProcessor(BaseProcessor):
    name = "Collada Parser"
    formats = frozenset({MeshFormat.DAE})

    @classmethod
    def parse(cls, data: bytes | str, base_dir: Path | None = None) -> Mesh:
        root = parse_xml(decode_text(data))
        if root is None or root.tag != "COLLADA":
            raise MissingChunkError("Invalid DAE file: No COLLADA root element")

        result = Mesh()
        lib_geom = root.find("library_geometries")
        if lib_geom is None:
            logger.warning("No geometry found in DAE file")
            return result

        for geometry in lib_geom.iter("geometry"):
            mesh = geometry.find("mesh")
            if mesh is None:
                continue

            source_id = _position_source_id(mesh)
            positions = _source_arrays(mesh).get(source_id or "", [])
            if not positions:
                logger.warning("Geometry %s has no position source, skipped",
                               geometry.get("id", "?"))
                continue

            faces: list[list[int]] = []
            for tag in _PRIMITIVE_TAGS:
                primitive = mesh.find(tag)
                if primitive is not None:
                    faces = _primitive_faces(primitive)
                    break
            result.extend(Mesh.from_flat(positions, faces))

        return result
