"""
FBX parser — binary node tree (6100–7700+) and ASCII geometry blocks.

Binary files are decoded into a transient ``FbxNode`` tree by a recursive
reader that threads one ``BinaryReader`` cursor through every call. Only
``Objects/Geometry`` nodes of class ``Mesh`` are turned into geometry.
"""

import logging
import re
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from mesh import (
    MalformedInputError,
    Mesh,
    UnsupportedFormatError,
    decode_polygon_indices,
)
from processors import BaseProcessor, MeshFormat, decode_text
from processors.binary_reader import BinaryReader

logger = logging.getLogger(__name__)

FBX_BINARY_MAGIC = b"Kaydara FBX Binary"
_VERSION_OFFSET = 23
_ARRAY_FORMATS = {"f": "f", "d": "d", "l": "q", "i": "i", "b": "B"}

_ASCII_VERTICES_RE = re.compile(r"Vertices:\s*\*\d+\s*\{\s*a:\s*([\d\s.,eE+-]+)")
_ASCII_INDICES_RE = re.compile(r"PolygonVertexIndex:\s*\*\d+\s*\{\s*a:\s*([\d\s,-]+)")


@dataclass
class FbxNode:
    name: str
    properties: list = field(default_factory=list)
    children: list["FbxNode"] = field(default_factory=list)

    def find(self, name: str) -> "FbxNode | None":
        for child in self.children:
            if child.name == name:
                return child
        return None

    def iter(self, name: str) -> Iterator["FbxNode"]:
        """Depth-first search of all descendants."""
        for child in self.children:
            if child.name == name:
                yield child
            yield from child.iter(name)


def is_binary_fbx(data: bytes) -> bool:
    return data[:len(FBX_BINARY_MAGIC)] == FBX_BINARY_MAGIC


# ------------------------------------------------------------------
# FBX binary reader
# ------------------------------------------------------------------

def read_fbx_nodes(data: bytes) -> tuple[int, list[FbxNode]]:
    """Decode the top-level node list. Returns (version, nodes)."""
    reader = BinaryReader(data)
    reader.seek(_VERSION_OFFSET)
    version = reader.u32()
    is64 = version >= 7500
    sentinel_size = 25 if is64 else 13

    nodes = []
    while reader.tell() < len(reader) - sentinel_size:
        node = _read_node(reader, is64)
        if node is None:
            break
        nodes.append(node)
    return version, nodes


def _read_node(reader: BinaryReader, is64: bool) -> FbxNode | None:
    if is64:
        end_offset = reader.u64()
        num_props = reader.u64()
        prop_list_len = reader.u64()
    else:
        end_offset = reader.u32()
        num_props = reader.u32()
        prop_list_len = reader.u32()
    name_len = reader.u8()
    name = reader.raw(name_len).decode("ascii", errors="replace")

    if end_offset == 0:
        return None

    prop_start = reader.tell()
    props = [_read_property(reader) for _ in range(num_props)]
    reader.seek(prop_start + prop_list_len)

    children = []
    sentinel_size = 25 if is64 else 13
    while reader.tell() < end_offset - sentinel_size:
        child = _read_node(reader, is64)
        if child is None:
            break
        children.append(child)

    reader.seek(end_offset)
    return FbxNode(name, props, children)


def _read_property(reader: BinaryReader):
    type_code = chr(reader.u8())

    if type_code == "Y":
        return reader.i16()
    if type_code == "C":
        return reader.u8() != 0
    if type_code == "I":
        return reader.i32()
    if type_code == "F":
        return reader.f32()
    if type_code == "D":
        return reader.f64()
    if type_code == "L":
        return reader.i64()

    if type_code in _ARRAY_FORMATS:
        arr_len = reader.u32()
        encoding = reader.u32()
        comp_len = reader.u32()
        raw = reader.raw(comp_len)
        if encoding == 1:
            try:
                raw = zlib.decompress(raw)
            except zlib.error as e:
                raise MalformedInputError(f"Corrupt compressed FBX array: {e}") from e
        elif encoding != 0:
            raise UnsupportedFormatError(f"Unknown FBX array encoding: {encoding}")
        values = BinaryReader(raw).array(_ARRAY_FORMATS[type_code], arr_len)
        if type_code == "b":
            return [v != 0 for v in values]
        return values

    if type_code == "S":
        slen = reader.u32()
        return reader.raw(slen).decode("utf-8", errors="replace")

    if type_code == "R":
        rlen = reader.u32()
        return reader.raw(rlen)

    raise UnsupportedFormatError(f"Unknown FBX property type: {type_code!r}")


# ------------------------------------------------------------------
# Geometry extraction
# ------------------------------------------------------------------

def _first_list_property(node: FbxNode | None) -> list:
    if node is None or not node.properties:
        return []
    value = node.properties[0]
    return value if isinstance(value, list) else []


def extract_geometry(nodes: list[FbxNode]) -> Mesh:
    result = Mesh()
    objects_node = next((n for n in nodes if n.name == "Objects"), None)
    if objects_node is None:
        logger.warning("No Objects node found in FBX")
        return result

    for geom in objects_node.iter("Geometry"):
        if len(geom.properties) < 3 or geom.properties[2] != "Mesh":
            continue
        raw_verts = _first_list_property(geom.find("Vertices"))
        raw_indices = _first_list_property(geom.find("PolygonVertexIndex"))
        result.extend(Mesh.from_flat(raw_verts, decode_polygon_indices(raw_indices)))
    return result


def parse_ascii(text: str) -> Mesh:
    """Read the first Vertices / PolygonVertexIndex arrays of an ASCII FBX."""
    coords: list[float] = []
    faces: list[list[int]] = []

    verts_match = _ASCII_VERTICES_RE.search(text)
    if verts_match:
        try:
            coords = [float(v) for v in verts_match.group(1).split(",") if v.strip()]
        except ValueError as e:
            raise MalformedInputError(f"Bad FBX vertex value: {e}") from e

    indices_match = _ASCII_INDICES_RE.search(text)
    if indices_match:
        try:
            raw = [int(v) for v in indices_match.group(1).split(",") if v.strip()]
        except ValueError as e:
            raise MalformedInputError(f"Bad FBX polygon index: {e}") from e
        faces = decode_polygon_indices(raw)

    return Mesh.from_flat(coords, faces)


class FbxProcessor(BaseProcessor):
    name = "FBX Parser"
    formats = frozenset({MeshFormat.FBX})

    @classmethod
    def parse(cls, data: bytes, base_dir: Path | None = None) -> Mesh:
        if not is_binary_fbx(data):
            return parse_ascii(decode_text(data))
        version, nodes = read_fbx_nodes(data)
        logger.debug("FBX binary version %d, %d top-level nodes", version, len(nodes))
        return extract_geometry(nodes)
