"""Shared fixtures: in-memory builders for binary model containers."""

import json
import struct
import zlib

import pytest

import workspace

FBX_MAGIC = b"Kaydara FBX Binary  \x00"

_ARRAY_FMT = {"f": "f", "d": "d", "l": "q", "i": "i", "b": "B"}


def build_glb(document: dict, bin_chunk: bytes | None = None) -> bytes:
    json_bytes = json.dumps(document).encode("utf-8")
    json_bytes += b" " * (-len(json_bytes) % 4)
    chunks = struct.pack("<II", len(json_bytes), 0x4E4F534A) + json_bytes
    if bin_chunk is not None:
        padded = bin_chunk + b"\x00" * (-len(bin_chunk) % 4)
        chunks += struct.pack("<II", len(padded), 0x004E4942) + padded
    header = struct.pack("<III", 0x46546C67, 2, 12 + len(chunks))
    return header + chunks


def _encode_property(code: str, value, compress: bool) -> bytes:
    if code in _ARRAY_FMT:
        raw = struct.pack(f"<{len(value)}{_ARRAY_FMT[code]}", *value)
        payload = zlib.compress(raw) if compress else raw
        return (code.encode() + struct.pack("<III", len(value), int(compress), len(payload))
                + payload)
    if code in ("S", "R"):
        data = value.encode("utf-8") if isinstance(value, str) else value
        return code.encode() + struct.pack("<I", len(data)) + data
    fmt = {"Y": "<h", "C": "<B", "I": "<i", "F": "<f", "D": "<d", "L": "<q"}[code]
    return code.encode() + struct.pack(fmt, value)


def _encode_node(node: tuple, offset: int, is64: bool, compress: bool) -> bytes:
    name, props, children = node
    name_bytes = name.encode("ascii")
    header_size = (24 if is64 else 12) + 1 + len(name_bytes)
    prop_bytes = b"".join(_encode_property(c, v, compress) for c, v in props)

    cursor = offset + header_size + len(prop_bytes)
    child_bytes = b""
    for child in children:
        encoded = _encode_node(child, cursor, is64, compress)
        child_bytes += encoded
        cursor += len(encoded)
    if children:
        child_bytes += b"\x00" * (25 if is64 else 13)

    end_offset = offset + header_size + len(prop_bytes) + len(child_bytes)
    fmt = "<QQQ" if is64 else "<III"
    header = struct.pack(fmt, end_offset, len(props), len(prop_bytes))
    return header + bytes([len(name_bytes)]) + name_bytes + prop_bytes + child_bytes


def build_fbx(nodes: list[tuple], version: int = 7400, compress: bool = False) -> bytes:
    """Encode (name, [(type_code, value), ...], [children]) tuples as binary FBX."""
    is64 = version >= 7500
    data = FBX_MAGIC + b"\x1a\x00" + struct.pack("<I", version)
    for node in nodes:
        data += _encode_node(node, len(data), is64, compress)
    data += b"\x00" * (25 if is64 else 13)
    return data + b"\xfa\xbc" * 8


def fbx_mesh_geometry(vertices: list[float], polygon_index: list[int],
                      geom_id: int = 1000, kind: str = "Mesh") -> tuple:
    return (
        "Geometry",
        [("L", geom_id), ("S", "Cube\x00\x01Geometry"), ("S", kind)],
        [
            ("Vertices", [("d", vertices)], []),
            ("PolygonVertexIndex", [("i", polygon_index)], []),
        ],
    )


@pytest.fixture
def make_glb():
    return build_glb


@pytest.fixture
def make_fbx():
    return build_fbx


@pytest.fixture
def fbx_geometry():
    return fbx_mesh_geometry


@pytest.fixture
def triangle_obj() -> str:
    return "v 0 0 0\nv 1 0 0\nv 0 1 0\nf 1 2 3\n"


@pytest.fixture
def workspace_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(workspace, "_active_workspace_dir", workspace.get_workspace_dir())
    root = tmp_path / "workspace"
    workspace.set_workspace_dir(root)
    return root
