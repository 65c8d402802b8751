"""
glTF 2.0 parser — JSON ``.gltf`` and binary ``.glb`` containers.

Only triangle geometry is read: POSITION accessors become vertices and the
``indices`` accessor (or the implicit 0,1,2 / 3,4,5 ... order) becomes faces.
"""

import base64
import binascii
import json
import logging
from pathlib import Path

from mesh import (
    MalformedInputError,
    Mesh,
    MissingChunkError,
    UnsupportedFormatError,
)
from processors import BaseProcessor, MeshFormat
from processors.binary_reader import BinaryReader

logger = logging.getLogger(__name__)

GLB_MAGIC = 0x46546C67
CHUNK_JSON = 0x4E4F534A
CHUNK_BIN = 0x004E4942

# componentType -> (struct format char, byte width)
_COMPONENT_TYPES = {
    5120: ("b", 1),  # BYTE
    5121: ("B", 1),  # UNSIGNED_BYTE
    5122: ("h", 2),  # SHORT
    5123: ("H", 2),  # UNSIGNED_SHORT
    5125: ("I", 4),  # UNSIGNED_INT
    5126: ("f", 4),  # FLOAT
}

_TYPE_SIZES = {"SCALAR": 1, "VEC2": 2, "VEC3": 3, "VEC4": 4,
               "MAT2": 4, "MAT3": 9, "MAT4": 16}


# ------------------------------------------------------------------
# Containers
# ------------------------------------------------------------------

def _load_json(raw: bytes) -> dict:
    try:
        return json.loads(raw.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedInputError(f"Invalid glTF JSON: {e}") from e


def read_glb(data: bytes) -> tuple[dict, bytes | None]:
    """Split a GLB container into its JSON document and BIN chunk."""
    reader = BinaryReader(data)
    magic = reader.u32()
    if magic != GLB_MAGIC:
        raise UnsupportedFormatError("Not a valid GLB file")
    version = reader.u32()
    total_length = reader.u32()
    logger.debug("GLB version %d, %d bytes", version, total_length)

    end = min(total_length, len(reader))
    json_data = None
    bin_chunk = None
    while reader.tell() + 8 <= end:
        chunk_length = reader.u32()
        chunk_type = reader.u32()
        payload = reader.raw(chunk_length)
        if chunk_type == CHUNK_JSON and json_data is None:
            json_data = _load_json(payload)
        elif chunk_type == CHUNK_BIN and bin_chunk is None:
            bin_chunk = payload

    if json_data is None:
        raise MissingChunkError("No JSON chunk found in GLB file")
    return json_data, bin_chunk


def load_buffers(gltf: dict, bin_chunk: bytes | None = None,
                 base_dir: Path | None = None) -> list[bytes | None]:
    """Resolve every declared buffer to bytes.

    An undefined entry (None) is only an error if an accessor reads it.
    """
    buffers: list[bytes | None] = []
    for i, buf in enumerate(gltf.get("buffers", [])):
        uri = buf.get("uri")
        if not uri:
            buffers.append(bin_chunk if i == 0 else None)
        elif uri.startswith("data:"):
            _, _, encoded = uri.partition(",")
            try:
                buffers.append(base64.b64decode(encoded))
            except binascii.Error as e:
                raise MalformedInputError(f"Buffer {i}: bad data URI: {e}") from e
        elif base_dir is None:
            raise MissingChunkError(
                f"Buffer {i} references external file {uri!r} "
                "but no source directory is known")
        else:
            buf_path = base_dir / uri
            if not buf_path.is_file():
                raise MissingChunkError(f"Buffer {i}: file not found: {buf_path}")
            buffers.append(buf_path.read_bytes())
    return buffers


# ------------------------------------------------------------------
# Accessors
# ------------------------------------------------------------------

def read_accessor(gltf: dict, buffers: list[bytes | None], acc_idx: int) -> list:
    """Decode one accessor into a flat list of numbers."""
    accessors = gltf.get("accessors", [])
    if not isinstance(acc_idx, int) or not 0 <= acc_idx < len(accessors):
        raise MalformedInputError(f"Accessor {acc_idx} does not exist")
    acc = accessors[acc_idx]

    comp_type = acc.get("componentType")
    if comp_type not in _COMPONENT_TYPES:
        raise UnsupportedFormatError(
            f"Accessor {acc_idx}: unsupported componentType {comp_type}")
    fmt_char, comp_size = _COMPONENT_TYPES[comp_type]
    n_components = _TYPE_SIZES.get(acc.get("type"))
    if n_components is None:
        raise UnsupportedFormatError(
            f"Accessor {acc_idx}: unsupported type {acc.get('type')!r}")
    count = acc.get("count", 0)

    bv_idx = acc.get("bufferView")
    if bv_idx is None:
        # No backing data: all components are zero
        return [0] * (count * n_components)

    buffer_views = gltf.get("bufferViews", [])
    if not 0 <= bv_idx < len(buffer_views):
        raise MalformedInputError(f"Accessor {acc_idx}: bufferView {bv_idx} does not exist")
    bv = buffer_views[bv_idx]

    buf_idx = bv.get("buffer", 0)
    if not 0 <= buf_idx < len(buffers) or buffers[buf_idx] is None:
        raise MissingChunkError(f"bufferView {bv_idx}: buffer {buf_idx} has no data")

    byte_offset = bv.get("byteOffset", 0) + acc.get("byteOffset", 0)
    stride = bv.get("byteStride") or comp_size * n_components

    reader = BinaryReader(buffers[buf_idx])
    values: list = []
    for i in range(count):
        reader.seek(byte_offset + i * stride)
        values.extend(reader.array(fmt_char, n_components))
    return values


# ------------------------------------------------------------------
# Processor
# ------------------------------------------------------------------

class GltfProcessor(BaseProcessor):
    name = "glTF Parser"
    formats = frozenset({MeshFormat.GLTF, MeshFormat.GLB})

    @classmethod
    def parse(cls, data: bytes, base_dir: Path | None = None) -> Mesh:
        if len(data) >= 4 and int.from_bytes(data[:4], "little") == GLB_MAGIC:
            gltf, bin_chunk = read_glb(data)
        else:
            gltf, bin_chunk = _load_json(data), None
        buffers = load_buffers(gltf, bin_chunk, base_dir)
        return cls.extract_mesh(gltf, buffers)

    @classmethod
    def extract_mesh(cls, gltf: dict, buffers: list[bytes | None]) -> Mesh:
        coords: list[float] = []
        faces: list[list[int]] = []
        vertex_offset = 0

        for mesh in gltf.get("meshes", []):
            for prim in mesh.get("primitives", []):
                attrs = prim.get("attributes", {})
                if "POSITION" not in attrs:
                    continue
                pos_data = read_accessor(gltf, buffers, attrs["POSITION"])
                n_verts = len(pos_data) // 3
                coords.extend(float(v) for v in pos_data[:n_verts * 3])

                idx_acc = prim.get("indices")
                if idx_acc is not None:
                    idx_data = read_accessor(gltf, buffers, idx_acc)
                    for i in range(0, len(idx_data) - 2, 3):
                        faces.append([int(idx) + vertex_offset
                                      for idx in idx_data[i:i + 3]])
                else:
                    for i in range(0, n_verts - 2, 3):
                        faces.append([vertex_offset + i,
                                      vertex_offset + i + 1,
                                      vertex_offset + i + 2])

                vertex_offset += n_verts

        return Mesh.from_flat(coords, faces)
