"""
Format ingestion layer — one parser per 3D file format, one output type.

Each processor turns raw file bytes into a canonical ``mesh.Mesh``. The
processor for a file is selected by a ``MeshFormat`` tag derived from the
file extension (and, for glTF, the GLB magic), never by inspecting the
parsed objects.
"""

import importlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from mesh import Mesh, UnsupportedFormatError

logger = logging.getLogger(__name__)

_GLB_SIGNATURE = b"glTF"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

class MeshFormat(str, Enum):
    OBJ = "obj"
    GLTF = "gltf"
    GLB = "glb"
    DAE = "dae"
    FBX = "fbx"


_EXTENSION_FORMATS = {
    ".obj": MeshFormat.OBJ,
    ".gltf": MeshFormat.GLTF,
    ".glb": MeshFormat.GLB,
    ".dae": MeshFormat.DAE,
    ".fbx": MeshFormat.FBX,
}


@dataclass
class ProcessedOutput:
    filename: str       # e.g. "teapot.js"
    description: str    # human-readable summary
    mime_type: str
    size: int = 0


@dataclass
class ProcessorResult:
    source_filename: str
    processor_name: str
    status: str  # "success" | "error"
    outputs: list[ProcessedOutput] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None


# ---------------------------------------------------------------------------
# Base processor
# ---------------------------------------------------------------------------

class BaseProcessor:
    name: str = "base"
    formats: frozenset[MeshFormat] = frozenset()

    @classmethod
    def parse(cls, data: bytes, base_dir: Path | None = None) -> Mesh:
        """Decode one complete file into a mesh.

        ``base_dir`` is the source file's directory, for formats that may
        reference sibling files.
        """
        raise NotImplementedError

    @classmethod
    def parse_file(cls, path: Path) -> Mesh:
        return cls.parse(path.read_bytes(), base_dir=path.parent)


def decode_text(data: bytes | str) -> str:
    """Decode a text-format file, tolerating a BOM and stray bytes."""
    if isinstance(data, str):
        return data
    return data.decode("utf-8-sig", errors="replace")


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_registry: dict[MeshFormat, type[BaseProcessor]] = {}

_PROCESSOR_MODULES = [
    "processors.obj",
    "processors.gltf",
    "processors.dae",
    "processors.fbx",
]


def _auto_register():
    """Import each parser module and register its processor classes."""
    for module_name in _PROCESSOR_MODULES:
        mod = importlib.import_module(module_name)
        for attr_name in dir(mod):
            attr = getattr(mod, attr_name)
            if (
                isinstance(attr, type)
                and issubclass(attr, BaseProcessor)
                and attr is not BaseProcessor
            ):
                for fmt in attr.formats:
                    _registry[fmt] = attr
                logger.debug("Processor registered: %s", attr.name)


def supported_extensions() -> list[str]:
    return sorted(_EXTENSION_FORMATS)


def detect_format(filename: str, data: bytes | None = None) -> MeshFormat:
    """Pick the format tag for a file from its extension.

    glTF files are re-tagged by signature, so a binary ``.gltf`` or a JSON
    ``.glb`` still reaches the right decoder.
    """
    ext = Path(filename).suffix.lower()
    fmt = _EXTENSION_FORMATS.get(ext)
    if fmt is None:
        raise UnsupportedFormatError(
            f"Unsupported format: {ext or filename!r} "
            f"(supported: {', '.join(supported_extensions())})")
    if fmt in (MeshFormat.GLTF, MeshFormat.GLB) and data is not None:
        fmt = MeshFormat.GLB if data[:4] == _GLB_SIGNATURE else MeshFormat.GLTF
    return fmt


def get_processor(fmt: MeshFormat) -> type[BaseProcessor]:
    try:
        return _registry[fmt]
    except KeyError:
        raise UnsupportedFormatError(f"No processor for format: {fmt.value}") from None


# Auto-register on import
_auto_register()
