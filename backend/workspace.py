"""
Sandboxed workspace I/O for wireview.

Uploaded model files and their converted mesh modules live under the
workspace directory (WIREVIEW_WORKSPACE). Every path handed in from outside
is resolved against its sandbox root and rejected if it escapes.

Bundled shapes ship read-only next to this module in shapes/.
"""

import logging
import mimetypes
import shutil
from pathlib import Path

import serializer
from mesh import Mesh

logger = logging.getLogger(__name__)

SHAPES_DIR = Path(__file__).resolve().parent / "shapes"

# Dynamic pointer — changed via set_workspace_dir()
_active_workspace_dir: Path = Path(__file__).resolve().parent.parent / ".workspace"


# ---------------------------------------------------------------------------
# Public accessors
# ---------------------------------------------------------------------------

def get_workspace_dir() -> Path:
    """Return the currently active workspace directory."""
    return _active_workspace_dir


def get_uploads_dir() -> Path:
    return _active_workspace_dir / "uploads"


def get_models_dir() -> Path:
    """Directory holding converted ``.js`` mesh modules."""
    return _active_workspace_dir / "models"


def get_processed_dir(filename: str) -> Path:
    """Per-upload conversion directory (stem_ext form to avoid collisions).

    Example: teapot.obj → models/teapot_obj/
    """
    p = Path(filename)
    return get_models_dir() / f"{p.stem}_{p.suffix.lstrip('.')}"


def set_workspace_dir(path: Path) -> None:
    """Point all workspace I/O at ``path``, creating it if needed."""
    global _active_workspace_dir
    path.mkdir(parents=True, exist_ok=True)
    _active_workspace_dir = path
    logger.info("Workspace set to: %s", path)


# ---------------------------------------------------------------------------
# Sandboxed path resolution
# ---------------------------------------------------------------------------

def _safe_child(root: Path, filename: str) -> Path:
    """Resolve a filename inside root and reject directory traversal."""
    resolved = (root / filename).resolve()
    if not resolved.is_relative_to(root.resolve()):
        raise PermissionError(f"Path escapes sandbox: {filename}")
    return resolved


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------

def save_upload(filename: str, data: bytes) -> Path:
    """Save uploaded model bytes to the uploads directory."""
    path = _safe_child(get_uploads_dir(), filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


def read_upload(filename: str) -> bytes:
    path = _safe_child(get_uploads_dir(), filename)
    if not path.exists():
        raise FileNotFoundError(f"Upload not found: {filename}")
    return path.read_bytes()


def list_uploads() -> list[str]:
    uploads = get_uploads_dir()
    if not uploads.exists():
        return []
    return sorted(
        str(p.relative_to(uploads))
        for p in uploads.rglob("*")
        if p.is_file()
    )


def get_upload_info(filename: str) -> dict:
    path = _safe_child(get_uploads_dir(), filename)
    if not path.exists():
        raise FileNotFoundError(f"Upload not found: {filename}")
    mime, _ = mimetypes.guess_type(str(path))
    return {
        "filename": filename,
        "size": path.stat().st_size,
        "mime_type": mime or "application/octet-stream",
    }


def clear_uploads() -> None:
    """Remove all uploads and their converted modules."""
    for directory in (get_uploads_dir(), get_models_dir()):
        if directory.exists():
            shutil.rmtree(directory)
        directory.mkdir(parents=True, exist_ok=True)


# ---------------------------------------------------------------------------
# Shape library
# ---------------------------------------------------------------------------

def list_shapes() -> list[str]:
    """Names of the bundled mesh modules (without .js)."""
    if not SHAPES_DIR.exists():
        return []
    return sorted(p.stem for p in SHAPES_DIR.glob("*.js"))


def load_shape(name: str) -> Mesh:
    path = _safe_child(SHAPES_DIR, f"{name}.js")
    if not path.is_file():
        raise FileNotFoundError(f"Shape not found: {name}")
    return serializer.read(path)
