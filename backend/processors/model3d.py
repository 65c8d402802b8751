"""
3D Model conversion — .obj/.gltf/.glb/.dae/.fbx → canonical ``vs``/``fs`` module.

Pipeline: detect format → parse → validate → require vertices → normalize
→ serialize. Every parser error propagates; only the outermost
``Model3DProcessor.process`` turns it into an error result.
"""

import asyncio
import hashlib
import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Awaitable, Callable

import serializer
from mesh import Bounds, Mesh, MeshError, compute_bounds, normalize_mesh, unique_edges
from processors import (
    MeshFormat,
    ProcessedOutput,
    ProcessorResult,
    detect_format,
    get_processor,
)

logger = logging.getLogger(__name__)

DEFAULT_TARGET_SIZE = 1.5


@dataclass
class Conversion:
    mesh: Mesh
    format: MeshFormat
    source_bounds: Bounds
    scale: float


def load_mesh(data: bytes, filename: str,
              base_dir: Path | None = None) -> tuple[Mesh, MeshFormat]:
    """Parse raw file bytes with the processor matching the file's format."""
    fmt = detect_format(filename, data)
    proc = get_processor(fmt)
    mesh = proc.parse(data, base_dir=base_dir).validate()
    logger.info("Parsed %s as %s: %d vertices, %d faces",
                filename, fmt.value.upper(), mesh.vertex_count, mesh.face_count)
    return mesh, fmt


def convert_bytes(data: bytes, filename: str,
                  target_size: float = DEFAULT_TARGET_SIZE,
                  base_dir: Path | None = None) -> Conversion:
    mesh, fmt = load_mesh(data, filename, base_dir)
    mesh.require_vertices()
    bounds = compute_bounds(mesh)
    scale = normalize_mesh(mesh, target_size)
    return Conversion(mesh, fmt, bounds, scale)


def convert_file(path: Path, target_size: float = DEFAULT_TARGET_SIZE) -> Conversion:
    # Reject the extension before touching the file
    detect_format(path.name)
    return convert_bytes(path.read_bytes(), path.name, target_size,
                         base_dir=path.parent)


# ------------------------------------------------------------------
# Processor
# ------------------------------------------------------------------

class Model3DProcessor:
    name = "3D Model Converter"

    @classmethod
    def process(cls, source_path: Path, output_dir: Path, filename: str,
                target_size: float = DEFAULT_TARGET_SIZE) -> ProcessorResult:
        try:
            conversion = convert_file(source_path, target_size)
            out_name = f"{Path(filename).stem}.js"
            serializer.write(conversion.mesh, output_dir / out_name)
        except MeshError as e:
            return ProcessorResult(
                source_filename=filename,
                processor_name=cls.name,
                status="error",
                error=f"Parse error: {e}",
            )
        except OSError as e:
            return ProcessorResult(
                source_filename=filename,
                processor_name=cls.name,
                status="error",
                error=f"I/O error: {e}",
            )

        mesh = conversion.mesh
        metadata = {
            "format": conversion.format.value,
            "vertex_count": mesh.vertex_count,
            "face_count": mesh.face_count,
            "edge_count": len(unique_edges(mesh.faces)),
            "source_bounds": conversion.source_bounds.to_dict(),
            "scale": round(conversion.scale, 6),
            "target_size": target_size,
        }
        warnings = []
        if mesh.face_count == 0:
            warnings.append("Model has vertices but no faces")

        return ProcessorResult(
            source_filename=filename,
            processor_name=cls.name,
            status="success",
            outputs=[
                ProcessedOutput(
                    out_name,
                    f"Mesh module ({mesh.vertex_count} vertices, "
                    f"{mesh.face_count} faces)",
                    "text/javascript",
                ),
            ],
            metadata=metadata,
            warnings=warnings,
        )


# ---------------------------------------------------------------------------
# Pipeline runner
# ---------------------------------------------------------------------------

StatusCallback = Callable[[str, str], Awaitable[None]]  # (status, detail)


async def run_pipeline(
    source_path: Path,
    output_dir: Path,
    filename: str,
    target_size: float = DEFAULT_TARGET_SIZE,
    on_status: StatusCallback | None = None,
) -> ProcessorResult:
    """Convert one uploaded model off the event loop.

    Results are cached via manifest.json, keyed by the source content hash
    and the target size.
    """
    manifest_path = output_dir / "manifest.json"
    if manifest_path.exists():
        try:
            manifest = json.loads(manifest_path.read_text())
        except json.JSONDecodeError:
            logger.warning("Ignoring corrupt manifest %s", manifest_path)
        else:
            if (manifest.get("source_sha256") == _file_digest(source_path)
                    and manifest.get("metadata", {}).get("target_size") == target_size
                    and all((output_dir / o["filename"]).is_file()
                            for o in manifest.get("outputs", []))):
                logger.info("Cache hit for %s, skipping processing", filename)
                return _manifest_to_result(manifest)

    if on_status:
        await on_status("processing", f"Converting {filename}...")

    output_dir.mkdir(parents=True, exist_ok=True)
    result = await asyncio.to_thread(
        Model3DProcessor.process, source_path, output_dir, filename, target_size)

    for out in result.outputs:
        out_path = output_dir / out.filename
        if out_path.exists():
            out.size = out_path.stat().st_size

    if result.status == "success":
        manifest = {
            "source_filename": result.source_filename,
            "processor_name": result.processor_name,
            "status": result.status,
            "source_size": source_path.stat().st_size,
            "source_sha256": _file_digest(source_path),
            "outputs": [asdict(o) for o in result.outputs],
            "metadata": result.metadata,
            "warnings": result.warnings,
        }
        manifest_path.write_text(json.dumps(manifest, indent=2))

    if on_status:
        status_detail = f"{Model3DProcessor.name}: {result.status}"
        if result.error:
            status_detail += f" — {result.error}"
        await on_status("processing_done", status_detail)

    return result


def _file_digest(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def _manifest_to_result(manifest: dict) -> ProcessorResult:
    """Reconstruct a ProcessorResult from a cached manifest."""
    return ProcessorResult(
        source_filename=manifest["source_filename"],
        processor_name=manifest["processor_name"],
        status=manifest["status"],
        outputs=[ProcessedOutput(**o) for o in manifest.get("outputs", [])],
        metadata=manifest.get("metadata", {}),
        warnings=manifest.get("warnings", []),
    )
