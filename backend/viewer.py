"""
Viewer session state — the one mesh the wireframe renderer is drawing.

A session owns its Mesh and the edge list derived from it. Each successful
load replaces both wholesale; a failed load only updates the status line.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

import serializer
import workspace
from mesh import Mesh, MeshError, normalize_mesh, unique_edges
from processors import ProcessorResult

logger = logging.getLogger(__name__)


@dataclass
class ViewerSession:
    target_size: float = 0.5
    mesh: Mesh | None = None
    edges: list[tuple[int, int]] = field(default_factory=list)
    source_name: str | None = None
    module_path: Path | None = None  # converted module backing the mesh, if any
    status: str = "No model loaded"

    def _install(self, mesh: Mesh, source_name: str,
                 module_path: Path | None = None) -> None:
        self.mesh = mesh
        self.edges = unique_edges(mesh.faces)
        self.source_name = source_name
        self.module_path = module_path
        self.status = (f"Loaded {source_name}: {mesh.vertex_count} vertices, "
                       f"{mesh.face_count} faces, {len(self.edges)} edges")
        logger.info(self.status)

    def _fail(self, source_name: str, error: Exception | str) -> bool:
        self.status = f"Failed to load {source_name}: {error}"
        logger.warning(self.status)
        return False

    def load_conversion(self, result: ProcessorResult, output_dir: Path) -> bool:
        """Show the module a conversion wrote, fitted to the viewer size.

        A failed conversion keeps the current mesh.
        """
        name = result.source_filename
        if result.status != "success" or not result.outputs:
            return self._fail(name, result.error or "conversion produced no module")
        module_path = output_dir / result.outputs[0].filename
        try:
            mesh = serializer.read(module_path).require_vertices()
        except (MeshError, OSError) as e:
            return self._fail(name, e)
        normalize_mesh(mesh, self.target_size)
        self._install(mesh, name, module_path)
        return True

    def load_module(self, filename: str, text: str) -> bool:
        """Load an already-converted ``vs``/``fs`` module as data."""
        try:
            mesh = serializer.loads(text).require_vertices()
        except MeshError as e:
            return self._fail(filename, e)
        self._install(mesh, filename)
        return True

    def load_shape(self, name: str) -> bool:
        try:
            mesh = workspace.load_shape(name).require_vertices()
        except (MeshError, FileNotFoundError, PermissionError) as e:
            return self._fail(name, e)
        self._install(mesh, name)
        return True

    def snapshot(self) -> dict:
        """Everything the renderer needs to draw the current mesh."""
        if self.mesh is None:
            return {"loaded": False, "status": self.status}
        return {
            "loaded": True,
            "name": self.source_name,
            "status": self.status,
            "vertex_count": self.mesh.vertex_count,
            "face_count": self.mesh.face_count,
            "positions": self.mesh.flat_positions().tolist(),
            "edges": [list(e) for e in self.edges],
        }
