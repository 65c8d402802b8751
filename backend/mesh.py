"""
Canonical mesh model — vertices + faces, shared by every format parser.

Also hosts the pieces every stage after parsing needs: fan triangulation,
bounding boxes, center/scale normalization and unique-edge extraction.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, NamedTuple

import numpy as np

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class MeshError(ValueError):
    """Base class for every conversion failure."""


class MalformedInputError(MeshError):
    """Unparseable numeric/text token or inconsistent index data."""


class OutOfBoundsError(MeshError):
    """A binary read ran past the end of its buffer."""


class MissingChunkError(MeshError):
    """A required section is absent (GLB JSON chunk, COLLADA root, ...)."""


class UnsupportedFormatError(MeshError):
    """Unknown file extension or an unhandled binary type code."""


class EmptyMeshError(MeshError):
    """Parsing succeeded but produced no vertices."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

class Vertex(NamedTuple):
    x: float
    y: float
    z: float


class Bounds(NamedTuple):
    min: tuple[float, float, float]
    max: tuple[float, float, float]

    @property
    def center(self) -> tuple[float, float, float]:
        return tuple((lo + hi) / 2 for lo, hi in zip(self.min, self.max))

    @property
    def size(self) -> tuple[float, float, float]:
        return tuple(hi - lo for lo, hi in zip(self.min, self.max))

    def to_dict(self) -> dict:
        return {
            "min": [round(v, 6) for v in self.min],
            "max": [round(v, 6) for v in self.max],
            "center": [round(v, 6) for v in self.center],
        }


@dataclass(eq=False)
class Mesh:
    positions: np.ndarray = field(
        default_factory=lambda: np.zeros((0, 3), dtype=np.float64))
    faces: list[list[int]] = field(default_factory=list)

    def __post_init__(self):
        self.positions = np.asarray(self.positions, dtype=np.float64).reshape(-1, 3)

    @classmethod
    def from_flat(cls, coords: Iterable[float],
                  faces: list[list[int]] | None = None) -> "Mesh":
        """Build a mesh from a flat x,y,z,x,y,z... sequence.

        A trailing partial triple is ignored.
        """
        flat = np.asarray(list(coords), dtype=np.float64)
        usable = len(flat) - len(flat) % 3
        return cls(flat[:usable].reshape(-1, 3), faces or [])

    @classmethod
    def from_vertices(cls, vertices: Iterable[Iterable[float]],
                      faces: list[list[int]] | None = None) -> "Mesh":
        rows = [tuple(v) for v in vertices]
        return cls(np.array(rows, dtype=np.float64).reshape(-1, 3), faces or [])

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def face_count(self) -> int:
        return len(self.faces)

    @property
    def vertices(self) -> list[Vertex]:
        return [Vertex(float(x), float(y), float(z)) for x, y, z in self.positions]

    def is_empty(self) -> bool:
        return self.vertex_count == 0

    def flat_positions(self) -> np.ndarray:
        """Flat float32 coordinate buffer for the renderer."""
        return self.positions.astype(np.float32).ravel()

    def extend(self, other: "Mesh") -> None:
        """Append another mesh, shifting its face indices past our vertices."""
        offset = self.vertex_count
        self.positions = np.vstack([self.positions, other.positions])
        self.faces.extend([i + offset for i in face] for face in other.faces)

    def validate(self, min_face_size: int = 3) -> "Mesh":
        """Raise MalformedInputError unless every face references real vertices."""
        n = self.vertex_count
        for fi, face in enumerate(self.faces):
            if len(face) < min_face_size:
                raise MalformedInputError(
                    f"Face {fi} has {len(face)} indices, need {min_face_size}")
            for idx in face:
                if not 0 <= idx < n:
                    raise MalformedInputError(
                        f"Face {fi} references vertex {idx}, mesh has {n}")
        return self

    def require_vertices(self) -> "Mesh":
        if self.is_empty():
            raise EmptyMeshError("Model contains no vertices")
        return self


# ---------------------------------------------------------------------------
# Face helpers
# ---------------------------------------------------------------------------

def fan_triangulate(face: list[int]) -> list[list[int]]:
    """Split an n-gon into n-2 triangles pivoting on face[0].

    Triangles pass through unchanged; anything shorter yields nothing.
    """
    if len(face) < 3:
        return []
    return [[face[0], face[i], face[i + 1]] for i in range(1, len(face) - 1)]


def decode_polygon_indices(raw_indices: Iterable[int],
                           offset: int = 0) -> list[list[int]]:
    """Decode an FBX PolygonVertexIndex list into triangles.

    A negative value closes the current polygon; the real index is its
    one's complement (``~idx``). Polygons are fan-triangulated.
    """
    faces: list[list[int]] = []
    current: list[int] = []
    for idx in raw_indices:
        idx = int(idx)
        if idx < 0:
            current.append(~idx + offset)
            faces.extend(fan_triangulate(current))
            current = []
        else:
            current.append(idx + offset)
    return faces


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------

def compute_bounds(mesh: Mesh) -> Bounds | None:
    """Axis-aligned bounding box, or None for an empty mesh."""
    if mesh.is_empty():
        return None
    lo = mesh.positions.min(axis=0)
    hi = mesh.positions.max(axis=0)
    return Bounds(tuple(float(v) for v in lo), tuple(float(v) for v in hi))


def normalize_mesh(mesh: Mesh, target_size: float = 1.5) -> float:
    """Center the mesh at the origin and scale its longest side to target_size.

    Rewrites ``mesh.positions`` in place and returns the scale factor
    applied (1.0 for an empty or degenerate mesh).
    """
    bounds = compute_bounds(mesh)
    if bounds is None:
        return 1.0

    max_dimension = max(bounds.size)
    scale = target_size / max_dimension if max_dimension > 0 else 1.0

    mesh.positions -= np.asarray(bounds.center)
    mesh.positions *= scale

    sx, sy, sz = bounds.size
    logger.info("Original size: %.2f x %.2f x %.2f", sx, sy, sz)
    logger.info("Scale factor: %.4f", scale)
    logger.info("Normalized to: +/-%.2f", target_size / 2)
    return scale


# ---------------------------------------------------------------------------
# Edge deduplicator
# ---------------------------------------------------------------------------

def unique_edges(faces: Iterable[list[int]]) -> list[tuple[int, int]]:
    """Unique undirected boundary edges, in first-seen order.

    Each edge is canonicalized smaller-index-first so a side shared by two
    faces is emitted once.
    """
    seen: set[tuple[int, int]] = set()
    edges: list[tuple[int, int]] = []
    for face in faces:
        n = len(face)
        for i in range(n):
            a, b = face[i], face[(i + 1) % n]
            edge = (a, b) if a <= b else (b, a)
            if edge not in seen:
                seen.add(edge)
                edges.append(edge)
    return edges
