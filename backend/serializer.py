"""
Canonical mesh module format — ``const vs = [...]`` / ``const fs = [...]``.

The same text is loaded by the browser viewer as a script and read back
here as plain data: the two array literals are extracted and decoded as
JSON, so a model file is never executed.
"""

import json
import logging
import math
import re
from pathlib import Path

from mesh import MalformedInputError, Mesh

logger = logging.getLogger(__name__)

_DECL_RE = re.compile(r"\b(?:const|let|var)\s+(vs|fs)\s*=\s*")
# String literals are matched first so comment markers inside them survive
_COMMENT_RE = re.compile(
    r"""("(?:\\.|[^"\\\n])*"|'(?:\\.|[^'\\\n])*')|//[^\n]*|/\*.*?\*/""",
    re.DOTALL)
_BARE_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_$][\w$]*)\s*:")
_TRAILING_COMMA_RE = re.compile(r",(\s*[\]}])")
_LEADING_DOT_RE = re.compile(r"(?<![\w.])(-?)\.(\d)")   # .5 -> 0.5
_TRAILING_DOT_RE = re.compile(r"(\d)\.(?![\d\w])")      # 5. -> 5.0


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

def dumps(mesh: Mesh) -> str:
    """Render the mesh as a re-loadable ``vs``/``fs`` module."""
    vs = [{"x": x, "y": y, "z": z} for x, y, z in mesh.vertices]
    fs = [[int(i) for i in face] for face in mesh.faces]
    try:
        vs_text = json.dumps(vs, indent=4, allow_nan=False)
    except ValueError as e:
        raise MalformedInputError(f"Mesh has non-finite coordinates: {e}") from e
    return f"const vs = {vs_text}\n\nconst fs = {json.dumps(fs, indent=4)}\n"


def write(mesh: Mesh, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dumps(mesh), encoding="utf-8")
    logger.info("Wrote %s (%d vertices, %d faces)",
                path, mesh.vertex_count, mesh.face_count)
    return path


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

def _array_literal(text: str, start: int) -> str:
    """Return the bracket-balanced ``[...]`` literal beginning at start."""
    if start >= len(text) or text[start] != "[":
        raise MalformedInputError(f"Expected '[' at offset {start}")
    depth = 0
    in_string = None
    i = start
    while i < len(text):
        ch = text[i]
        if in_string:
            if ch == "\\":
                i += 1
            elif ch == in_string:
                in_string = None
        elif ch in "\"'":
            in_string = ch
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
        i += 1
    raise MalformedInputError("Unterminated array literal")


def _strip_comments(text: str) -> str:
    return _COMMENT_RE.sub(lambda m: m.group(1) or " ", text)


def _literal_to_json(literal: str):
    """Decode a JS array literal restricted to numbers, arrays and objects."""
    cleaned = _BARE_KEY_RE.sub(r'\1"\2":', literal)
    cleaned = _TRAILING_COMMA_RE.sub(r"\1", cleaned)
    cleaned = _LEADING_DOT_RE.sub(r"\g<1>0.\2", cleaned)
    cleaned = _TRAILING_DOT_RE.sub(r"\1.0", cleaned)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedInputError(f"Invalid mesh literal: {e}") from e


def _vertex(item, index: int) -> tuple[float, float, float]:
    if isinstance(item, dict):
        values = [item.get(axis) for axis in ("x", "y", "z")]
    elif isinstance(item, list) and len(item) == 3:
        values = item
    else:
        raise MalformedInputError(f"Vertex {index} is not an {{x, y, z}} record")
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool)
               and math.isfinite(v) for v in values):
        raise MalformedInputError(f"Vertex {index} has non-numeric coordinates")
    return tuple(float(v) for v in values)


def _face(item, index: int) -> list[int]:
    if not isinstance(item, list) or not all(
            isinstance(i, int) and not isinstance(i, bool) for i in item):
        raise MalformedInputError(f"Face {index} is not a list of integers")
    return item


def loads(text: str) -> Mesh:
    """Parse a ``vs``/``fs`` module back into a mesh.

    Accepts the converter's JSON output as well as hand-written literals
    (unquoted keys, trailing commas, comments, ``.5``-style numbers).
    Faces of two indices are kept as line segments.
    """
    text = _strip_comments(text)
    decls = {}
    for match in _DECL_RE.finditer(text):
        name = match.group(1)
        if name not in decls:
            decls[name] = _literal_to_json(_array_literal(text, match.end()))

    missing = {"vs", "fs"} - decls.keys()
    if missing:
        raise MalformedInputError(
            f"Mesh module is missing declaration(s): {', '.join(sorted(missing))}")

    vertices = [_vertex(v, i) for i, v in enumerate(decls["vs"])]
    faces = [_face(f, i) for i, f in enumerate(decls["fs"])]
    return Mesh.from_vertices(vertices, faces).validate(min_face_size=2)


def read(path: Path) -> Mesh:
    return loads(path.read_text(encoding="utf-8"))
