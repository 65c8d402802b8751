import numpy as np
import pytest

import serializer
from mesh import MalformedInputError, Mesh
from processors.obj import ObjProcessor
from workspace import SHAPES_DIR


def test_output_layout(triangle_obj):
    text = serializer.dumps(ObjProcessor.parse(triangle_obj))
    assert text.startswith("const vs = [\n    {\n        \"x\": 0.0,")
    assert "\n]\n\nconst fs = [\n    [\n        0,\n        1,\n        2\n    ]\n]\n" in text
    assert text.endswith("]\n")


def test_converted_obj_reloads_identically(triangle_obj):
    mesh = ObjProcessor.parse(triangle_obj + "v 0.125 -3.5 1e-7\nf 1 2 4 3\n")
    reloaded = serializer.loads(serializer.dumps(mesh))
    np.testing.assert_array_equal(reloaded.positions, mesh.positions)
    assert reloaded.faces == mesh.faces


def test_write_and_read(tmp_path, triangle_obj):
    mesh = ObjProcessor.parse(triangle_obj)
    path = serializer.write(mesh, tmp_path / "out" / "tri.js")
    assert path.read_text().startswith("const vs")
    assert serializer.read(path).vertices == mesh.vertices


def test_bundled_tetrahedron_uses_line_segments():
    mesh = serializer.read(SHAPES_DIR / "tetrahedron.js")
    assert mesh.vertex_count == 4
    assert mesh.vertices[0] == (0, 0.35, 0)
    assert mesh.faces[0] == [0, 1]
    assert len(mesh.faces) == 6


def test_bundled_cube_with_trailing_commas():
    mesh = serializer.read(SHAPES_DIR / "cube.js")
    assert mesh.vertex_count == 8
    assert mesh.face_count == 6


def test_let_and_var_declarations_with_comments():
    text = """
    /* generated */
    let vs = [[0, 0, 0], [1, 0, 0], [0, 1, 0]]; // array rows
    var fs = [[0, 1, 2],];
    """
    mesh = serializer.loads(text)
    assert mesh.faces == [[0, 1, 2]]


def test_missing_faces_declaration():
    with pytest.raises(MalformedInputError, match="fs"):
        serializer.loads("const vs = [{x: 0, y: 0, z: 0}]")


def test_module_code_is_never_executed():
    text = "const vs = [{x: 0, y: 0, z: alert(1)}]\nconst fs = []\n"
    with pytest.raises(MalformedInputError):
        serializer.loads(text)


def test_face_index_out_of_range():
    with pytest.raises(MalformedInputError):
        serializer.loads("const vs = [{x: 0, y: 0, z: 0}]\nconst fs = [[0, 1]]\n")


def test_non_finite_coordinates_are_rejected():
    mesh = Mesh.from_flat([0, 0, float("nan")])
    with pytest.raises(MalformedInputError):
        serializer.dumps(mesh)


def test_unterminated_literal():
    with pytest.raises(MalformedInputError):
        serializer.loads("const vs = [{x: 0, y: 0, z: 0}\nconst fs = []")


def test_apostrophe_in_line_comment():
    text = ("const vs = [\n"
            "    {x: 0, y: 0, z: 0}, // it's the origin\n"
            "    {x: 1, y: 0, z: 0},\n"
            "]\n"
            "const fs = [[0, 1]]\n")
    assert serializer.loads(text).vertex_count == 2


def test_commented_out_declaration_is_ignored():
    text = ("// const vs = [{x: 9, y: 9, z: 9}]\n"
            "/* const fs = [[0]] */\n"
            "const vs = [{x: 0, y: 0, z: 0}, {x: 1, y: 1, z: 1}]\n"
            "const fs = [[0, 1]]\n")
    mesh = serializer.loads(text)
    assert mesh.vertices == [(0, 0, 0), (1, 1, 1)]
    assert mesh.faces == [[0, 1]]


def test_js_number_forms():
    text = "const vs = [{x: .5, y: -.25, z: 3.}, [-0.5, 1e-3, 2]]\nconst fs = [[0, 1]]\n"
    mesh = serializer.loads(text)
    assert mesh.vertices == [(0.5, -0.25, 3.0), (-0.5, 0.001, 2.0)]


def test_comment_markers_inside_quoted_keys_survive():
    text = ('const vs = [{"x": 0, "y": 0, "z": 0, "note//": 1}]\n'
            "const fs = []\n")
    assert serializer.loads(text).vertex_count == 1
