import asyncio
import base64

import pytest
from fastapi.testclient import TestClient

import workspace
from main import ConnectionManager, app


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(workspace, "_active_workspace_dir", workspace.get_workspace_dir())
    monkeypatch.setenv("WIREVIEW_WORKSPACE", str(tmp_path / "workspace"))
    monkeypatch.setenv("WIREVIEW_MAX_UPLOAD_SIZE", "1024")
    with TestClient(app) as c:
        yield c


def _upload(client, name: str, data: bytes):
    return client.post("/api/model", json={
        "name": name, "data_b64": base64.b64encode(data).decode()})


def test_formats_and_shapes(client):
    assert client.get("/api/formats").json()["extensions"] == [
        ".dae", ".fbx", ".glb", ".gltf", ".obj"]
    assert "cube" in client.get("/api/shapes").json()["shapes"]


def test_no_model_yet(client):
    assert client.get("/api/model").json()["loaded"] is False
    assert client.get("/api/model.js").status_code == 404


def test_upload_model(client, tmp_path, triangle_obj):
    resp = _upload(client, "tri.obj", triangle_obj.encode())
    assert resp.status_code == 200
    assert resp.json()["status"] == "success"
    assert (tmp_path / "workspace" / "uploads" / "tri.obj").exists()

    model = client.get("/api/model").json()
    assert model["vertex_count"] == 3
    assert len(model["edges"]) == 3

    js = client.get("/api/model.js")
    assert js.headers["content-type"].startswith("text/javascript")
    assert js.text.startswith("const vs = [")


def test_failed_upload_keeps_current_model(client, triangle_obj):
    _upload(client, "tri.obj", triangle_obj.encode())
    resp = _upload(client, "bad.fbx", b"Kaydara FBX Binary  \x00\x1a\x00")
    assert resp.json()["status"] == "error"
    assert client.get("/api/model").json()["name"] == "tri.obj"


def test_upload_mesh_module(client):
    resp = _upload(client, "line.js", b"const vs = [[0,0,0],[1,0,0]]\nconst fs = [[0,1]]\n")
    assert resp.json()["status"] == "success"
    assert client.get("/api/model").json()["edges"] == [[0, 1]]


def test_upload_rejects_bad_base64(client):
    resp = client.post("/api/model", json={"name": "x.obj", "data_b64": "***"})
    assert resp.status_code == 400


def test_upload_size_limit(client):
    resp = _upload(client, "big.obj", b"v 0 0 0\n" * 200)
    assert resp.status_code == 413


def test_upload_name_is_sanitized(client, tmp_path, triangle_obj):
    resp = _upload(client, "../../evil tri.obj", triangle_obj.encode())
    assert resp.json()["status"] == "success"
    assert (tmp_path / "workspace" / "uploads" / "....evil_tri.obj").exists()


def test_load_shape_endpoint(client):
    assert client.post("/api/shapes/cube").json()["status"] == "success"
    assert client.get("/api/model").json()["vertex_count"] == 8
    assert client.post("/api/shapes/nope").json()["status"] == "error"


def test_websocket_session(client):
    with client.websocket_connect("/ws") as ws:
        init = ws.receive_json()
        assert init["type"] == "init"
        assert "tetrahedron" in init["shapes"]

        ws.send_json({"type": "load_shape", "name": "tetrahedron"})
        loaded = ws.receive_json()
        assert loaded["type"] == "model_loaded"
        assert loaded["model"]["vertex_count"] == 4

        ws.send_json({"type": "get_model"})
        assert ws.receive_json()["model"]["name"] == "tetrahedron"

        ws.send_json({"type": "bogus"})
        assert "Unknown message type" in ws.receive_json()["status"]


def test_upload_is_converted_into_processed_dir(client, tmp_path, triangle_obj):
    _upload(client, "tri.obj", triangle_obj.encode())
    processed = tmp_path / "workspace" / "models" / "tri_obj"
    assert (processed / "manifest.json").is_file()
    assert client.get("/api/model.js").text == (processed / "tri.js").read_text()


def test_shape_download_is_serialized_from_session(client):
    client.post("/api/shapes/cube")
    assert client.get("/api/model.js").text.startswith("const vs = [\n    {\n        \"x\": -0.25")


def test_upload_listing_and_clearing(client, triangle_obj):
    _upload(client, "tri.obj", triangle_obj.encode())
    uploads = client.get("/api/uploads").json()["uploads"]
    assert [u["filename"] for u in uploads] == ["tri.obj"]
    assert client.get("/api/uploads/tri.obj").content == triangle_obj.encode()
    assert client.get("/api/uploads/absent.obj").status_code == 404

    assert client.delete("/api/uploads").json()["status"] == "success"
    assert client.get("/api/uploads").json()["uploads"] == []
    # the session mesh survives; its download falls back to serialization
    assert client.get("/api/model.js").text.startswith("const vs")


def test_websocket_reports_bad_messages(client):
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        ws.send_text("not json")
        assert ws.receive_json()["status"].startswith("Invalid message")
        ws.send_text("[1, 2]")
        assert ws.receive_json()["status"].startswith("Invalid message")

        ws.send_json({"type": "get_model"})
        assert ws.receive_json()["type"] == "model"


def test_websocket_sees_conversion_progress(client, triangle_obj):
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()
        _upload(client, "tri.obj", triangle_obj.encode())
        assert [ws.receive_json()["type"] for _ in range(3)] == [
            "processing", "processing_done", "model_loaded"]


def test_broadcast_drops_clients_that_fail_to_send():
    class ResetSocket:
        async def send_text(self, data):
            raise OSError("connection reset")

    manager = ConnectionManager()
    manager.active.append(ResetSocket())
    asyncio.run(manager.broadcast({"type": "status", "status": "hello"}))
    assert manager.active == []
