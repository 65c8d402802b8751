"""
wireview backend — FastAPI + WebSocket server for the wireframe viewer.

Rendering is done client-side on a 2D canvas. The backend parses uploaded
models, owns the viewer session's mesh and hands the renderer a flat
coordinate buffer plus the deduplicated edge list.
"""

import base64
import binascii
import json
import logging
import re
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

import config
import serializer
import workspace
from processors import supported_extensions
from processors.model3d import run_pipeline
from viewer import ViewerSession

logger = logging.getLogger(__name__)


class ModelUpload(BaseModel):
    name: str
    data_b64: str


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = config.load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    workspace.set_workspace_dir(settings.workspace_dir)
    app.state.settings = settings
    app.state.session = ViewerSession(target_size=settings.viewer_target_size)
    yield


app = FastAPI(title="wireview", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Connection manager
# ---------------------------------------------------------------------------

class ConnectionManager:
    def __init__(self):
        self.active: list[WebSocket] = []

    async def connect(self, ws: WebSocket):
        await ws.accept()
        self.active.append(ws)

    def disconnect(self, ws: WebSocket):
        if ws in self.active:
            self.active.remove(ws)

    async def broadcast(self, message: dict):
        data = json.dumps(message)
        dead = []
        for ws in self.active:
            try:
                await ws.send_text(data)
            except Exception:
                logger.debug("Dropping unreachable WebSocket client")
                dead.append(ws)
        for ws in dead:
            self.active.remove(ws)


manager = ConnectionManager()


async def _announce(session: ViewerSession, ok: bool) -> dict:
    if ok:
        await manager.broadcast({"type": "model_loaded", "model": session.snapshot()})
    else:
        await manager.broadcast({"type": "status", "status": session.status})
    return {"status": "success" if ok else "error", "message": session.status}


# ---------------------------------------------------------------------------
# Upload helpers
# ---------------------------------------------------------------------------

def _sanitize_filename(name: str) -> str:
    """Sanitize a filename — keep alphanumeric, dots, hyphens, underscores."""
    name = name.strip().replace(" ", "_")
    name = re.sub(r"[^\w.\-]", "", name)
    return name or "unnamed"


# ---------------------------------------------------------------------------
# REST endpoints
# ---------------------------------------------------------------------------

@app.get("/api/formats")
async def get_formats():
    return {"extensions": supported_extensions()}


@app.get("/api/shapes")
async def get_shapes():
    return {"shapes": workspace.list_shapes()}


@app.post("/api/shapes/{name}")
async def load_shape(name: str):
    session: ViewerSession = app.state.session
    return await _announce(session, session.load_shape(name))


@app.post("/api/model")
async def upload_model(upload: ModelUpload):
    session: ViewerSession = app.state.session
    name = _sanitize_filename(upload.name)
    try:
        raw_bytes = base64.b64decode(upload.data_b64, validate=True)
    except binascii.Error as e:
        return JSONResponse({"status": "error", "message": f"Bad upload data: {e}"},
                            status_code=400)

    limit = app.state.settings.max_upload_size
    if len(raw_bytes) > limit:
        return JSONResponse(
            {"status": "error",
             "message": f"File '{name}' exceeds {limit} byte limit ({len(raw_bytes)} bytes)"},
            status_code=413)

    try:
        path = workspace.save_upload(name, raw_bytes)
    except PermissionError as e:
        return JSONResponse({"status": "error", "message": str(e)}, status_code=400)
    if name.lower().endswith(".js"):
        ok = session.load_module(name, raw_bytes.decode("utf-8", errors="replace"))
    else:
        output_dir = workspace.get_processed_dir(name)
        result = await run_pipeline(path, output_dir, name,
                                    app.state.settings.target_size,
                                    on_status=_pipeline_status)
        ok = session.load_conversion(result, output_dir)
    return await _announce(session, ok)


async def _pipeline_status(status: str, detail: str) -> None:
    await manager.broadcast({"type": status, "detail": detail})


@app.get("/api/model")
async def get_model():
    return app.state.session.snapshot()


@app.get("/api/model.js")
async def download_model():
    """The current mesh as a module: the cached conversion if there is one."""
    session: ViewerSession = app.state.session
    if session.mesh is None:
        return Response(status_code=404)
    if session.module_path is not None and session.module_path.is_file():
        content = session.module_path.read_text(encoding="utf-8")
    else:
        content = serializer.dumps(session.mesh)
    return Response(content=content, media_type="text/javascript")


@app.get("/api/uploads")
async def get_uploads():
    return {"uploads": [workspace.get_upload_info(f) for f in workspace.list_uploads()]}


@app.get("/api/uploads/{filename:path}")
async def get_upload(filename: str):
    """Serve an uploaded model file as it was received."""
    try:
        data = workspace.read_upload(filename)
        info = workspace.get_upload_info(filename)
    except (FileNotFoundError, PermissionError):
        return Response(status_code=404)
    return Response(content=data, media_type=info["mime_type"])


@app.delete("/api/uploads")
async def delete_uploads():
    """Drop all uploads and their cached conversions."""
    workspace.clear_uploads()
    return {"status": "success"}


# ---------------------------------------------------------------------------
# WebSocket endpoint
# ---------------------------------------------------------------------------

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await manager.connect(ws)
    session: ViewerSession = app.state.session

    await ws.send_text(json.dumps({
        "type": "init",
        "model": session.snapshot(),
        "shapes": workspace.list_shapes(),
        "formats": supported_extensions(),
    }))

    try:
        while True:
            raw = await ws.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError as e:
                await ws.send_text(json.dumps(
                    {"type": "status", "status": f"Invalid message: {e}"}))
                continue
            if not isinstance(msg, dict):
                await ws.send_text(json.dumps(
                    {"type": "status", "status": "Invalid message: expected an object"}))
                continue
            msg_type = msg.get("type")

            if msg_type == "load_shape":
                await _announce(session, session.load_shape(msg.get("name", "")))
            elif msg_type == "get_model":
                await ws.send_text(json.dumps(
                    {"type": "model", "model": session.snapshot()}))
            else:
                await ws.send_text(json.dumps(
                    {"type": "status", "status": f"Unknown message type: {msg_type}"}))
    except WebSocketDisconnect:
        logger.debug("WebSocket client disconnected")
    finally:
        manager.disconnect(ws)


def serve() -> None:
    """Entry point for ``wireview-serve``."""
    uvicorn.run(app, host="127.0.0.1", port=8000)


if __name__ == "__main__":
    serve()
