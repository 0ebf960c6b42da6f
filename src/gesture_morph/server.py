"""WebSocket streaming server for the morphing scene.

Runs the scene pipeline at a fixed frame rate and pushes every frame to all
connected WebSocket clients. Hand landmarks come either from the server's
own camera (``server.camera_index`` in the config) or from a browser client
running its own hand tracker and sending ``landmarks`` messages.

Features:
- Frame streaming with base64 float32 particle positions
- Client-pushed landmarks and manual mode switching
- Prometheus metrics endpoint
- REST API for status and configuration

Usage:
    gesture-morph serve --config scene.yml
    # or
    uvicorn gesture_morph.server:app --host 0.0.0.0 --port 8765
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import time
from typing import Optional

try:
    from fastapi import FastAPI, WebSocket, WebSocketDisconnect
    from fastapi.responses import PlainTextResponse
    _HAS_FASTAPI = True
except ImportError:
    _HAS_FASTAPI = False

if not _HAS_FASTAPI:
    raise ImportError("FastAPI required. Install with: pip install gesture-morph[server]")

from gesture_morph import __version__
from gesture_morph.config import SceneConfig
from gesture_morph.detector import CameraSource
from gesture_morph.modes import ModeChangeEvent, SceneMode
from gesture_morph.pipeline import ScenePipeline

logger = logging.getLogger("gesture_morph.server")

app = FastAPI(title="gesture-morph", version=__version__)


# --- State ---

class ServerState:
    def __init__(self, config: Optional[SceneConfig] = None, seed: Optional[int] = None):
        self.config = config or SceneConfig()
        self.pipeline = ScenePipeline(config=self.config, seed=seed)
        self.pipeline.on_mode_change(self._queue_mode_event)
        self.clients: set[WebSocket] = set()
        self.running = False
        self.started_at = time.monotonic()
        self.fps = 0.0
        self._landmarks = None
        self._landmarks_ts: Optional[float] = None
        self._client_ts: Optional[float] = None
        self._events: list[dict] = []

    def scene_time(self) -> float:
        return time.monotonic() - self.started_at

    def submit_landmarks(self, points, client_timestamp: Optional[float] = None) -> bool:
        """Store a hand frame for the next tick. False if it arrived out of order."""
        if client_timestamp is not None:
            if not math.isfinite(client_timestamp):
                logger.debug("Dropped landmarks with non-finite timestamp")
                return False
            if self._client_ts is not None and client_timestamp <= self._client_ts:
                logger.debug("Dropped stale landmarks (ts=%s)", client_timestamp)
                return False
            self._client_ts = client_timestamp
        self._landmarks = points
        self._landmarks_ts = self.scene_time()
        return True

    def take_landmarks(self):
        """Return (landmarks, timestamp) once; (None, None) if nothing new arrived."""
        points, ts = self._landmarks, self._landmarks_ts
        self._landmarks = None
        self._landmarks_ts = None
        return points, ts

    def take_events(self) -> list[dict]:
        events, self._events = self._events, []
        return events

    def _queue_mode_event(self, event: ModeChangeEvent):
        self._events.append(event.to_dict())


state = ServerState()


def configure(config: Optional[SceneConfig] = None, seed: Optional[int] = None) -> ServerState:
    """Replace the server state (new config, fresh pipeline). Call before startup."""
    global state
    state = ServerState(config, seed)
    return state


# --- API endpoints ---

@app.get("/api/status")
async def api_status():
    stats = state.pipeline.stats
    return {
        "version": __version__,
        "running": state.running,
        "clients": len(state.clients),
        "fps": round(state.fps, 1),
        "mode": stats.mode,
        "morph": round(stats.morph, 4),
        "frames": stats.total_frames,
        "mode_changes": stats.mode_changes,
        "particle_count": state.pipeline.engine.particle_count,
        "last_gesture": state.pipeline.last_result.to_dict(),
        "profiler": stats.profiler_summary,
        "budget": stats.budget,
    }


@app.get("/api/config")
async def api_config():
    return state.config.to_dict()


@app.get("/api/frame")
async def api_frame():
    """Evaluate the scene now without advancing any transition."""
    frame = state.pipeline.engine.frame(state.scene_time())
    return frame.to_message()


# --- Prometheus metrics ---

@app.get("/metrics")
async def metrics():
    state.pipeline.metrics.set_connections(len(state.clients))
    return PlainTextResponse(
        state.pipeline.metrics.render(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


# --- WebSocket: frames ---

async def handle_client_message(ws: WebSocket, data: dict):
    kind = data.get("type")
    if kind == "ping":
        await ws.send_json({"type": "pong", "server_time": time.time()})
    elif kind == "landmarks":
        state.submit_landmarks(data.get("points"), data.get("timestamp"))
    elif kind == "mode":
        try:
            mode = SceneMode(str(data.get("mode", "")).upper())
        except ValueError:
            logger.warning("Unknown mode in client message: %r", data.get("mode"))
            return
        event = state.pipeline.force_mode(mode, state.scene_time())
        if event is not None:
            await broadcast(event.to_dict())
            state.take_events()
    else:
        logger.warning("Ignoring client message of type %r", kind)


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    state.clients.add(ws)
    logger.info("Client connected (%d total)", len(state.clients))

    try:
        await ws.send_json({
            "type": "connected",
            "version": __version__,
            "mode": state.pipeline.mode.value,
            "particle_count": state.pipeline.engine.particle_count,
            "fps": state.config.server.fps,
        })

        while True:
            try:
                msg = await asyncio.wait_for(ws.receive_text(), timeout=30)
            except asyncio.TimeoutError:
                await ws.send_json({"type": "ping"})
                continue
            try:
                data = json.loads(msg)
            except json.JSONDecodeError:
                logger.warning("Ignoring malformed client message")
                continue
            if not isinstance(data, dict):
                logger.warning("Ignoring non-object client message")
                continue
            await handle_client_message(ws, data)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.debug("WebSocket error: %s", e)
    finally:
        state.clients.discard(ws)
        logger.info("Client disconnected (%d total)", len(state.clients))


async def broadcast(message: dict):
    """Send message to all clients; clients whose send fails are dropped."""
    if not state.clients:
        return
    dead = set()
    payload = json.dumps(message)
    for ws in list(state.clients):
        try:
            await ws.send_text(payload)
        except Exception:
            dead.add(ws)
    state.clients.difference_update(dead)


# --- Render loop ---

async def render_tick(camera: Optional[CameraSource] = None):
    """Produce one frame and send it, with any mode events, to every client."""
    if camera is not None:
        landmarks, _ = await asyncio.to_thread(camera.read)
        state.submit_landmarks(landmarks)

    landmarks, ts = state.take_landmarks()
    t = state.scene_time()
    frame = state.pipeline.step(t, landmarks, ts if ts is not None else t)

    for event in state.take_events():
        await broadcast(event)
    await broadcast(frame.to_message())


async def render_loop():
    """Main loop: read landmarks, step the scene, broadcast the frame."""
    server = state.config.server
    camera: Optional[CameraSource] = None
    if server.camera_index is not None:
        try:
            camera = CameraSource(server.camera_index)
        except (ImportError, RuntimeError) as e:
            logger.error("Camera unavailable, waiting for client landmarks: %s", e)

    period = 1.0 / server.fps
    frame_times: list[float] = []
    state.running = True
    logger.info("Render loop started at %.0f fps", server.fps)

    try:
        while state.running:
            t_start = time.monotonic()
            try:
                await render_tick(camera)
            except Exception:
                logger.exception("Frame failed; render loop continues")

            elapsed = time.monotonic() - t_start
            frame_times.append(max(elapsed, period))
            if len(frame_times) > 30:
                frame_times = frame_times[-30:]
            avg = sum(frame_times) / len(frame_times)
            state.fps = 1.0 / avg if avg > 0 else 0.0

            await asyncio.sleep(max(0.0, period - elapsed))
    finally:
        state.running = False
        if camera is not None:
            camera.close()
        logger.info("Render loop stopped")


@app.on_event("startup")
async def startup():
    if state.config.server.autostart:
        asyncio.create_task(render_loop())


@app.on_event("shutdown")
async def shutdown():
    state.running = False


def main():
    import uvicorn

    server = state.config.server
    uvicorn.run(app, host=server.host, port=server.port)


if __name__ == "__main__":
    main()
