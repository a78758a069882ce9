from __future__ import annotations

import asyncio
import logging
import os
import re
from pathlib import Path
from typing import Optional

from aiohttp import web

from .broadcaster import Broadcaster
from .store import MapBounds, load_bounds, save_bounds
from .tailer import LogTailer


log = logging.getLogger(__name__)

_WINDOWS_USERS_RE = re.compile(r"^[cC]:\\Users\\")


def resolve_log_path(raw: str, host_users_dir: Optional[str]) -> str:
    """Map a Windows ``C:\\Users\\...`` path onto the mounted host users dir, if one is set."""
    if host_users_dir and _WINDOWS_USERS_RE.match(raw):
        rest = _WINDOWS_USERS_RE.sub("", raw).replace("\\", "/")
        return str(Path(host_users_dir) / rest)
    return raw


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"status": "error", "message": message}, status=status)


def create_app(
    tailer: LogTailer,
    broadcaster: Broadcaster,
    data_dir: str | os.PathLike,
    *,
    host_users_dir: Optional[str] = None,
) -> web.Application:
    app = web.Application()
    data = Path(data_dir)
    maps_dir = data / "maps"
    maps_dir.mkdir(parents=True, exist_ok=True)
    bounds_file = data / "config.json"

    async def health(_: web.Request) -> web.Response:
        return web.json_response({
            "ok": True,
            "watching": tailer.watching,
            "path": str(tailer.path) if tailer.path else None,
            "clients": len(broadcaster),
        })

    async def websocket(req: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse(heartbeat=30)
        await ws.prepare(req)
        broadcaster.register(ws)
        try:
            # Viewers only listen; drain whatever they send until close
            async for _ in ws:
                pass
        finally:
            broadcaster.unregister(ws)
        return ws

    async def watch(req: web.Request) -> web.Response:
        try:
            payload = await req.json()
        except ValueError:
            return _error("Invalid JSON body", 400)
        raw = payload.get("logFilePath") if isinstance(payload, dict) else None
        if not raw or not isinstance(raw, str):
            return _error("Invalid logFilePath", 400)
        path = resolve_log_path(raw.strip(), host_users_dir)
        log.info("[HTTP] Watch requested: %s -> %s", raw, path)
        if not Path(path).is_file():
            return _error(f"File not found: {path}", 404)
        if not await tailer.start(path):
            return _error("Failed to start watching file", 500)
        return web.json_response({"status": "ok", "message": f"Started watching file: {path}"})

    async def stop(_: web.Request) -> web.Response:
        await tailer.stop()
        return web.json_response({"status": "ok", "message": "Stopped watching"})

    async def get_config(_: web.Request) -> web.Response:
        bounds = load_bounds(bounds_file)
        return web.json_response(bounds.model_dump(mode="json") if bounds else {})

    async def set_bounds(req: web.Request) -> web.Response:
        form = await req.post()
        try:
            bounds = MapBounds(
                top_left=(float(form["top_left_x"]), float(form["top_left_z"])),
                bottom_right=(float(form["bottom_right_x"]), float(form["bottom_right_z"])),
            )
        except (KeyError, ValueError, TypeError):
            return _error("Bounds must be four numbers", 400)
        save_bounds(bounds_file, bounds)
        log.info("[HTTP] Map bounds set: %s -> %s", bounds.top_left, bounds.bottom_right)
        return web.json_response({"status": "ok"})

    async def upload(req: web.Request) -> web.Response:
        try:
            reader = await req.multipart()
        except (AssertionError, ValueError):
            return _error("Expected multipart/form-data", 400)
        field = await reader.next()
        while field is not None and getattr(field, "name", None) != "file":
            field = await reader.next()
        if field is None:
            return _error("Missing file field", 400)
        target = maps_dir / "map.png"
        # Staged next to maps/, outside the static route
        tmp = data / "map.png.part"
        try:
            with tmp.open("wb") as f:
                while True:
                    chunk = await field.read_chunk()
                    if not chunk:
                        break
                    f.write(chunk)
            os.replace(tmp, target)
        except OSError as e:
            log.error("[HTTP] Error while saving map image: %s", e)
            return _error(str(e), 500)
        finally:
            tmp.unlink(missing_ok=True)
        return web.json_response({"status": "ok", "filename": "map.png"})

    app.add_routes([
        web.get("/health", health),
        web.get("/ws/", websocket),
        web.post("/map/watch", watch),
        web.post("/map/stop", stop),
        web.get("/map/config", get_config),
        web.post("/map/set_bounds", set_bounds),
        web.post("/map/upload", upload),
        web.static("/maps", maps_dir),
    ])

    async def on_shutdown(_: web.Application) -> None:
        await tailer.stop()
        await broadcaster.drain()

    app.on_shutdown.append(on_shutdown)
    return app


async def run_server(
    host: str,
    port: int,
    app: web.Application,
    stop_event: Optional[asyncio.Event] = None,
) -> None:
    """Serve ``app`` until ``stop_event`` is set (forever when none is given)."""
    if stop_event is None:
        stop_event = asyncio.Event()
    runner = web.AppRunner(app)
    await runner.setup()
    try:
        site = web.TCPSite(runner, host=host, port=port)
        await site.start()
        log.info("[HTTP] Listening on http://%s:%d", host, port)
        await stop_event.wait()
    finally:
        await runner.cleanup()
        log.info("[HTTP] Server stopped")
