"""Terminal viewer: follows the event stream and logs the visible map.

    python -m scoutmap.viewer [ws://host:5000/ws/]
"""
from __future__ import annotations

import asyncio
import json
import logging
import sys
import time
from typing import Callable, Optional

import aiohttp

from .config import Settings, get_settings
from .models import event_from_dict
from .reconciler import ClientReconciler


log = logging.getLogger(__name__)


async def sweep_every(interval: float, sweep: Callable[[float], list], clock: Callable[[], float] = time.time) -> None:
    while True:
        await asyncio.sleep(interval)
        sweep(clock())


def render(rec: ClientReconciler) -> str:
    parts = []
    for m in rec.markers():
        if m.kind == "cluster":
            parts.append(f"+{m.count} @({m.x:.0f},{m.z:.0f}) [{m.label}]")
        elif m.kind == "player":
            parts.append(f"{m.label} @({m.x:.0f},{m.z:.0f})")
        else:
            parts.append(f"{m.label} @({m.x:.0f},{m.z:.0f}) {m.border}")
    return "; ".join(parts) or "<empty>"


async def follow(url: str, rec: ClientReconciler, clock: Callable[[], float] = time.time) -> None:
    async with aiohttp.ClientSession() as session:
        async with session.ws_connect(url, heartbeat=30) as ws:
            log.info("[Viewer] Connected to %s", url)
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    try:
                        ev = event_from_dict(json.loads(msg.data))
                    except (ValueError, KeyError, TypeError):
                        log.warning("[Viewer] Ignoring malformed message: %r", msg.data)
                        continue
                    if ev is not None:
                        rec.apply(ev, clock())
                elif msg.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                    break
    log.info("[Viewer] Connection closed")


def make_reconciler(settings: Settings) -> ClientReconciler:
    """Reconciler configured from settings that logs the map whenever it changes."""
    last: Optional[str] = None

    def on_change(r: ClientReconciler) -> None:
        nonlocal last
        text = render(r)
        if text != last:
            last = text
            log.info("[Viewer] %s", text)

    return ClientReconciler(
        player_timeout=settings.PLAYER_TIMEOUT_SEC,
        building_timeout=settings.BUILDING_DORMANCY_SEC,
        healthy_percent=settings.BUILDING_HEALTHY_PERCENT,
        cluster_distance=settings.CLUSTER_DISTANCE,
        on_change=on_change,
    )


async def run_viewer(
    url: str,
    settings: Settings,
    rec: Optional[ClientReconciler] = None,
    clock: Callable[[], float] = time.time,
) -> None:
    if rec is None:
        rec = make_reconciler(settings)
    sweeps = [
        asyncio.create_task(
            sweep_every(settings.PLAYER_SWEEP_INTERVAL_SEC, rec.sweep_players, clock),
            name="viewer-player-sweep",
        ),
        asyncio.create_task(
            sweep_every(settings.BUILDING_SWEEP_INTERVAL_SEC, rec.sweep_buildings, clock),
            name="viewer-building-sweep",
        ),
    ]
    backoff = 1.0
    try:
        while True:
            try:
                await follow(url, rec, clock)
                backoff = 1.0
            except aiohttp.ClientError as e:
                log.warning("[Viewer] Cannot reach %s: %s. Retrying in %.0fs", url, e, backoff)
            await asyncio.sleep(backoff)
            backoff = min(backoff * 2, 30)
    finally:
        for t in sweeps:
            t.cancel()
        await asyncio.gather(*sweeps, return_exceptions=True)


def main() -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format=settings.LOG_FORMAT)
    url = sys.argv[1] if len(sys.argv) > 1 else settings.VIEWER_URL
    try:
        asyncio.run(run_viewer(url, settings))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
