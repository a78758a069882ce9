from __future__ import annotations

import asyncio
import logging
import signal

from .broadcaster import Broadcaster
from .buildings import BuildingStateStore
from .config import get_settings
from .http_server import create_app, resolve_log_path, run_server
from .tailer import LogTailer


log = logging.getLogger("scoutmap")


async def main():
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format=settings.LOG_FORMAT)

    broadcaster = Broadcaster()
    store = BuildingStateStore(
        dormancy_sec=settings.BUILDING_DORMANCY_SEC,
        healthy_percent=settings.BUILDING_HEALTHY_PERCENT,
    )
    tailer = LogTailer(broadcaster, store, poll_interval=settings.POLL_INTERVAL_SEC)

    app = create_app(tailer, broadcaster, settings.DATA_DIR, host_users_dir=settings.HOST_USERS_DIR)

    if settings.WATCH_FILE:
        path = resolve_log_path(settings.WATCH_FILE, settings.HOST_USERS_DIR)
        if not await tailer.start(path):
            log.warning("[ScoutMap] WATCH_FILE=%s could not be watched; waiting for POST /map/watch", path)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows: fall back to KeyboardInterrupt
            pass

    await run_server(settings.SERVER_HOST, settings.SERVER_PORT, app, stop_event)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
