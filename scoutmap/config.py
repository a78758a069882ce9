from __future__ import annotations

import os
from pydantic import BaseModel
from dotenv import load_dotenv


class Settings(BaseModel):
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 5000

    # Uploaded map image and bounds.json live here
    DATA_DIR: str = "data"

    # Optional: start watching this log file right away
    WATCH_FILE: str | None = None
    # Optional: where the host's C:\Users is mounted when running in a container
    HOST_USERS_DIR: str | None = None

    # Tailer
    POLL_INTERVAL_SEC: float = 0.05
    BUILDING_DORMANCY_SEC: float = 180.0  # healthy buildings vanish after this much silence
    BUILDING_HEALTHY_PERCENT: int = 60

    # Viewer
    VIEWER_URL: str = "ws://127.0.0.1:5000/ws/"
    PLAYER_TIMEOUT_SEC: float = 10.0
    PLAYER_SWEEP_INTERVAL_SEC: float = 2.0
    BUILDING_SWEEP_INTERVAL_SEC: float = 5.0
    CLUSTER_DISTANCE: float = 15.0  # blocks, planar x/z

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s %(levelname)s %(name)s %(message)s"


def get_settings() -> Settings:
    # Load .env if present
    load_dotenv(override=False)
    env = {k: v for k, v in os.environ.items()}
    return Settings(**env)
