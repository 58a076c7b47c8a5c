"""config.py - Configuration and constants for ledgerkv"""

from __future__ import annotations

import os
from dataclasses import dataclass

HDF5_FILE = "ledgerkv.h5"
CONFIG_GROUP = "/config"
STATE_GROUP = "/state"
FORMAT_VERSION = 1

API_VERSION = "1.0"

DEFAULT_ZMQ_ENDPOINT = "tcp://127.0.0.1:5555"
DEFAULT_LOG_LEVEL = "INFO"

ENV_PREFIX = "LEDGERKV_"


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Runtime settings, read from ``LEDGERKV_*`` environment variables."""

    hdf5_path: str = HDF5_FILE
    zmq_endpoint: str = DEFAULT_ZMQ_ENDPOINT
    zmq_idle_timeout: int = 0
    "Seconds of inactivity before the ZMQ server stops; 0 disables the timeout"
    strict_get: bool = False
    "Report a missing key on ``get`` as a failure instead of an empty payload"
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            hdf5_path=os.environ.get(ENV_PREFIX + "HDF5_PATH", HDF5_FILE),
            zmq_endpoint=os.environ.get(ENV_PREFIX + "ZMQ_ENDPOINT", DEFAULT_ZMQ_ENDPOINT),
            zmq_idle_timeout=_env_int("ZMQ_IDLE_TIMEOUT", 0),
            strict_get=_env_flag("STRICT_GET"),
            log_level=os.environ.get(ENV_PREFIX + "LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        )
