"""HDF5 storage backend for ledgerkv.

Each record is a one-dimensional ``uint8`` dataset under ``/state``. Dataset
names are the hex encoding of the UTF-8 key, which keeps arbitrary keys
(including composite keys with embedded ``\\x00``) legal as HDF5 link names.
A sorted in-memory key list, rebuilt when the file is opened, provides the
ordered range iteration the core relies on.
"""

# mypy: ignore-errors

from __future__ import annotations

import tempfile
from bisect import bisect_left, insort
from pathlib import Path
from time import time
from typing import Iterator

import numpy as np
from h5py import File, Group, version

from .config import CONFIG_GROUP, FORMAT_VERSION, STATE_GROUP
from .exceptions import StoreFault
from .logger import get_logger
from .state import KV, StateStore

logger = get_logger(__name__)

HDF5_NOT_OPEN_MSG = "HDF5 file is not open."

# Suffixes of in-flight write datasets. Record names are pure hex, so these
# never collide with a record.
STAGED_SUFFIX = ".staged"
BACKUP_SUFFIX = ".backup"


def key_to_name(key: str) -> str:
    return key.encode("utf-8").hex()


def name_to_key(name: str) -> str:
    return bytes.fromhex(name).decode("utf-8")


class Storage(StateStore):
    def __init__(self, path: str | Path | None = None, query_engine=None) -> None:
        """
        Open (creating if needed) the HDF5 file at ``path``.
        ``None`` uses a fresh temporary file.
        """
        super().__init__(query_engine)
        self._tempfile_path: Path | None = None
        match path:
            case None:
                tf = tempfile.NamedTemporaryFile(suffix=".h5", delete=False)
                tf.close()
                self._tempfile_path = Path(tf.name)
                self.path = self._tempfile_path
            case str() | Path():
                self.path = Path(path)
            case _:
                raise TypeError("path must be str, Path or None")
        self.file: File | None = None
        self._keys: list[str] = []
        self.open()

    def open(self) -> File:
        """Open the file, ensure the canonical layout and load the key index."""
        try:
            # A tempfile created above is empty, not a valid HDF5 file yet.
            mode = "w" if self._tempfile_path is not None and self.file is None else "a"
            self.file = File(str(self.path), mode, libver="latest")
        except (OSError, RuntimeError) as e:
            raise StoreFault(f"Failed to open HDF5 file '{self.path}': {e}") from e
        self._init_hdf5_layout()
        self._recover_interrupted_writes()
        self._keys = sorted(name_to_key(name) for name in self._state)
        logger.info(f"Storage opened: path={self.path}, records={len(self._keys)}")
        return self.file

    def _init_hdf5_layout(self) -> None:
        assert self.file is not None, HDF5_NOT_OPEN_MSG
        cfg = self.file.require_group(CONFIG_GROUP)
        cfg.attrs.setdefault("format_version", FORMAT_VERSION)
        cfg.attrs.setdefault("created_by", "ledgerkv")
        cfg.attrs["last_opened"] = int(time())
        self.file.attrs.setdefault("hdf5_version", version.hdf5_version)
        self.file.require_group(STATE_GROUP)

    def _recover_interrupted_writes(self) -> None:
        """Drop staged datasets and restore backups left by an interrupted put."""
        state = self._state
        for name in list(state):
            if name.endswith(STAGED_SUFFIX):
                del state[name]
            elif name.endswith(BACKUP_SUFFIX):
                record = name[: -len(BACKUP_SUFFIX)]
                if record in state:
                    del state[name]
                else:
                    state.move(name, record)
                logger.warning(f"Recovered interrupted write of record {record}")

    @property
    def _state(self) -> Group:
        if self.file is None:
            raise StoreFault(HDF5_NOT_OPEN_MSG)
        return self.file[STATE_GROUP]

    def _get(self, key: str) -> bytes | None:
        name = key_to_name(key)
        state = self._state
        if name not in state:
            return None
        return state[name][()].tobytes()

    def _put(self, key: str, value: bytes) -> None:
        # The old dataset is kept under its backup name until the swap succeeds.
        name = key_to_name(key)
        staged, backup = name + STAGED_SUFFIX, name + BACKUP_SUFFIX
        state = self._state
        if staged in state:
            del state[staged]
        state.create_dataset(staged, data=np.frombuffer(value, dtype=np.uint8))
        existed = name in state
        try:
            if existed:
                state.move(name, backup)
            state.move(staged, name)
        except Exception:
            if existed and backup in state and name not in state:
                state.move(backup, name)
            if staged in state:
                del state[staged]
            raise
        if existed:
            del state[backup]
        else:
            insort(self._keys, key)

    def _delete(self, key: str) -> None:
        name = key_to_name(key)
        state = self._state
        if name not in state:
            return
        del state[name]
        del self._keys[bisect_left(self._keys, key)]

    def _range(self, start_key: str, end_key: str) -> Iterator[KV]:
        lo = bisect_left(self._keys, start_key)
        hi = bisect_left(self._keys, end_key)
        state = self._state
        for key in self._keys[lo:hi]:
            yield KV(key, state[key_to_name(key)][()].tobytes())

    def __len__(self) -> int:
        return len(self._keys)

    def close(self) -> None:
        """Flush and close the file. Safe to call multiple times."""
        with self._lock:
            if self.file is None:
                return
            try:
                self.file.flush()
                self.file.close()
            except (OSError, RuntimeError) as e:
                raise StoreFault(f"Failed to close HDF5 file: {e}") from e
            finally:
                self.file = None
        if self._tempfile_path is not None:
            self._tempfile_path.unlink(missing_ok=True)
