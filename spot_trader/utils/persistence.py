"""
State persistence utilities.

The loop is usually driven by an external scheduler that starts a
fresh process per tick, so the controller must remember its session,
its open position and the time of the last check between runs.  This
module provides JSON load/save helpers for that purpose and a
lock-file guard that keeps two ticks for the same symbol from
overlapping.
"""

from __future__ import annotations

from contextlib import contextmanager
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from ..errors import TickInProgress


logger = logging.getLogger(__name__)


def load_state(path: str) -> Optional[Dict[str, Any]]:
    """Load a JSON state file.

    Returns
    -------
    dict or None
        The state dictionary if the file exists, otherwise `None`.
    """
    file_path = Path(path)
    if not file_path.exists():
        return None
    with file_path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def save_state(path: str, state: Dict[str, Any]) -> None:
    """Write a JSON state file to disk.

    The document is written to a sibling temporary file first and then
    moved over the target, so a crash mid-write never leaves a
    truncated state file behind.
    """
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = file_path.with_name(file_path.name + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as fh:
        json.dump(state, fh, ensure_ascii=False, indent=2, sort_keys=True)
    os.replace(tmp_path, file_path)


@contextmanager
def single_flight(lock_dir: str, key: str) -> Iterator[Path]:
    """Hold an exclusive lock file named after `key` for the duration of the block.

    Raises
    ------
    TickInProgress
        If the lock file already exists, i.e. another tick for the same
        key is still running (or crashed without cleaning up).
    """
    lock_path = Path(lock_dir) / f"{key}.lock"
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        fd = os.open(str(lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError as exc:
        raise TickInProgress(f"another tick holds {lock_path}") from exc
    try:
        os.write(fd, str(os.getpid()).encode("ascii"))
        os.close(fd)
        yield lock_path
    finally:
        try:
            lock_path.unlink()
        except FileNotFoundError:
            logger.warning("Lock file %s vanished before release", lock_path)
