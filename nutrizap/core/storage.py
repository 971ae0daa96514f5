"""Utilities for safe JSON storage.

This module implements atomic reading and writing of JSON files with file
locking.  It backs the local lead store used when no remote datastore is
configured: every lead lives in ``data/leads/<fingerprint>.json``.  All
access should go through the functions defined here to ensure consistency
and proper locking.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Optional, Type, TypeVar

from filelock import FileLock
from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

# Base data directory.  Use the monkeypatch fixture in tests to override
# this location.
DATA_DIR: Path = Path(__file__).resolve().parent.parent / "data"

_SAFE_NAME_RE = re.compile(r"[^A-Za-z0-9_-]")


def _lock_path(path: Path) -> Path:
    """Return the path of the lock file corresponding to ``path``.

    The lock file uses the same name as the target file, with an extra
    ``.lock`` suffix.
    """
    return path.with_suffix(path.suffix + ".lock")


def read_json(path: Path, model_cls: Type[T]) -> Optional[T]:
    """Read a JSON file into a pydantic model.

    Reading is protected by a file lock to avoid reading a partially
    written file.

    Args:
        path: Path to the JSON file.
        model_cls: The pydantic model class to instantiate.

    Returns:
        An instance of ``model_cls``, or ``None`` when the file is missing,
        empty or cannot be parsed.
    """
    if not path.exists():
        return None
    lock = FileLock(str(_lock_path(path)))
    with lock:
        contents = path.read_text(encoding="utf-8")
    if not contents.strip():
        return None
    try:
        return model_cls.model_validate_json(contents)
    except ValueError:
        logger.warning("read_json: discarding unreadable file %s", path)
        return None


def write_json(path: Path, obj: BaseModel) -> None:
    """Atomically write a pydantic object to a JSON file.

    The target directory is created if it does not exist.  The entire
    operation is guarded by a file lock.

    Args:
        path: Path to write to.
        obj: A pydantic model instance to serialise.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(str(_lock_path(path)))
    with lock:
        # Serialise before touching the target so a ``ValueError`` (NaN with
        # ``allow_nan=False``) leaves the previous contents intact.
        data = obj.model_dump(mode="json")
        json_data = json.dumps(data, ensure_ascii=False, allow_nan=False, indent=2)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        tmp_path.write_text(json_data, encoding="utf-8")
        tmp_path.replace(path)


def leads_dir() -> Path:
    """Return the directory holding lead files, creating it lazily."""
    path = DATA_DIR / "leads"
    path.mkdir(parents=True, exist_ok=True)
    return path


def lead_path(fingerprint: str) -> Path:
    """Return the JSON path for the lead identified by ``fingerprint``.

    Characters outside ``[A-Za-z0-9_-]`` are replaced so a fingerprint can
    never escape the leads directory.
    """
    if not fingerprint:
        raise ValueError("fingerprint must not be empty")
    return leads_dir() / f"{_SAFE_NAME_RE.sub('_', fingerprint)}.json"


def load_lead(fingerprint: str, model_cls: Type[T]) -> Optional[T]:
    """Load the lead stored under ``fingerprint`` or return ``None``."""
    path = lead_path(fingerprint)
    lead = read_json(path, model_cls)
    logger.debug("load_lead: fingerprint=%s path=%s found=%s", fingerprint, path, lead is not None)
    return lead


def save_lead(fingerprint: str, lead: BaseModel) -> None:
    """Persist ``lead`` under ``fingerprint``, replacing any previous copy."""
    path = lead_path(fingerprint)
    logger.debug("save_lead: fingerprint=%s path=%s", fingerprint, path)
    write_json(path, lead)
