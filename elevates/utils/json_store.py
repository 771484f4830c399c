"""
Flat JSON file persistence.

All dashboard data lives in JSON documents under config.DATA_DIR. Writes go
to a temporary file first and are moved into place so readers never see a
partially written document.
"""

import json
import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable

from ..exceptions import ValidationError

logger = logging.getLogger(__name__)

_SAFE_COMPONENT = re.compile(r'^[A-Za-z0-9@._-]+$')

# Serializes read-modify-write cycles within the process
store_lock = threading.RLock()


def safe_component(name: str, label: str = 'identifier') -> str:
    """Validate that name can be used as a single path component"""
    if not name or not _SAFE_COMPONENT.match(name) or name in ('.', '..'):
        raise ValidationError(f"Invalid {label}: {name!r}")
    return name


def read_json(path: Path, default: Callable[[], Any] = None) -> Any:
    """
    Load a JSON document.

    Args:
        path: File to read
        default: Factory for the value returned when the file does not exist

    Returns:
        Parsed document, or default() if the file is missing
    """
    path = Path(path)
    if not path.exists():
        if default is None:
            raise FileNotFoundError(path)
        return default()

    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def write_json(path: Path, data: Any) -> None:
    """Atomically write data as pretty-printed JSON"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f'.{path.name}.', suffix='.tmp')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)
    except Exception:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise

    logger.debug(f"Wrote {path}")


def write_text(path: Path, text: str) -> None:
    """Atomically write a text document"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f'.{path.name}.', suffix='.tmp')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(text)
        os.replace(tmp_path, path)
    except Exception:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
