"""
Crash log for the doto CLI.

Unexpected exceptions are appended, with the command line and traceback,
to ``doto-errors.log`` inside the store that was being used. The user sees
a one-line message pointing at that file.
"""

import os
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

ERROR_LOG_FILENAME = "doto-errors.log"


def error_log_path(store_path: Optional[Path] = None) -> Path:
    """Error log next to the store's database (default store if None)."""
    if store_path is None:
        from .config import get_default_store_path
        store_path = get_default_store_path()
    return Path(store_path).expanduser() / ERROR_LOG_FILENAME


def _format_entry(exc: BaseException, context: str) -> str:
    timestamp = datetime.now(timezone.utc).isoformat()
    header = f"[{timestamp}] {type(exc).__name__}"
    if context:
        header += f" in {context}"
    command = " ".join(["doto", *sys.argv[1:]])
    return "\n".join([
        "=" * 60,
        header,
        f"command: {command}",
        "".join(traceback.format_exception(exc)).rstrip(),
        "",
    ])


def log_exception(exc: BaseException, store_path: Optional[Path] = None, context: str = "") -> Path:
    """
    Append an exception to the store's error log.

    The file is created owner-readable only. A log that cannot be written
    is skipped; the returned path is where it would have gone.

    Returns:
        Path to the error log file
    """
    log_path = error_log_path(store_path)
    entry = _format_entry(exc, context)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a", encoding="utf-8") as f:
            f.write(entry)
    except OSError:
        pass
    return log_path
