"""
Crash-safe file replacement for the channel-binding store.

Content is written to a sibling temp file, fsynced, then renamed over the
destination, so a reader sees either the previous bindings or the new ones.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TextIO

logger = logging.getLogger(__name__)


class AtomicWriteError(Exception):
    """Raised when the store file could not be replaced."""


@contextmanager
def _sibling_temp_file(target: Path, encoding: str) -> Iterator[tuple[TextIO, Path]]:
    # Same directory as the target so the final rename stays on one filesystem
    fd, raw_path = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    temp_path = Path(raw_path)
    try:
        with os.fdopen(fd, "w", encoding=encoding) as handle:
            yield handle, temp_path
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def atomic_write_text(
    filepath: Path | str,
    content: str,
    *,
    encoding: str = "utf-8",
    mode: int = 0o644,
) -> None:
    """
    Replace ``filepath`` with ``content`` in one rename.

    Parent directories are created on demand.

    Raises:
        AtomicWriteError: If any step fails. The old file is left untouched.
    """
    target = Path(filepath)

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with _sibling_temp_file(target, encoding) as (handle, temp_path):
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
            temp_path.chmod(mode)
        try:
            temp_path.replace(target)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise
    except OSError as e:
        logger.exception("Could not replace %s", target)
        raise AtomicWriteError(f"Atomic write failed for {target}: {e}") from e

    logger.debug("Replaced %s (%d bytes)", target, len(content))


def atomic_write_json(
    filepath: Path | str,
    data: Any,
    *,
    indent: int = 2,
) -> None:
    """Serialize ``data`` to JSON first, then write it with :func:`atomic_write_text`."""
    try:
        content = json.dumps(data, indent=indent, ensure_ascii=False, sort_keys=True)
    except (TypeError, ValueError) as e:
        raise AtomicWriteError(f"{filepath} payload is not JSON serializable: {e}") from e

    atomic_write_text(filepath, content + "\n")
