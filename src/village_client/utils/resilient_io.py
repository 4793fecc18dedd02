# src/village_client/utils/resilient_io.py
"""
Resilient I/O helpers for the persisted session document.

- safe_write_json: atomic write (temp file + rename) so readers never see a
  half-written file. Returns False instead of raising.
- safe_read_json: returns None for missing or corrupt files.
- safe_remove: idempotent delete.

Session writes are never buffered for a later retry: a refresh token that was
rotated by the server but not persisted is already dead, so a failed write has
to surface to the caller immediately.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union


def safe_write_json(
    path: Union[str, Path],
    data: Dict[str, Any],
    logger: logging.Logger,
    secure_permissions: bool = False,
) -> bool:
    """
    Replace `path` with `data` serialized as JSON, atomically.

    The document is written to a sibling temp file which is then renamed over
    the target, so a reader sees either the previous or the new content.
    With secure_permissions the temp file is chmod'ed to 0o600 before the
    rename. Returns False (after logging) instead of raising.
    """
    path = Path(path)
    tmp_path: Optional[str] = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(data, indent=2)

        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)

        if secure_permissions:
            try:
                os.chmod(tmp_path, 0o600)
            except (OSError, AttributeError):
                # Some filesystems and platforms refuse permission changes
                pass

        os.replace(tmp_path, path)
        tmp_path = None
        return True
    except (OSError, TypeError, ValueError) as e:
        logger.warning(f"Could not save {path.name}: {e}")
        return False
    finally:
        if tmp_path is not None and os.path.exists(tmp_path):
            try:
                os.unlink(tmp_path)
            except OSError:
                logger.debug(f"Left temp file {tmp_path} behind")


def safe_read_json(
    path: Union[str, Path], logger: logging.Logger
) -> Optional[Dict[str, Any]]:
    """
    Read a JSON object from a file.

    Returns:
        The decoded object, or None if the file is missing, unreadable,
        not valid JSON, or not a JSON object.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to read JSON from {path}: {e}")
        return None

    if not isinstance(data, dict):
        logger.warning(f"Ignoring {path.name}: expected a JSON object")
        return None
    return data


def safe_remove(path: Union[str, Path], logger: logging.Logger) -> bool:
    """
    Delete a file if it exists.

    Returns:
        True if the file is gone afterwards, False if removal failed
    """
    try:
        Path(path).unlink()
        return True
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning(f"Failed to remove {path}: {e}")
        return False
