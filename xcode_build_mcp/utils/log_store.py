#!/usr/bin/env python3
"""Persistent operation logs - one file per completed build/test/install"""

import dataclasses
import datetime
import enum
import json
import logging
import os
import shutil
from typing import Any, Dict, Optional

from xcode_build_mcp.config_manager import get_config

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"
    return str(value)


class LogStore:
    """
    Writes operation logs under <log_dir>/<YYYY-MM-DD>/ and keeps a
    latest-<operation>.log symlink next to the day folders.
    """

    def __init__(self, log_dir: Optional[str] = None, retention_days: Optional[int] = None):
        config = get_config()
        self.log_dir = os.path.expanduser(log_dir) if log_dir else config.expanded_log_dir
        self.retention_days = retention_days if retention_days is not None else config.log_retention_days

    def _today_dir(self, now: datetime.datetime) -> str:
        path = os.path.join(self.log_dir, now.strftime("%Y-%m-%d"))
        os.makedirs(path, exist_ok=True)
        return path

    def save_log(self,
                 operation: str,
                 content: str,
                 project_name: Optional[str] = None,
                 metadata: Optional[Dict[str, Any]] = None) -> str:
        """
        Save the output of one operation.

        Args:
            operation: Operation name, e.g. "build" or "test"
            content: Raw toolchain output
            project_name: Optional project or package name added to the filename
            metadata: Optional JSON-serialisable details written as a header

        Returns:
            Full path of the written log file
        """
        now = datetime.datetime.now()
        day_dir = self._today_dir(now)
        name = f"{operation}-{project_name}" if project_name else operation
        filename = f"{now.strftime('%H-%M-%S')}-{name}.log"
        filepath = os.path.join(day_dir, filename)

        parts = []
        if metadata:
            parts.append("=== Log Metadata ===")
            parts.append(json.dumps(metadata, indent=2, default=_json_default))
            parts.append("=== End Metadata ===\n")
        parts.append(content)

        with open(filepath, "w", encoding="utf-8") as f:
            f.write("\n".join(parts))

        self._update_latest_link(operation, os.path.relpath(filepath, self.log_dir))
        logger.debug("Saved %s log to %s", operation, filepath)
        return filepath

    def _update_latest_link(self, operation: str, relative_target: str) -> None:
        latest = os.path.join(self.log_dir, f"latest-{operation}.log")
        try:
            if os.path.lexists(latest):
                os.unlink(latest)
            os.symlink(relative_target, latest)
        except OSError as e:
            # Not critical, the log itself was written
            logger.debug("Could not update %s: %s", latest, e)

    def cleanup_old_logs(self, now: Optional[datetime.datetime] = None) -> int:
        """
        Remove day folders older than the retention period.

        Returns:
            Number of day folders removed
        """
        if not os.path.isdir(self.log_dir):
            return 0

        now = now or datetime.datetime.now()
        cutoff = (now - datetime.timedelta(days=self.retention_days)).date()
        removed = 0
        for entry in os.listdir(self.log_dir):
            path = os.path.join(self.log_dir, entry)
            if not os.path.isdir(path) or os.path.islink(path):
                continue
            try:
                day = datetime.datetime.strptime(entry, "%Y-%m-%d").date()
            except ValueError:
                continue
            if day < cutoff:
                try:
                    shutil.rmtree(path)
                    removed += 1
                except OSError as e:
                    logger.warning("Could not remove old logs in %s: %s", path, e)

        if removed:
            logger.info("Removed %d log folder(s) older than %d days", removed, self.retention_days)
        return removed
