"""
Data Directory Backups

Before the pipeline overwrites its documents, every ``*.json`` file in the
data directory is copied into ``<backup_dir>/<YYYYMMDD_HHMMSS>/``. Snapshot
folders older than the retention period are deleted afterwards.
"""

import shutil
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional

from core.logging import get_logger

logger = get_logger(__name__)

SNAPSHOT_FORMAT = "%Y%m%d_%H%M%S"


class BackupService:
    """
    Snapshot and retention management for the data directory.

    Attributes:
        data_dir: Directory whose JSON documents are backed up
        backup_dir: Directory holding the snapshot folders
        retention_days: Snapshots older than this are deleted
    """

    def __init__(self, data_dir: str = "./data", backup_dir: str = "./backups", retention_days: int = 7):
        self.data_dir = Path(data_dir)
        self.backup_dir = Path(backup_dir)
        self.retention_days = retention_days

    @classmethod
    def from_settings(cls, config=None) -> "BackupService":
        from core.config import settings

        config = config or settings
        return cls(config.data_dir, config.backup_dir, config.backup_retention_days)

    def backup(self, now: Optional[datetime] = None) -> Optional[Path]:
        """
        Copy the data directory's JSON documents into a new snapshot folder.

        Returns:
            The snapshot folder, or None when there was nothing to back up
        """
        now = now or datetime.now()
        files = sorted(self.data_dir.glob("*.json")) if self.data_dir.is_dir() else []
        if not files:
            logger.info(f"Nothing to back up in {self.data_dir}")
            return None

        snapshot = self.backup_dir / now.strftime(SNAPSHOT_FORMAT)
        snapshot.mkdir(parents=True, exist_ok=True)
        for path in files:
            shutil.copy2(path, snapshot / path.name)

        logger.info(f"Backup completed: {snapshot} ({len(files)} file(s))")
        self.clean_old_backups(now)
        return snapshot

    def clean_old_backups(self, now: Optional[datetime] = None) -> List[Path]:
        """
        Delete snapshot folders older than ``retention_days``.

        Folders whose names are not snapshot timestamps are left alone.

        Returns:
            The deleted folders
        """
        if not self.backup_dir.is_dir():
            return []

        cutoff = (now or datetime.now()) - timedelta(days=self.retention_days)
        removed = []
        for folder in sorted(self.backup_dir.iterdir()):
            if not folder.is_dir():
                continue
            try:
                taken_at = datetime.strptime(folder.name, SNAPSHOT_FORMAT)
            except ValueError:
                logger.debug(f"Skipping non-snapshot folder {folder}")
                continue
            if taken_at < cutoff:
                shutil.rmtree(folder)
                removed.append(folder)
                logger.info(f"Cleaning up old backup: {folder.name}")
        return removed
