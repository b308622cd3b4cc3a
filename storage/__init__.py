"""
Storage Package

Handles persistence of the pipeline's documents.

Current implementation:
- JsonStore: whole-document JSON files in the data directory (atomic writes)
- BackupService: timestamped snapshots of the data directory with retention
"""

from .backup import BackupService
from .json_store import JsonStore

__all__ = ["BackupService", "JsonStore"]
