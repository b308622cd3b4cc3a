"""
JSON Document Store

Persists every pipeline artifact as a whole JSON document in the data
directory:

    <data_dir>/<prefix>_<source>_<YYYYMMDD>_<YYYYMMDD>.json   raw candles per source
    <data_dir>/<prefix>_validated.json                        validated dataset
    <data_dir>/<prefix>_anomalies.json                        anomalies by kind
    <data_dir>/<prefix>_analysis.json                         aggregate statistics

Documents are written to a temporary file in the same directory and then
moved over the target with ``os.replace``, so a reader never sees a
half-written file.

Usage:
    store = JsonStore("./data", "btc_price")
    store.save_validated(records)
    latest = store.latest_date()
"""

import datetime as dt
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from pydantic import TypeAdapter

from core.logging import get_logger
from core.schemas import (
    AnalysisResult,
    AnomalyEntry,
    AnomalyKind,
    KlineRecord,
    MergedDayRecord,
)

logger = get_logger(__name__)

_KLINES = TypeAdapter(List[KlineRecord])
_MERGED = TypeAdapter(List[MergedDayRecord])
_ANOMALIES = TypeAdapter(Dict[AnomalyKind, List[AnomalyEntry]])


class JsonStore:
    """
    File-backed store for pipeline documents.

    Attributes:
        data_dir: Directory holding the documents (created on first write)
        prefix: Filename prefix (e.g., "btc_price")
    """

    def __init__(self, data_dir: str = "./data", prefix: str = "btc_price"):
        self.data_dir = Path(data_dir)
        self.prefix = prefix

    @classmethod
    def from_settings(cls, config=None) -> "JsonStore":
        from core.config import settings

        config = config or settings
        return cls(config.data_dir, config.file_prefix)

    # ============================================
    # Paths
    # ============================================

    def raw_path(self, source: str, start: dt.date, end: dt.date) -> Path:
        return self.data_dir / f"{self.prefix}_{source}_{start:%Y%m%d}_{end:%Y%m%d}.json"

    @property
    def validated_path(self) -> Path:
        return self.data_dir / f"{self.prefix}_validated.json"

    @property
    def anomalies_path(self) -> Path:
        return self.data_dir / f"{self.prefix}_anomalies.json"

    @property
    def analysis_path(self) -> Path:
        return self.data_dir / f"{self.prefix}_analysis.json"

    # ============================================
    # Raw per-source series
    # ============================================

    def save_raw(self, source: str, records: Sequence[KlineRecord], start: dt.date, end: dt.date) -> Path:
        path = self.raw_path(source, start, end)
        self._write_json(path, _KLINES.dump_python(list(records), mode="json", by_alias=True))
        logger.info(f"Saved {len(records)} {source} klines to {path}")
        return path

    def load_raw(self, path: Path) -> List[KlineRecord]:
        return _KLINES.validate_python(self._read_json(Path(path)))

    # ============================================
    # Validated dataset
    # ============================================

    def save_validated(self, records: Sequence[MergedDayRecord]) -> Path:
        self._write_json(self.validated_path, _MERGED.dump_python(list(records), mode="json", by_alias=True))
        logger.info(f"Saved {len(records)} validated days to {self.validated_path}")
        return self.validated_path

    def load_validated(self) -> Optional[List[MergedDayRecord]]:
        """
        Load the persisted validated dataset.

        Returns:
            The records, or None when no dataset has been written yet
        """
        if not self.validated_path.exists():
            return None
        return _MERGED.validate_python(self._read_json(self.validated_path))

    def latest_date(self) -> Optional[dt.date]:
        """Date of the newest persisted validated day, if any."""
        records = self.load_validated()
        if not records:
            return None
        return max(record.date for record in records)

    # ============================================
    # Anomalies & analysis
    # ============================================

    def save_anomalies(self, anomalies: Dict[AnomalyKind, List[AnomalyEntry]]) -> Path:
        self._write_json(self.anomalies_path, _ANOMALIES.dump_python(anomalies, mode="json", by_alias=True))
        logger.info(f"Saved anomalies to {self.anomalies_path}")
        return self.anomalies_path

    def load_anomalies(self) -> Optional[Dict[AnomalyKind, List[AnomalyEntry]]]:
        if not self.anomalies_path.exists():
            return None
        return _ANOMALIES.validate_python(self._read_json(self.anomalies_path))

    def save_analysis(self, analysis: AnalysisResult) -> Path:
        self._write_json(self.analysis_path, analysis.model_dump(mode="json", by_alias=True))
        logger.info(f"Saved analysis to {self.analysis_path}")
        return self.analysis_path

    def load_analysis(self) -> Optional[AnalysisResult]:
        if not self.analysis_path.exists():
            return None
        return AnalysisResult.model_validate(self._read_json(self.analysis_path))

    # ============================================
    # File helpers
    # ============================================

    def _write_json(self, path: Path, document: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2, ensure_ascii=False)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    @staticmethod
    def _read_json(path: Path) -> Any:
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)

    def __repr__(self) -> str:
        return f"<JsonStore(data_dir='{self.data_dir}', prefix='{self.prefix}')>"
