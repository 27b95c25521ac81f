"""
Recorded session ingestion.

A recording is a file of raw sensor rows captured from a paired device, one row
per reading. Supported containers are CSV (header row required), a JSON array,
and NDJSON. Rows come back as plain dicts; turning them into typed samples is
the normalizer's job.

Design:
- Iterator-based for memory efficiency with long sessions
- Malformed rows are logged and skipped
- File-level problems (missing file, broken JSON array) raise RecordingIngestionError
"""

import csv
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterator, Union

from twin_hub.core.exceptions import AnomalyDetectionError

logger = logging.getLogger(__name__)


class RecordingIngestionError(AnomalyDetectionError):
    """Raised when a recording file cannot be read."""
    pass


class BaseRecordingSource(ABC):
    """
    Abstract base class for recording sources.

    Subclasses handle container-specific reading and row-level error handling.
    """

    format_name = "unknown"

    def __init__(self, filepath: Union[str, Path], encoding: str = "utf-8"):
        self.filepath = Path(filepath)
        self.encoding = encoding

        if not self.filepath.exists():
            raise RecordingIngestionError(f"Recording not found: {self.filepath}")

    @abstractmethod
    def rows(self) -> Iterator[Dict[str, Any]]:
        """
        Yield raw rows from the recording.

        Yields:
            Dict of column name -> raw value
        """

    def _tag(self, row: Dict[str, Any], position: int) -> Dict[str, Any]:
        row["_source"] = {
            "path": str(self.filepath),
            "position": position,
            "format": self.format_name,
        }
        return row


class JSONRecordingSource(BaseRecordingSource):
    """
    Reads a JSON array of row objects, or NDJSON (one object per line).

    Example NDJSON:
        {"timestamp": 1760871600000, "sensor": "accelerometer", "x": 0.1, "y": 0.0, "z": 9.8}
        {"timestamp": 1760871600016, "sensor": "performance", "cpu": 41, "memory": 63, "temperature": 36.5}
    """

    format_name = "json"

    def rows(self) -> Iterator[Dict[str, Any]]:
        try:
            content = self.filepath.read_text(encoding=self.encoding).lstrip("\ufeff").strip()
        except (OSError, UnicodeDecodeError) as e:
            raise RecordingIngestionError(f"Failed to read recording: {e}") from e

        if content.startswith("["):
            try:
                items = json.loads(content)
            except json.JSONDecodeError as e:
                raise RecordingIngestionError(f"Invalid JSON array: {e}") from e

            for idx, item in enumerate(items):
                if isinstance(item, dict):
                    yield self._tag(item, idx)
                else:
                    logger.warning(f"Non-object entry at index {idx}: {type(item).__name__}")
            return

        for line_num, line in enumerate(content.splitlines(), start=1):
            line = line.strip()
            if not line:
                continue
            try:
                item = json.loads(line)
            except json.JSONDecodeError:
                logger.warning(f"Malformed JSON at line {line_num}: {line[:100]}")
                continue
            if isinstance(item, dict):
                yield self._tag(item, line_num)
            else:
                logger.warning(f"NDJSON line {line_num} is not an object")


class CSVRecordingSource(BaseRecordingSource):
    """
    Reads a CSV recording. The first row must be a header.

    Example:
        timestamp,sensor,x,y,z,cpu,memory,temperature
        1760871600000,accelerometer,0.1,0.0,9.8,,,
        1760871600000,performance,,,,41,63,36.5
    """

    format_name = "csv"

    def __init__(
        self,
        filepath: Union[str, Path],
        encoding: str = "utf-8",
        delimiter: str = ",",
    ):
        super().__init__(filepath, encoding)
        self.delimiter = delimiter

    def rows(self) -> Iterator[Dict[str, Any]]:
        try:
            with open(self.filepath, "r", encoding=self.encoding, newline="") as f:
                reader = csv.DictReader(f, delimiter=self.delimiter)
                if reader.fieldnames is None:
                    raise RecordingIngestionError("CSV recording is empty")
                reader.fieldnames = [name.lstrip("\ufeff").strip() for name in reader.fieldnames]

                for line_num, row in enumerate(reader, start=2):
                    if not row or all(v in (None, "") for v in row.values()):
                        logger.warning(f"Empty row at line {line_num}")
                        continue
                    # Drop empty cells so the normalizer sees missing fields as missing
                    cleaned = {k: v for k, v in row.items() if k and v not in (None, "")}
                    yield self._tag(cleaned, line_num)
        except RecordingIngestionError:
            raise
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            logger.error(f"Error reading CSV recording {self.filepath}: {e}")
            raise RecordingIngestionError(f"Failed to read CSV recording: {e}") from e


def ingest_recording(
    filepath: Union[str, Path],
    format: str = "auto",
) -> Iterator[Dict[str, Any]]:
    """
    Yield raw rows from a recording file.

    Args:
        filepath: Path to the recording
        format: "csv", "json", or "auto" (detected from the file extension)

    Raises:
        RecordingIngestionError: If the file is missing or the format is unknown
    """
    filepath = Path(filepath)

    if format == "auto":
        suffix = filepath.suffix.lower()
        if suffix in (".json", ".ndjson", ".jsonl"):
            format = "json"
        elif suffix == ".csv":
            format = "csv"
        else:
            raise RecordingIngestionError(f"Cannot detect recording format for {filepath.name}")

    if format == "csv":
        source: BaseRecordingSource = CSVRecordingSource(filepath)
    elif format == "json":
        source = JSONRecordingSource(filepath)
    else:
        raise RecordingIngestionError(f"Unknown format: {format}")

    yield from source.rows()
