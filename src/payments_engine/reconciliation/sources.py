"""Sources of already-deserialized transaction records."""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError

from .models import DateRange, TransactionRecord

logger = logging.getLogger(__name__)


class RecordSource(ABC):
    """Base class for transaction record sources."""

    @abstractmethod
    def fetch_records(
        self,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[TransactionRecord]:
        """Fetch records created within the given time range.

        Args:
            start_time: Start of the time range (inclusive), or None.
            end_time: End of the time range (inclusive), or None.

        Returns:
            List of TransactionRecord objects.
        """
        raise NotImplementedError


class InMemoryRecordSource(RecordSource):
    """Serves records held in memory, e.g. a decoded API response."""

    def __init__(self, records: Sequence[Union[TransactionRecord, Dict[str, Any]]] = ()):
        self._records = [
            r if isinstance(r, TransactionRecord) else TransactionRecord.model_validate(r)
            for r in records
        ]

    def fetch_records(
        self,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[TransactionRecord]:
        period = DateRange(start=start_time, end=end_time)
        return [r for r in self._records if period.contains(r.created_at)]


class JsonFileRecordSource(RecordSource):
    """Reads records from a JSON file.

    The file holds either a list of records or an object with a ``data``
    list, the shape of a paginated upstream response.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load(self) -> List[TransactionRecord]:
        with open(self.path) as f:
            payload = json.load(f)
        rows = payload.get("data", []) if isinstance(payload, dict) else payload
        if not isinstance(rows, list):
            raise ValueError(f"{self.path}: expected a list of records")

        records = []
        for index, row in enumerate(rows):
            try:
                records.append(TransactionRecord.model_validate(row))
            except ValidationError as e:
                raise ValueError(f"{self.path}: invalid record at index {index}: {e}") from e
        logger.info(f"Loaded {len(records)} records from {self.path}")
        return records

    def fetch_records(
        self,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[TransactionRecord]:
        return InMemoryRecordSource(self._load()).fetch_records(start_time, end_time)


def get_record_source(kind: str = "memory", **kwargs: Any) -> RecordSource:
    """Factory function to get a record source.

    Args:
        kind: Source kind ('memory' or 'json').
        **kwargs: Arguments for the source constructor.

    Returns:
        RecordSource implementation.

    Raises:
        ValueError: If the kind is not supported.
    """
    sources = {
        "memory": InMemoryRecordSource,
        "json": JsonFileRecordSource,
    }

    source_class = sources.get(kind.lower())
    if not source_class:
        raise ValueError(f"Unsupported record source: {kind}")

    return source_class(**kwargs)
