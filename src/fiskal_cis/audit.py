"""
Audit sinks

The service hands every attempt to a sink exactly once, after the
attempt has finished. Persistence proper lives outside this package;
``JsonLinesAuditSink`` is the file-backed implementation shipped for
standalone use.
"""

import logging
import threading
from pathlib import Path
from typing import List, Protocol, Union, runtime_checkable

from fiskal_cis.models.audit import AuditRecord

logger = logging.getLogger(__name__)


@runtime_checkable
class AuditSink(Protocol):
    """Receives one record per fiscalization attempt"""

    def record(self, entry: AuditRecord) -> None:
        ...


class JsonLinesAuditSink:
    """
    Appends audit records to a file, one JSON object per line

    Example:
        >>> sink = JsonLinesAuditSink('./logs/fiskal-audit.jsonl')
        >>> service = FiscalizationService(credential, transport, audit_sink=sink)
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def record(self, entry: AuditRecord) -> None:
        line = entry.model_dump_json()
        with self._lock:
            with open(self._path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        logger.debug("Audit record %s written to %s", entry.correlation_id, self._path)


class MemoryAuditSink:
    """Keeps records in memory; useful in tests and short-lived scripts"""

    def __init__(self) -> None:
        self.records: List[AuditRecord] = []

    def record(self, entry: AuditRecord) -> None:
        self.records.append(entry)
