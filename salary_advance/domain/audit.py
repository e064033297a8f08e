"""Audit log accumulated across import, backfill and scoring"""

from typing import Any, Dict, Iterable, List

from salary_advance.domain.models import AuditLogEntry
from salary_advance.schemas import audit_entry_to_dict


class AuditLog:
    """
    Ordered collection of audit entries for one pipeline invocation.

    Import entries are kept sorted by record_index no matter in which order
    records were applied. Entries without an index (backfill, scoring) follow
    in the order they were appended.
    """

    def __init__(self, entries: Iterable[AuditLogEntry] = ()):
        self._indexed: List[AuditLogEntry] = []
        self._unindexed: List[AuditLogEntry] = []
        self.extend(entries)

    def append(self, entry: AuditLogEntry) -> None:
        if entry.record_index is None:
            self._unindexed.append(entry)
        else:
            self._indexed.append(entry)

    def extend(self, entries: Iterable[AuditLogEntry]) -> None:
        for entry in entries:
            self.append(entry)

    @property
    def entries(self) -> List[AuditLogEntry]:
        # sorted() is stable, so duplicate indexes keep insertion order
        return sorted(self._indexed, key=lambda e: e.record_index) + list(self._unindexed)

    @property
    def rejected(self) -> List[AuditLogEntry]:
        return [e for e in self.entries if not e.verified]

    def __len__(self) -> int:
        return len(self._indexed) + len(self._unindexed)

    def __iter__(self):
        return iter(self.entries)

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [audit_entry_to_dict(entry) for entry in self.entries]
