from __future__ import annotations

from typing import Dict, Iterable, List

from .models import FactRecord, ReportCollection, ReportKind


class ReportAggregator:
    """Append-only per-kind collections, in host-processing order."""

    def __init__(self, kinds: Iterable[ReportKind]):
        self._collections: Dict[ReportKind, ReportCollection] = {k: ReportCollection(kind=k) for k in kinds}

    def add(self, record: FactRecord):
        if record.kind not in self._collections:
            raise KeyError(f"Report kind not requested: {record.kind.value}")
        self._collections[record.kind].records.append(record)

    def collection(self, kind: ReportKind) -> ReportCollection:
        return self._collections[kind]

    def collections(self) -> List[ReportCollection]:
        return list(self._collections.values())

    def is_empty(self) -> bool:
        return not any(len(c) for c in self._collections.values())
