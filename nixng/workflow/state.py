"""
Workflow Stage Tracking

Records what happened at each stage of a rebuild for logging and tests.
Nothing is persisted between invocations.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class StageStatus(str, Enum):
    """Status of a workflow stage."""
    PENDING = "pending"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    WARNED = "warned"
    FAILED = "failed"


@dataclass
class StageRecord:
    """Outcome of a single stage."""
    name: str
    status: StageStatus = StageStatus.PENDING
    message: str = ""


class StageLog:
    """Ordered stage records of one workflow run."""

    def __init__(self):
        self.records: List[StageRecord] = []

    def record(self, name: str, status: StageStatus, message: str = "") -> StageRecord:
        entry = StageRecord(name=name, status=status, message=message)
        self.records.append(entry)
        return entry

    def get(self, name: str) -> Optional[StageRecord]:
        for entry in self.records:
            if entry.name == name:
                return entry
        return None

    def status_of(self, name: str) -> Optional[StageStatus]:
        entry = self.get(name)
        return entry.status if entry else None

    def names(self, status: Optional[StageStatus] = None) -> List[str]:
        return [r.name for r in self.records if status is None or r.status == status]

    def summary(self) -> str:
        return ", ".join(f"{r.name}={r.status.value}" for r in self.records)
