"""Data models for the harvester."""

import enum
from dataclasses import dataclass, field
from typing import Optional


class OutcomeStatus(enum.Enum):
    SAVED = "saved"
    SKIPPED_PRESENT = "present"
    SKIPPED_NOT_FOUND = "not_found"
    FAILED = "failed"


FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class DownloadTask:
    url: str
    dest: str  # relative to the artifact cache root


@dataclass(frozen=True)
class DownloadOutcome:
    status: OutcomeStatus
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is not OutcomeStatus.FAILED

    @property
    def fatal(self) -> bool:
        # A 403 means access has been revoked; the batch must stop
        return self.status is OutcomeStatus.FAILED and self.reason == FORBIDDEN

    @classmethod
    def saved(cls):
        return cls(OutcomeStatus.SAVED)

    @classmethod
    def present(cls):
        return cls(OutcomeStatus.SKIPPED_PRESENT)

    @classmethod
    def not_found(cls):
        return cls(OutcomeStatus.SKIPPED_NOT_FOUND)

    @classmethod
    def failed(cls, reason: str):
        return cls(OutcomeStatus.FAILED, reason)


class MergeResult(enum.Enum):
    INSERTED = "inserted"
    REPLACED = "replaced"
    UNCHANGED = "unchanged"
    KEPT_EXISTING = "kept_existing"


@dataclass
class BatchSummary:
    saved: int = 0
    present: int = 0
    not_found: int = 0
    failed: int = 0
    halted: bool = False
    failures: list = field(default_factory=list)  # (task, reason)

    def record(self, task: DownloadTask, outcome: DownloadOutcome):
        if outcome.status is OutcomeStatus.SAVED:
            self.saved += 1
        elif outcome.status is OutcomeStatus.SKIPPED_PRESENT:
            self.present += 1
        elif outcome.status is OutcomeStatus.SKIPPED_NOT_FOUND:
            self.not_found += 1
        else:
            self.failed += 1
            self.failures.append((task, outcome.reason))

    @property
    def total(self) -> int:
        return self.saved + self.present + self.not_found + self.failed
