from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List

from loguru import logger


@dataclass
class ItemFailure:
    item_id: int
    error: str


@dataclass
class BatchResult(ABC):
    """Per-batch accumulator: failed items are recorded and the loop moves on."""

    skipped: int = 0
    failures: List[ItemFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def record_failure(self, item_id: int, exc: Exception) -> None:
        self.failures.append(ItemFailure(item_id=item_id, error=f"{type(exc).__name__}: {exc}"))

    def log_failures(self, stage: str) -> None:
        """Emit a single warning line summarising every failed item."""
        if not self.failures:
            return
        details = ", ".join(f"{f.item_id} ({f.error})" for f in self.failures)
        logger.warning(f"{stage}: {self.failed} item(s) failed: {details}")

    @abstractmethod
    def as_dict(self) -> Dict[str, int]:
        """Counters of this batch, as logged and returned by the tick."""
        ...


@dataclass
class MaterializeResult(BatchResult):
    plans_scanned: int = 0
    charges_created: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "plans_scanned": self.plans_scanned,
            "charges_created": self.charges_created,
            "skipped": self.skipped,
            "failed": self.failed,
        }


@dataclass
class DetectionResult(BatchResult):
    processed: int = 0
    notified: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "processed": self.processed,
            "notified": self.notified,
            "skipped": self.skipped,
            "failed": self.failed,
        }
