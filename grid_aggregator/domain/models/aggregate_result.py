from dataclasses import dataclass, field
from typing import List

from grid_aggregator.domain.device.device_model import DeviceReading
from grid_aggregator.domain.errors import FailureKind


@dataclass
class BatchFailure:
    batch_index: int
    identifiers: List[str]
    kind: FailureKind
    message: str


@dataclass
class AggregateResult:
    readings: List[DeviceReading] = field(default_factory=list)
    resolved_count: int = 0
    failed_count: int = 0
    batch_count: int = 0
    failures: List[BatchFailure] = field(default_factory=list)

    @property
    def total_devices(self) -> int:
        return self.resolved_count + self.failed_count
