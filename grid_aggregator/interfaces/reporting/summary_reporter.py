import logging
from dataclasses import dataclass

from grid_aggregator.domain.device.enums import DeviceStatus
from grid_aggregator.domain.models.aggregate_result import AggregateResult

logger = logging.getLogger(__name__)

SEPARATOR = "=" * 50


@dataclass
class RunSummary:
    total_devices: int
    success_count: int
    failure_count: int
    batches_processed: int
    duration_s: float
    online: int
    offline: int

    @property
    def online_pct(self) -> float:
        return self._pct(self.online)

    @property
    def offline_pct(self) -> float:
        return self._pct(self.offline)

    def _pct(self, count: int) -> float:
        reported = self.online + self.offline
        if not reported:
            return 0.0
        return count / reported * 100


def summarize(result: AggregateResult, duration_s: float) -> RunSummary:
    online = sum(1 for r in result.readings if r.status == DeviceStatus.ONLINE)
    offline = sum(1 for r in result.readings if r.status == DeviceStatus.OFFLINE)

    return RunSummary(
        total_devices=result.total_devices,
        success_count=result.resolved_count,
        failure_count=result.failed_count,
        batches_processed=result.batch_count,
        duration_s=round(duration_s, 2),
        online=online,
        offline=offline,
    )


def render_summary(summary: RunSummary, result: AggregateResult, sample_size: int = 5) -> None:
    logger.info(SEPARATOR)
    logger.info("RESULTS SUMMARY")
    logger.info(SEPARATOR)
    logger.info(f"Total Devices Requested: {summary.total_devices}")
    logger.info(f"Successfully Retrieved: {summary.success_count}")
    logger.info(f"Failed: {summary.failure_count}")
    logger.info(f"Total Execution Time: {summary.duration_s:.2f}s")
    logger.info(f"Batches Processed: {summary.batches_processed}")
    logger.info(SEPARATOR)

    samples = result.readings[:sample_size]
    if samples:
        logger.info(f"Sample Data (first {len(samples)} devices):")
        for idx, reading in enumerate(samples, start=1):
            logger.info(
                f"  {idx}. SN: {reading.sn} | Power: {reading.power} | "
                f"Status: {reading.status.value}"
            )

    logger.info("Device Statistics:")
    logger.info(f"  Online: {summary.online} ({summary.online_pct:.1f}%)")
    logger.info(f"  Offline: {summary.offline} ({summary.offline_pct:.1f}%)")

    for failure in result.failures:
        logger.info(
            f"  Failed batch {failure.batch_index + 1} "
            f"({failure.kind.value}): {failure.message}"
        )
