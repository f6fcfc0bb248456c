import logging
from typing import Optional, Sequence

from grid_aggregator.application.batching import create_batches, validate_population
from grid_aggregator.core.rate_limiter import RateLimiter
from grid_aggregator.domain.errors import RequestFailure
from grid_aggregator.domain.models.aggregate_result import AggregateResult, BatchFailure
from grid_aggregator.infrastructure.energy_grid.energy_grid_client import EnergyGridClient

logger = logging.getLogger(__name__)


class AggregatorService:
    """Pushes batches through the client one at a time.

    Every attempt, retries included, is admitted by the shared rate limiter.
    """

    def __init__(
        self,
        client: EnergyGridClient,
        rate_limiter: RateLimiter,
        batch_size: int,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")

        self.client = client
        self.rate_limiter = rate_limiter
        self.batch_size = batch_size

    async def run(
        self,
        population: Sequence[str],
        result: Optional[AggregateResult] = None,
    ) -> AggregateResult:
        validate_population(population)
        batches = create_batches(population, self.batch_size)

        result = result if result is not None else AggregateResult()
        total = len(batches)

        logger.info(
            f"Fetching {len(population)} devices in {total} batches "
            f"({self.batch_size} devices per batch). "
            f"Estimated time: ~{total * self.rate_limiter.interval_ms / 1000:.0f}s"
        )

        for index, batch in enumerate(batches):
            batch_number = index + 1

            try:
                readings = await self.client.execute(batch, admit=self.rate_limiter.admit)
            except RequestFailure as exc:
                result.failed_count += len(batch)
                result.failures.append(
                    BatchFailure(
                        batch_index=index,
                        identifiers=list(batch),
                        kind=exc.kind,
                        message=str(exc),
                    )
                )
                logger.error(
                    f"[{batch_number}/{total}] Batch {batch_number} failed "
                    f"({exc.kind.value}): {exc}"
                )
            else:
                result.readings.extend(readings)
                result.resolved_count += len(batch)
                progress = batch_number / total * 100
                logger.info(
                    f"[{batch_number}/{total}] Batch {batch_number} complete "
                    f"({len(batch)} devices) - Progress: {progress:.1f}%"
                )
            finally:
                result.batch_count += 1

        return result
