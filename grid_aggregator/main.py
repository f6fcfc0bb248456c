# grid_aggregator/main.py

import asyncio
import logging
import sys
import time

from grid_aggregator.application.aggregator_service import AggregatorService
from grid_aggregator.application.batching import generate_serial_numbers
from grid_aggregator.core.config import Settings, settings
from grid_aggregator.core.logging_config import configure_logging
from grid_aggregator.core.rate_limiter import RateLimiter
from grid_aggregator.domain.models.aggregate_result import AggregateResult
from grid_aggregator.infrastructure.energy_grid.energy_grid_client import EnergyGridClient
from grid_aggregator.interfaces.reporting.summary_reporter import (
    render_summary,
    summarize,
)

logger = logging.getLogger(__name__)


async def fetch_all_device_data(config: Settings = settings) -> AggregateResult:
    serial_numbers = generate_serial_numbers(config.DEVICE_COUNT, config.SERIAL_PREFIX)
    logger.info(
        f"Generated {len(serial_numbers)} serial numbers "
        f"({serial_numbers[0]} to {serial_numbers[-1]})"
    )

    rate_limiter = RateLimiter(config.RATE_LIMIT_MS)

    async with EnergyGridClient.from_settings(config) as client:
        aggregator = AggregatorService(client, rate_limiter, config.BATCH_SIZE)
        return await aggregator.run(serial_numbers)


async def main() -> int:
    configure_logging()
    logger.info("EnergyGrid Data Aggregator")

    start = time.monotonic()
    try:
        result = await fetch_all_device_data()
    except Exception as exc:
        logger.exception(f"Fatal error: {exc}")
        return 1

    render_summary(summarize(result, time.monotonic() - start), result)
    logger.info("Data aggregation complete!")
    return 0


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Aggregator stopping due to keyboard interrupt.")
        sys.exit(130)


if __name__ == "__main__":
    run()
