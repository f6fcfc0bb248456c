# grid_aggregator/infrastructure/energy_grid/energy_grid_client.py
import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from grid_aggregator.core.config import Settings, settings
from grid_aggregator.core.signature import (
    current_timestamp_ms,
    generate_signature,
    request_path,
)
from grid_aggregator.domain.device.device_model import (
    DeviceReading,
    DeviceReadingsResponse,
)
from grid_aggregator.domain.errors import (
    BatchTooLarge,
    EndpointUnreachable,
    FailureKind,
    PermanentRequestError,
    RateLimitExceeded,
    RequestFailure,
    RetryableRequestError,
    SignatureMismatch,
    UnexpectedResponse,
)

logger = logging.getLogger(__name__)


class EnergyGridClient:
    """Signed POST client for the EnergyGrid device query endpoint.

    Every attempt gets a fresh timestamp and signature. Rate-limit
    rejections and connection failures are retried with a fixed delay;
    anything else fails the batch immediately.
    """

    def __init__(
        self,
        api_url: str,
        token: str,
        *,
        max_retries: int = 3,
        retry_delay_ms: int = 2000,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now_ms: Callable[[], int] = current_timestamp_ms,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if retry_delay_ms < 0:
            raise ValueError("retry_delay_ms must be >= 0")

        self.api_url = api_url
        self.path = request_path(api_url)
        self._token = token
        self.max_retries = max_retries
        self.retry_delay_ms = retry_delay_ms
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._sleep = sleep
        self._now_ms = now_ms

    @classmethod
    def from_settings(cls, config: Settings = settings, **kwargs) -> "EnergyGridClient":
        return cls(
            config.API_URL,
            config.API_TOKEN,
            max_retries=config.MAX_RETRIES,
            retry_delay_ms=config.RETRY_DELAY_MS,
            timeout=config.REQUEST_TIMEOUT,
            **kwargs,
        )

    async def __aenter__(self) -> "EnergyGridClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    def _signed_headers(self) -> Dict[str, str]:
        timestamp = str(self._now_ms())
        return {
            "signature": generate_signature(self.path, self._token, timestamp),
            "timestamp": timestamp,
            "Content-Type": "application/json",
        }

    async def _send(self, sn_list: Sequence[str]) -> List[DeviceReading]:
        try:
            response = await self._http.post(
                self.api_url,
                json={"sn_list": list(sn_list)},
                headers=self._signed_headers(),
            )
        except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
            raise EndpointUnreachable(f"Endpoint unreachable: {exc}") from exc
        except httpx.RequestError as exc:
            raise UnexpectedResponse(f"Transport error: {exc!r}") from exc

        status = response.status_code
        if status == 429:
            raise RateLimitExceeded("Rate limit exceeded", status_code=status)
        if status == 401:
            raise SignatureMismatch("Invalid signature", status_code=status)
        if status == 400:
            raise BatchTooLarge(f"Bad request: {response.text}", status_code=status)
        if response.is_error:
            raise UnexpectedResponse(
                f"Unexpected status {status}: {response.text}", status_code=status
            )

        try:
            parsed = DeviceReadingsResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise UnexpectedResponse(f"Malformed response body: {exc}") from exc

        return parsed.data

    async def execute(
        self,
        batch: Sequence[str],
        attempt: int = 0,
        admit: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> List[DeviceReading]:
        """Send one batch, retrying retryable failures with a fixed delay.

        ``admit`` is awaited before every attempt, retries included, so a
        shared rate limiter spaces out all requests that reach the endpoint.
        """
        if not batch:
            raise ValueError("batch must not be empty")

        while True:
            try:
                if admit is not None:
                    await admit()
                readings = await self._send(batch)
                return self._match_readings(batch, readings)

            except RetryableRequestError as exc:
                if attempt >= self.max_retries:
                    raise RequestFailure(
                        FailureKind.RETRIES_EXHAUSTED, exc, attempts=attempt + 1
                    ) from exc

                logger.warning(
                    f"Request failed ({exc.status_code or exc}). "
                    f"Retrying in {self.retry_delay_ms}ms... "
                    f"(Attempt {attempt + 1}/{self.max_retries})"
                )
                await self._sleep(self.retry_delay_ms / 1000)
                attempt += 1

            except PermanentRequestError as exc:
                raise RequestFailure(FailureKind.REJECTED, exc, attempts=attempt + 1) from exc

    @staticmethod
    def _match_readings(
        batch: Sequence[str], readings: List[DeviceReading]
    ) -> List[DeviceReading]:
        by_sn: Dict[str, DeviceReading] = {}
        duplicates: List[str] = []
        for reading in readings:
            if reading.sn in by_sn:
                duplicates.append(reading.sn)
                continue
            by_sn[reading.sn] = reading

        if duplicates:
            logger.warning(f"Ignoring duplicate readings for: {sorted(set(duplicates))}")

        unexpected = set(by_sn) - set(batch)
        if unexpected:
            logger.warning(f"Dropping readings for unrequested devices: {sorted(unexpected)}")

        missing = [sn for sn in batch if sn not in by_sn]
        if missing:
            logger.warning(f"EnergyGrid returned no reading for: {missing}")

        return [by_sn[sn] for sn in batch if sn in by_sn]
