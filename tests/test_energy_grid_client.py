from __future__ import annotations

import asyncio
import json
import logging

import httpx
import pytest

from fakes import API_PATH, API_URL, TOKEN, FakeEnergyGrid, grid_client

from grid_aggregator.core.config import Settings
from grid_aggregator.core.signature import generate_signature
from grid_aggregator.domain.device.enums import DeviceStatus
from grid_aggregator.domain.errors import (
    BatchTooLarge,
    EndpointUnreachable,
    FailureKind,
    RateLimitExceeded,
    RequestFailure,
    SignatureMismatch,
    UnexpectedResponse,
)
from grid_aggregator.infrastructure.energy_grid.energy_grid_client import EnergyGridClient

BATCH = [f"SN-{i:03d}" for i in range(10)]


def run_execute(grid, clock, batch=BATCH, **kwargs):
    async def scenario():
        async with grid_client(grid, clock, **kwargs) as client:
            return await client.execute(batch)

    return asyncio.run(scenario())


def test_execute_sends_signed_request(clock):
    grid = FakeEnergyGrid()

    readings = run_execute(grid, clock)

    assert len(grid.requests) == 1
    request = grid.requests[0]
    assert request.method == "POST"
    assert request.url.path == API_PATH
    assert json.loads(request.content) == {"sn_list": BATCH}
    assert request.headers["timestamp"] == str(clock.now_ms())
    assert request.headers["signature"] == generate_signature(
        API_PATH, TOKEN, request.headers["timestamp"]
    )
    assert len(readings) == 10


def test_execute_matches_readings_by_identifier(clock):
    # fake endpoint answers in reverse order
    readings = run_execute(FakeEnergyGrid(), clock)

    assert [r.sn for r in readings] == BATCH
    assert readings[0].status == DeviceStatus.ONLINE
    assert readings[1].status == DeviceStatus.OFFLINE
    assert readings[3].power == "3.5 kW"


@pytest.mark.parametrize("failures", [1, 2, 3])
def test_retryable_failures_then_success(clock, failures):
    grid = FakeEnergyGrid(script=[429] * failures)

    readings = run_execute(grid, clock, max_retries=3, retry_delay_ms=2000)

    assert len(readings) == 10
    assert len(grid.requests) == failures + 1
    assert len(set(grid.timestamps)) == failures + 1
    assert len(set(grid.signatures)) == failures + 1
    # fixed backoff, not exponential
    assert clock.sleeps == [2.0] * failures


def test_connection_failure_is_retried(clock):
    grid = FakeEnergyGrid(script=["connect", "connect"])

    readings = run_execute(grid, clock)

    assert len(readings) == 10
    assert len(grid.requests) == 3


def test_retries_exhausted_after_max_retries_plus_one(clock):
    grid = FakeEnergyGrid(always=429)

    with pytest.raises(RequestFailure) as exc_info:
        run_execute(grid, clock, max_retries=3)

    failure = exc_info.value
    assert failure.kind == FailureKind.RETRIES_EXHAUSTED
    assert isinstance(failure.cause, RateLimitExceeded)
    assert failure.attempts == 4
    assert len(grid.requests) == 4
    assert "Failed after 3 retries" in str(failure)


def test_unreachable_exhaustion_keeps_cause(clock):
    grid = FakeEnergyGrid(always="connect")

    with pytest.raises(RequestFailure) as exc_info:
        run_execute(grid, clock, max_retries=1)

    assert exc_info.value.kind == FailureKind.RETRIES_EXHAUSTED
    assert isinstance(exc_info.value.cause, EndpointUnreachable)
    assert len(grid.requests) == 2


@pytest.mark.parametrize(
    "status, cause_type",
    [(401, SignatureMismatch), (400, BatchTooLarge), (500, UnexpectedResponse)],
)
def test_non_retryable_status_fails_after_one_attempt(clock, status, cause_type):
    grid = FakeEnergyGrid(always=status)

    with pytest.raises(RequestFailure) as exc_info:
        run_execute(grid, clock)

    assert exc_info.value.kind == FailureKind.REJECTED
    assert isinstance(exc_info.value.cause, cause_type)
    assert exc_info.value.cause.status_code == status
    assert len(grid.requests) == 1
    assert clock.sleeps == []


def test_wrong_token_is_rejected_by_endpoint(clock):
    grid = FakeEnergyGrid(token="server_token")

    with pytest.raises(RequestFailure) as exc_info:
        run_execute(grid, clock, token="client_token")

    assert isinstance(exc_info.value.cause, SignatureMismatch)
    assert len(grid.requests) == 1


def test_oversized_batch_is_rejected(clock):
    grid = FakeEnergyGrid(max_batch=5)

    with pytest.raises(RequestFailure) as exc_info:
        run_execute(grid, clock)

    assert isinstance(exc_info.value.cause, BatchTooLarge)


def test_malformed_body_is_not_retried(clock):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"unexpected": True})

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = EnergyGridClient(
                API_URL, TOKEN, http_client=http, sleep=clock.sleep, now_ms=clock.now_ms
            )
            return await client.execute(["SN-000"])

    with pytest.raises(RequestFailure) as exc_info:
        asyncio.run(scenario())

    assert exc_info.value.kind == FailureKind.REJECTED
    assert isinstance(exc_info.value.cause, UnexpectedResponse)
    assert len(calls) == 1


def test_unrequested_and_missing_readings(clock):
    def handler(request):
        return httpx.Response(
            200,
            json={
                "data": [
                    {"sn": "SN-999", "power": "1.0 kW", "status": "Online", "last_updated": "x"},
                    {"sn": "SN-001", "power": "2.0 kW", "status": "Offline", "last_updated": "x"},
                ]
            },
        )

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = EnergyGridClient(API_URL, TOKEN, http_client=http, now_ms=clock.now_ms)
            return await client.execute(["SN-000", "SN-001"])

    readings = asyncio.run(scenario())

    assert [r.sn for r in readings] == ["SN-001"]


def test_empty_batch_rejected(clock):
    with pytest.raises(ValueError):
        run_execute(FakeEnergyGrid(), clock, batch=[])


def test_from_settings_uses_configured_values(monkeypatch):
    monkeypatch.setenv("API_URL", "http://grid.example/device/real/query")
    monkeypatch.setenv("MAX_RETRIES", "5")
    monkeypatch.setenv("RETRY_DELAY_MS", "250")

    async def scenario():
        async with EnergyGridClient.from_settings(Settings()) as client:
            return client

    client = asyncio.run(scenario())

    assert client.path == "/device/real/query"
    assert client.max_retries == 5
    assert client.retry_delay_ms == 250


def test_admit_hook_runs_before_every_attempt(clock):
    grid = FakeEnergyGrid(script=[429, "connect"])
    admitted: list[int] = []

    async def admit():
        admitted.append(len(grid.requests))

    async def scenario():
        async with grid_client(grid, clock, retry_delay_ms=0) as client:
            return await client.execute(BATCH, admit=admit)

    readings = asyncio.run(scenario())

    assert len(readings) == 10
    # each admission happens before the request it gates
    assert admitted == [0, 1, 2]
    assert len(grid.requests) == 3


def test_duplicate_readings_are_logged_and_ignored(clock, caplog):
    def handler(request):
        return httpx.Response(
            200,
            json={
                "data": [
                    {"sn": "SN-000", "power": "1.0 kW", "status": "Online", "last_updated": "x"},
                    {"sn": "SN-000", "power": "9.0 kW", "status": "Offline", "last_updated": "x"},
                    {"sn": "SN-001", "power": "2.0 kW", "status": "Offline", "last_updated": "x"},
                ]
            },
        )

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = EnergyGridClient(API_URL, TOKEN, http_client=http, now_ms=clock.now_ms)
            return await client.execute(["SN-000", "SN-001"])

    with caplog.at_level(logging.WARNING):
        readings = asyncio.run(scenario())

    assert [r.power for r in readings] == ["1.0 kW", "2.0 kW"]
    assert "duplicate readings for: ['SN-000']" in caplog.text
