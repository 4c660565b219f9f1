"""
Unit tests for the reading hub and the feed dispatcher.

Tests verify:
- ReadingHub delivers to every listener; unsubscribe handles detach.
- A failing listener does not prevent delivery to the others.
- ATTR messages are normalized, enriched and published with the ingestion time.
- External voltages within 207-253 V are applied only when enabled.
- Non-Online LWT payloads are logged.
- Unknown operation modes are logged; invalid JSON is skipped.
- Raw debug snapshots are logged every N messages.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock

import pytest
from altherma_edge.src.config import EdgeSettings
from altherma_edge.src.exceptions import UnitProcessingError
from altherma_edge.src.feed import FeedDispatcher, ReadingHub, parse_voltage
from altherma_edge.src.models import NormalizedReading, OperationMode

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_TS = datetime(2026, 1, 15, 10, 0, 0, tzinfo=UTC)

_ATTR = json.dumps(
    {
        "Operation Mode": "Heating",
        "INV primary current (A)": "4.2",
        "Flow sensor (l/min)": "10.0",
        "Inlet water temp.(R4T)": "30.0",
    }
)


def _dispatcher(hub: ReadingHub | None = None, **settings: Any) -> tuple[FeedDispatcher, ReadingHub]:
    hub = hub or ReadingHub()
    return FeedDispatcher(EdgeSettings(**settings), hub, clock=lambda: _TS), hub


def _collecting_hub() -> tuple[ReadingHub, list[NormalizedReading]]:
    hub = ReadingHub()
    received: list[NormalizedReading] = []

    async def _listener(reading: NormalizedReading) -> None:
        received.append(reading)

    hub.subscribe(_listener)
    return hub, received


# ---------------------------------------------------------------------------
# ReadingHub
# ---------------------------------------------------------------------------


class TestReadingHub:
    """Fan-out with unsubscribe handles."""

    @pytest.mark.asyncio
    async def test_delivers_to_all_listeners(self) -> None:
        hub = ReadingHub()
        first, second = AsyncMock(), AsyncMock()
        hub.subscribe(first)
        hub.subscribe(second)
        reading = NormalizedReading(received_at=_TS)

        failures = await hub.publish(reading)

        assert failures == 0
        first.assert_awaited_once_with(reading)
        second.assert_awaited_once_with(reading)

    @pytest.mark.asyncio
    async def test_unsubscribe_detaches(self) -> None:
        hub = ReadingHub()
        listener = AsyncMock()
        unsubscribe = hub.subscribe(listener)

        unsubscribe()
        unsubscribe()
        await hub.publish(NormalizedReading(received_at=_TS))

        listener.assert_not_awaited()
        assert hub.listener_count == 0

    @pytest.mark.asyncio
    async def test_failing_listener_isolated(self, caplog: pytest.LogCaptureFixture) -> None:
        hub = ReadingHub()
        failing = AsyncMock(side_effect=UnitProcessingError("heatpump", "publish"))
        crashing = AsyncMock(side_effect=RuntimeError("boom"))
        healthy = AsyncMock()
        hub.subscribe(failing)
        hub.subscribe(crashing)
        hub.subscribe(healthy)

        with caplog.at_level(logging.WARNING):
            failures = await hub.publish(NormalizedReading(received_at=_TS))

        assert failures == 2
        healthy.assert_awaited_once()
        assert "Unit 'heatpump' failed during publish" in caplog.text


# ---------------------------------------------------------------------------
# ATTR handling
# ---------------------------------------------------------------------------


class TestAttrMessages:
    """ATTR payloads become published readings."""

    @pytest.mark.asyncio
    async def test_attr_published(self) -> None:
        hub, received = _collecting_hub()
        dispatcher, _ = _dispatcher(hub)

        reading = await dispatcher.handle_message("espaltherma/ATTR", _ATTR)

        assert reading is not None
        assert received == [reading]
        assert reading.operation_mode is OperationMode.HEATING
        assert reading.inv_primary_current == 4.2
        assert reading.received_at == _TS
        assert (reading.voltage_l1, reading.voltage_l2, reading.voltage_l3) == (230.0, 230.0, 230.0)
        assert dispatcher.message_count == 1

    @pytest.mark.asyncio
    async def test_other_topics_ignored(self) -> None:
        hub, received = _collecting_hub()
        dispatcher, _ = _dispatcher(hub)

        assert await dispatcher.handle_message("espaltherma/STATE", "{}") is None
        assert await dispatcher.handle_message("other/ATTR", _ATTR) is None
        assert received == []

    @pytest.mark.asyncio
    async def test_invalid_json_skipped(self) -> None:
        hub, received = _collecting_hub()
        dispatcher, _ = _dispatcher(hub)

        assert await dispatcher.handle_message("espaltherma/ATTR", "not json") is None
        assert received == []
        assert dispatcher.message_count == 0

    @pytest.mark.asyncio
    async def test_unknown_operation_mode_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        dispatcher, _ = _dispatcher()

        with caplog.at_level(logging.INFO):
            await dispatcher.handle_message("espaltherma/ATTR", json.dumps({"Operation Mode": "Cooling"}))

        assert "Operation Mode: Cooling" in caplog.text

    @pytest.mark.asyncio
    async def test_raw_snapshot_every_n(self, caplog: pytest.LogCaptureFixture) -> None:
        dispatcher, _ = _dispatcher(raw_debug_enabled=True, raw_debug_every_n_messages=2)

        with caplog.at_level(logging.WARNING):
            await dispatcher.handle_message("espaltherma/ATTR", _ATTR)
            assert "Raw attribute snapshot" not in caplog.text
            await dispatcher.handle_message("espaltherma/ATTR", _ATTR)

        assert "Raw attribute snapshot" in caplog.text


# ---------------------------------------------------------------------------
# Voltage and LWT topics
# ---------------------------------------------------------------------------


class TestVoltageTopics:
    """External voltage readings."""

    @pytest.mark.asyncio
    async def test_applied_when_enabled(self) -> None:
        hub, received = _collecting_hub()
        dispatcher, _ = _dispatcher(hub, external_voltage_enabled=True)

        await dispatcher.handle_message("espaltherma/grid/voltage1", "236.5")
        await dispatcher.handle_message("espaltherma/grid/voltage3", "228")
        reading = await dispatcher.handle_message("espaltherma/ATTR", _ATTR)

        assert reading is not None
        assert (reading.voltage_l1, reading.voltage_l2, reading.voltage_l3) == (236.5, 230.0, 228.0)

    @pytest.mark.asyncio
    async def test_out_of_range_ignored(self) -> None:
        dispatcher, _ = _dispatcher(external_voltage_enabled=True)

        await dispatcher.handle_message("espaltherma/grid/voltage2", "180")
        await dispatcher.handle_message("espaltherma/grid/voltage2", "garbage")

        assert dispatcher.voltages == (230.0, 230.0, 230.0)

    @pytest.mark.asyncio
    async def test_ignored_when_disabled(self) -> None:
        dispatcher, _ = _dispatcher()

        await dispatcher.handle_message("espaltherma/grid/voltage1", "240")

        assert dispatcher.voltages == (230.0, 230.0, 230.0)

    @pytest.mark.asyncio
    async def test_default_voltage_used(self) -> None:
        dispatcher, _ = _dispatcher(voltage_default=235.0)

        reading = await dispatcher.handle_message("espaltherma/ATTR", _ATTR)

        assert reading is not None
        assert reading.voltage_l2 == 235.0

    @pytest.mark.parametrize(
        ("payload", "expected"),
        [("207", 207.0), ("253.0", 253.0), (" 230.4 ", 230.4), ("206.9", None), ("nan", None), ("", None)],
    )
    def test_parse_voltage(self, payload: str, expected: float | None) -> None:
        assert parse_voltage(payload) == expected


class TestLwt:
    """Bridge liveness sentinel."""

    @pytest.mark.asyncio
    async def test_offline_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        dispatcher, _ = _dispatcher()

        with caplog.at_level(logging.WARNING):
            assert await dispatcher.handle_message("espaltherma/LWT", "Offline") is None

        assert "Bridge LWT: Offline" in caplog.text
        assert dispatcher.last_lwt == "Offline"

    @pytest.mark.asyncio
    async def test_online_not_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        dispatcher, _ = _dispatcher()

        with caplog.at_level(logging.WARNING):
            await dispatcher.handle_message("espaltherma/LWT", "Online")

        assert "Bridge LWT" not in caplog.text
