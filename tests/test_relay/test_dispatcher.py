"""Tests for the fan-out dispatcher and aggregation policy."""

import asyncio
import json
import time

import httpx
import pytest

from src.relay.dispatcher import FanOutDispatcher, aggregate, is_success_status
from src.relay.models import TIMEOUT_OR_ERROR, RelayMethod, TargetOutcome

APP1 = "https://app1.dev/xendit"
APP2 = "https://app2.dev/xendit"

# ============================================================================
# Fixtures
# ============================================================================


def scripted_transport(replies: dict[str, object], calls: list[httpx.Request]):
    """Build a transport answering per URL.

    A reply is a status code, an exception instance to raise, or a
    (delay_seconds, status_code) tuple.
    """

    async def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        reply = replies[str(request.url)]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, tuple):
            delay, status = reply
            await asyncio.sleep(delay)
            return httpx.Response(status)
        return httpx.Response(reply)

    return httpx.MockTransport(handler)


@pytest.fixture
def calls():
    """Outbound requests seen by the transport."""
    return []


def make_dispatcher(replies, calls, timeout=5.0):
    return FanOutDispatcher(timeout=timeout, transport=scripted_transport(replies, calls))


def outcome(success: bool, status: int | str = 200) -> TargetOutcome:
    return TargetOutcome(url=APP1, success=success, status=status)


# ============================================================================
# Success Predicate Tests
# ============================================================================


class TestSuccessPredicate:
    """Tests for is_success_status."""

    @pytest.mark.parametrize("status", [200, 201, 202, 204, 299])
    def test_2xx_is_success(self, status):
        assert is_success_status(status)

    @pytest.mark.parametrize("status", [100, 199, 300, 302, 400, 404, 500, 503])
    def test_other_statuses_fail(self, status):
        assert not is_success_status(status)


# ============================================================================
# Aggregation Tests
# ============================================================================


class TestAggregate:
    """Tests for the pure-OR aggregation policy."""

    def test_single_success(self):
        assert aggregate([outcome(True)]).has_success is True

    def test_single_failure(self):
        assert aggregate([outcome(False, 500)]).has_success is False

    def test_any_success_wins(self):
        result = aggregate([outcome(False, 404), outcome(True, 200), outcome(False, TIMEOUT_OR_ERROR)])

        assert result.has_success is True
        assert result.succeeded == 1
        assert result.failed == 2

    def test_all_failures(self):
        result = aggregate([outcome(False, 404), outcome(False, 500), outcome(False, TIMEOUT_OR_ERROR)])

        assert result.has_success is False
        assert result.succeeded == 0
        assert result.failed == 3

    def test_empty_has_no_success(self):
        assert aggregate([]).has_success is False

    def test_order_independent(self):
        outcomes = [outcome(False, 500), outcome(True, 200)]

        assert aggregate(outcomes).has_success == aggregate(reversed(outcomes)).has_success

    def test_idempotent(self):
        outcomes = [outcome(False, 503), outcome(True, 204)]

        first = aggregate(outcomes)
        second = aggregate(outcomes)

        assert first == second
        assert first.has_success is second.has_success is True

    def test_outcomes_are_immutable(self):
        result = aggregate([outcome(True)])

        with pytest.raises(Exception):
            result.outcomes[0].success = False  # type: ignore[misc]


# ============================================================================
# Dispatch Tests
# ============================================================================


class TestDispatch:
    """Tests for dispatching to targets."""

    @pytest.mark.asyncio
    async def test_one_outcome_per_target_in_order(self, calls):
        dispatcher = make_dispatcher({APP1: 200, APP2: 404}, calls)

        outcomes = await dispatcher.dispatch([APP1, APP2], RelayMethod.GET)

        assert [o.url for o in outcomes] == [APP1, APP2]
        assert [o.success for o in outcomes] == [True, False]
        assert [o.status for o in outcomes] == [200, 404]
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_http_error_status_recorded(self, calls):
        dispatcher = make_dispatcher({APP1: 503}, calls)

        (result,) = await dispatcher.dispatch([APP1], RelayMethod.GET)

        assert result.success is False
        assert result.status == 503
        assert result.error == "HTTP 503"

    @pytest.mark.asyncio
    async def test_redirect_is_failure(self, calls):
        dispatcher = make_dispatcher({APP1: 302}, calls)

        (result,) = await dispatcher.dispatch([APP1], RelayMethod.GET)

        assert result.success is False
        assert result.status == 302
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_transport_timeout(self, calls):
        dispatcher = make_dispatcher({APP1: httpx.ReadTimeout("Timeout")}, calls)

        (result,) = await dispatcher.dispatch([APP1], RelayMethod.GET)

        assert result.success is False
        assert result.status == TIMEOUT_OR_ERROR
        assert "timeout" in result.error.lower()

    @pytest.mark.asyncio
    async def test_slow_target_hits_call_timeout(self, calls):
        dispatcher = make_dispatcher({APP1: (1.0, 200)}, calls, timeout=0.05)

        (result,) = await dispatcher.dispatch([APP1], RelayMethod.GET)

        assert result.success is False
        assert result.status == TIMEOUT_OR_ERROR

    @pytest.mark.asyncio
    async def test_connection_error(self, calls):
        dispatcher = make_dispatcher({APP1: httpx.ConnectError("Connection refused")}, calls)

        (result,) = await dispatcher.dispatch([APP1], RelayMethod.GET)

        assert result.success is False
        assert result.status == TIMEOUT_OR_ERROR
        assert "connection" in result.error.lower()

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_escape(self, calls):
        dispatcher = make_dispatcher(
            {APP1: RuntimeError("boom"), APP2: 200},
            calls,
        )

        outcomes = await dispatcher.dispatch([APP1, APP2], RelayMethod.GET)

        assert outcomes[0].success is False
        assert outcomes[0].status == TIMEOUT_OR_ERROR
        assert outcomes[1].success is True

    @pytest.mark.asyncio
    async def test_failure_does_not_cancel_siblings(self, calls):
        dispatcher = make_dispatcher(
            {APP1: httpx.ConnectError("refused"), APP2: (0.1, 200)},
            calls,
        )

        outcomes = await dispatcher.dispatch([APP1, APP2], RelayMethod.GET)

        assert outcomes[1].success is True
        assert outcomes[1].status == 200

    @pytest.mark.asyncio
    async def test_dispatch_is_concurrent(self, calls):
        dispatcher = make_dispatcher({APP1: (0.3, 200), APP2: (0.3, 200)}, calls)

        started = time.perf_counter()
        outcomes = await dispatcher.dispatch([APP1, APP2], RelayMethod.GET)
        elapsed = time.perf_counter() - started

        assert all(o.success for o in outcomes)
        assert elapsed < 0.55

    @pytest.mark.asyncio
    async def test_waits_for_all_targets(self, calls):
        dispatcher = make_dispatcher({APP1: 200, APP2: (0.2, 500)}, calls)

        outcomes = await dispatcher.dispatch([APP1, APP2], RelayMethod.GET)

        assert len(outcomes) == 2
        assert outcomes[1].status == 500
        assert outcomes[1].elapsed_ms >= 150


class TestOutboundRequests:
    """Tests for what is sent to each target."""

    @pytest.mark.asyncio
    async def test_get_sends_no_body_or_forwarded_headers(self, calls):
        dispatcher = make_dispatcher({APP1: 200}, calls)

        await dispatcher.dispatch(
            [APP1],
            RelayMethod.GET,
            headers={"X-Callback-Token": "secret"},
            body=b'{"ignored": true}',
        )

        (request,) = calls
        assert request.method == "GET"
        assert request.content == b""
        assert "x-callback-token" not in request.headers

    @pytest.mark.asyncio
    async def test_post_forwards_body_and_headers(self, calls):
        dispatcher = make_dispatcher({APP1: 200, APP2: 200}, calls)
        body = b'{"id": "evt_1", "status": "PAID"}'

        await dispatcher.dispatch(
            [APP1, APP2],
            RelayMethod.POST,
            headers={"Content-Type": "application/json", "X-Callback-Token": "secret"},
            body=body,
        )

        assert len(calls) == 2
        for request in calls:
            assert request.method == "POST"
            assert request.content == body
            assert json.loads(request.content) == {"id": "evt_1", "status": "PAID"}
            assert request.headers["X-Callback-Token"] == "secret"
            assert request.headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_post_defaults_content_type(self, calls):
        dispatcher = make_dispatcher({APP1: 200}, calls)

        await dispatcher.dispatch([APP1], RelayMethod.POST, headers={}, body=b"{}")

        assert calls[0].headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_post_host_is_target_host(self, calls):
        dispatcher = make_dispatcher({APP1: 200}, calls)

        await dispatcher.dispatch([APP1], RelayMethod.POST, headers={}, body=b"{}")

        assert calls[0].headers["Host"] == "app1.dev"


# ============================================================================
# Large Fan-out Tests
# ============================================================================


@pytest.fixture
def no_proxy_env(monkeypatch):
    """Keep loopback calls away from any proxy configured in the environment."""
    for name in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
        monkeypatch.delenv(name, raising=False)


async def start_slow_server(delay: float) -> asyncio.AbstractServer:
    """Start a loopback HTTP server answering 200 after a delay."""

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        await reader.readuntil(b"\r\n\r\n")
        await asyncio.sleep(delay)
        writer.write(b"HTTP/1.1 200 OK\r\nContent-Length: 0\r\nConnection: close\r\n\r\n")
        await writer.drain()
        writer.close()

    return await asyncio.start_server(handle, "127.0.0.1", 0, backlog=512)


class TestLargeFanOut:
    """Tests for fan-outs wider than httpx's default connection pool."""

    @pytest.mark.asyncio
    async def test_more_than_100_targets_run_concurrently(self, no_proxy_env):  # noqa: ARG002
        server = await start_slow_server(delay=0.6)
        port = server.sockets[0].getsockname()[1]
        targets = [f"http://127.0.0.1:{port}/t{i}" for i in range(120)]

        try:
            dispatcher = FanOutDispatcher(timeout=1.0)
            outcomes = await dispatcher.dispatch(targets, RelayMethod.GET)
        finally:
            server.close()
            await server.wait_closed()

        failed = [o for o in outcomes if not o.success]
        assert failed == []
        assert len(outcomes) == 120
