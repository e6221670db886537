"""Fan-out dispatcher.

Sends one inbound webhook to every target concurrently and folds the
per-target results into a single verdict.
"""

import asyncio
import time
from collections.abc import Iterable, Mapping

import httpx
import structlog

from src.relay.models import (
    TIMEOUT_OR_ERROR,
    AggregateResult,
    RelayMethod,
    TargetOutcome,
)

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0


def is_success_status(status_code: int) -> bool:
    """Success predicate for a target response: 2xx only."""
    return 200 <= status_code < 300


def aggregate(outcomes: Iterable[TargetOutcome]) -> AggregateResult:
    """Fold outcomes into a verdict.

    Pure: the verdict is success when at least one target succeeded.
    """
    return AggregateResult(outcomes=tuple(outcomes))


class FanOutDispatcher:
    """Relays one request to many targets at once.

    Every target gets its own call with its own timeout. A failing call is
    converted into a TargetOutcome and never cancels its siblings.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            timeout: Per-target timeout in seconds.
            transport: Optional httpx transport, mainly for tests.
        """
        self._timeout = timeout
        self._transport = transport
        self._logger = logger.bind(component="fanout_dispatcher")

    @property
    def timeout(self) -> float:
        return self._timeout

    async def dispatch(
        self,
        targets: list[str],
        method: RelayMethod,
        *,
        headers: Mapping[str, str] | None = None,
        body: bytes | None = None,
    ) -> list[TargetOutcome]:
        """Send the request to all targets and wait for every one to settle.

        Args:
            targets: Target URLs.
            method: Method to use for every outbound call.
            headers: Headers to forward (POST only).
            body: Raw JSON body to forward (POST only).

        Returns:
            One outcome per target, in target order.
        """
        outbound_headers: dict[str, str] = {}
        content: bytes | None = None
        if method is RelayMethod.POST:
            outbound_headers = dict(headers or {})
            if not any(name.lower() == "content-type" for name in outbound_headers):
                outbound_headers["Content-Type"] = "application/json"
            content = body or b""

        self._logger.debug(
            "fanout_started",
            method=method.value,
            target_count=len(targets),
        )

        async with httpx.AsyncClient(
            timeout=self._timeout,
            follow_redirects=False,
            limits=httpx.Limits(max_connections=None, max_keepalive_connections=None),
            transport=self._transport,
        ) as client:
            outcomes = await asyncio.gather(
                *(
                    self._send(client, url, method, outbound_headers, content)
                    for url in targets
                )
            )

        return list(outcomes)

    async def _send(
        self,
        client: httpx.AsyncClient,
        url: str,
        method: RelayMethod,
        headers: dict[str, str],
        content: bytes | None,
    ) -> TargetOutcome:
        """Make one outbound call and classify its result.

        Returns:
            Outcome for the target; never raises for delivery failures.
        """
        started = time.perf_counter()
        status: int | str = TIMEOUT_OR_ERROR
        error: str | None = None

        try:
            response = await asyncio.wait_for(
                client.request(method.value, url, headers=headers, content=content),
                timeout=self._timeout,
            )
            status = response.status_code
            if not is_success_status(status):
                error = f"HTTP {status}"

        except (httpx.TimeoutException, TimeoutError):
            error = "Request timeout"

        except httpx.ConnectError as e:
            error = f"Connection error: {e}"

        except Exception as e:
            error = f"{type(e).__name__}: {e}"

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        outcome = TargetOutcome(
            url=url,
            success=error is None,
            status=status,
            error=error,
            elapsed_ms=elapsed_ms,
        )

        if outcome.success:
            self._logger.info(
                "target_succeeded",
                url=url,
                status=status,
                elapsed_ms=elapsed_ms,
            )
        else:
            self._logger.warning(
                "target_failed",
                url=url,
                status=status,
                error=error,
                elapsed_ms=elapsed_ms,
            )

        return outcome
