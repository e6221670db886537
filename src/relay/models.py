"""Data models for a single relay invocation.

Nothing here outlives one inbound request.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# Status recorded when a target produced no HTTP response at all
TIMEOUT_OR_ERROR = "timeout/error"


class RelayMethod(str, Enum):
    """HTTP method served by a relay deployment."""

    GET = "GET"
    POST = "POST"

    @classmethod
    def parse(cls, value: str) -> RelayMethod:
        """Parse a method name case-insensitively.

        Raises:
            ValueError: If the method is not GET or POST.
        """
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise ValueError(
                f"Unsupported relay method {value!r}, expected GET or POST"
            ) from None

    def matches(self, method: str) -> bool:
        """Check whether an inbound method is the one this variant serves."""
        return method.upper() == self.value


@dataclass
class RelayRequest:
    """Inbound request as handed over by the hosting layer.

    Attributes:
        method: Inbound HTTP method, any verb.
        headers: Inbound headers with original casing.
        body_stream: Raw body chunks, read only by the POST variant.
    """

    method: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body_stream: AsyncIterable[bytes] | None = None

    @classmethod
    def from_bytes(
        cls,
        method: str,
        body: bytes = b"",
        headers: Mapping[str, str] | None = None,
    ) -> RelayRequest:
        """Build a request whose body stream yields a single chunk."""

        async def _stream():
            yield body

        return cls(method=method, headers=headers or {}, body_stream=_stream())


class TargetOutcome(BaseModel):
    """Result of relaying to one target."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(..., description="Target URL")
    success: bool = Field(..., description="Whether the target answered 2xx")
    status: int | str = Field(
        ...,
        description=f"HTTP status code, or '{TIMEOUT_OR_ERROR}' without a response",
    )
    error: str | None = Field(default=None, description="Failure detail")
    elapsed_ms: float = Field(default=0.0, description="Call duration in milliseconds")


class AggregateResult(BaseModel):
    """Verdict across every target of one fan-out."""

    model_config = ConfigDict(frozen=True)

    outcomes: tuple[TargetOutcome, ...] = Field(default_factory=tuple)

    @property
    def has_success(self) -> bool:
        return any(outcome.success for outcome in self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> int:
        return len(self.outcomes) - self.succeeded


@dataclass(frozen=True)
class RelayResponse:
    """Status code and plain-text body returned to the original caller."""

    status_code: int
    body: str
