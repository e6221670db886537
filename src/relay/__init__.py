"""Webhook fan-out relay.

This module provides:
- RelayRequest / TargetOutcome / AggregateResult: per-invocation models
- FanOutDispatcher: concurrent delivery to every target
- aggregate: success if any target answered 2xx
- handle_relay: the full relay flow from inbound request to response
"""

from src.relay.dispatcher import FanOutDispatcher, aggregate, is_success_status
from src.relay.errors import (
    InvalidPayloadError,
    MethodNotAllowedError,
    NoTargetsConfiguredError,
    RelayError,
)
from src.relay.extraction import (
    HOP_BY_HOP_HEADERS,
    forward_headers,
    parse_json_payload,
    read_body,
)
from src.relay.handler import handle_relay
from src.relay.models import (
    TIMEOUT_OR_ERROR,
    AggregateResult,
    RelayMethod,
    RelayRequest,
    RelayResponse,
    TargetOutcome,
)
from src.relay.responses import response_for_error, response_for_result
from src.relay.targets import parse_targets, resolve_targets

__all__ = [
    # Models
    "TIMEOUT_OR_ERROR",
    "AggregateResult",
    "RelayMethod",
    "RelayRequest",
    "RelayResponse",
    "TargetOutcome",
    # Errors
    "InvalidPayloadError",
    "MethodNotAllowedError",
    "NoTargetsConfiguredError",
    "RelayError",
    # Targets and extraction
    "HOP_BY_HOP_HEADERS",
    "forward_headers",
    "parse_json_payload",
    "parse_targets",
    "read_body",
    "resolve_targets",
    # Dispatch and responses
    "FanOutDispatcher",
    "aggregate",
    "handle_relay",
    "is_success_status",
    "response_for_error",
    "response_for_result",
]
