"""End-to-end relay invocation.

Flow: method gate, target resolution, body and header extraction (POST),
fan-out, aggregation, response mapping.
"""

import structlog

from src.relay.dispatcher import FanOutDispatcher, aggregate
from src.relay.errors import MethodNotAllowedError, RelayError
from src.relay.extraction import forward_headers, parse_json_payload, read_body
from src.relay.models import RelayMethod, RelayRequest, RelayResponse
from src.relay.responses import response_for_error, response_for_result
from src.relay.targets import resolve_targets

logger = structlog.get_logger(__name__)


async def handle_relay(
    request: RelayRequest,
    *,
    allowed_method: RelayMethod,
    targets_config: str | None,
    dispatcher: FanOutDispatcher,
) -> RelayResponse:
    """Relay one inbound webhook to every configured target.

    Args:
        request: Inbound request.
        allowed_method: Method served by this deployment.
        targets_config: Raw comma-separated target string.
        dispatcher: Fan-out dispatcher used for outbound calls.

    Returns:
        Status code and body for the original caller.
    """
    log = logger.bind(method=request.method, variant=allowed_method.value)
    log.info("relay_received")

    try:
        if not allowed_method.matches(request.method):
            raise MethodNotAllowedError(request.method, allowed_method.value)

        targets = resolve_targets(targets_config)

        headers: dict[str, str] | None = None
        body: bytes | None = None
        if allowed_method is RelayMethod.POST:
            body = await read_body(request.body_stream)
            parse_json_payload(body)
            headers = forward_headers(request.headers)

    except RelayError as e:
        log.warning("relay_rejected", **e.to_dict())
        return response_for_error(e)

    outcomes = await dispatcher.dispatch(
        targets, allowed_method, headers=headers, body=body
    )
    result = aggregate(outcomes)

    log.info(
        "fanout_completed",
        target_count=len(outcomes),
        succeeded=result.succeeded,
        failed=result.failed,
        has_success=result.has_success,
    )

    return response_for_result(result)
