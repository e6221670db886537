"""Mapping from relay results to the reply sent upstream."""

from src.relay.errors import RelayError
from src.relay.models import AggregateResult, RelayResponse

OK_RESPONSE = RelayResponse(status_code=200, body="OK")
ALL_FAILED_RESPONSE = RelayResponse(status_code=500, body="All targets failed")


def response_for_result(result: AggregateResult) -> RelayResponse:
    """Map a fan-out verdict to a response.

    A 500 on total failure tells the provider to retry the whole delivery.
    """
    return OK_RESPONSE if result.has_success else ALL_FAILED_RESPONSE


def response_for_error(error: RelayError) -> RelayResponse:
    """Map an invocation-ending error to a response."""
    return RelayResponse(status_code=error.status_code, body=error.response_body)
