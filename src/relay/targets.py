"""Target list resolution from the WEBHOOK_TARGETS string."""

import structlog

from src.relay.errors import NoTargetsConfiguredError

logger = structlog.get_logger(__name__)


def parse_targets(raw: str | None) -> list[str]:
    """Split a comma-separated target string.

    Entries are trimmed, empty entries dropped and order preserved.

    Args:
        raw: Configuration string, may be None when unset.

    Returns:
        Ordered list of target URLs, possibly empty.
    """
    if not raw:
        return []
    return [url.strip() for url in raw.split(",") if url.strip()]


def resolve_targets(raw: str | None) -> list[str]:
    """Resolve the targets for one invocation.

    Args:
        raw: Configuration string.

    Returns:
        Non-empty list of target URLs.

    Raises:
        NoTargetsConfiguredError: If no target survives parsing.
    """
    targets = parse_targets(raw)
    if not targets:
        logger.error("no_targets_configured")
        raise NoTargetsConfiguredError()
    return targets
