"""Fixed-window request quotas on top of a TTL store."""

from dataclasses import dataclass

import structlog

from localdeals.core.exceptions import RateLimitError
from localdeals.services.ttl_store import TTLStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    """``max_requests`` per ``window_seconds`` for one action."""

    name: str
    max_requests: int
    window_seconds: int
    message: str


class RateLimiter:
    """Counts hits per (rule, identifier) and raises once a rule is exceeded."""

    def __init__(self, store: TTLStore, enabled: bool = True):
        self.store = store
        self.enabled = enabled

    async def hit(self, rule: RateLimitRule, identifier: str) -> int:
        """Record one request and return how many are left in the window.

        Raises:
            RateLimitError: when the request pushes the count over the rule's max
        """
        if not self.enabled:
            return rule.max_requests
        count = await self.store.incr(f"ratelimit:{rule.name}:{identifier}", rule.window_seconds)
        if count > rule.max_requests:
            logger.warning("rate_limit_exceeded", rule=rule.name, identifier=identifier, count=count)
            raise RateLimitError(rule.message)
        return rule.max_requests - count
