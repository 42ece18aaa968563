"""Per-phone OTP request rate limiting."""

import logging
from datetime import datetime
from typing import Callable, Optional

from roster_gate.clients.base import RateLimitStore
from roster_gate.config import RateLimitConfig
from roster_gate.models.internal_models import RateLimitDecision
from roster_gate.services.errors import InfrastructureError
from roster_gate.utils.clock import utc_now
from roster_gate.utils.phone_utils import mask_phone_number

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Fixed-window limiter keyed by normalized phone number.

    The window opens on the first request and lasts ``config.window``; the
    read-modify-write is delegated to the store so concurrent requests for
    the same phone cannot both take the last slot.
    """

    def __init__(
        self,
        store: RateLimitStore,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.config = config or RateLimitConfig()
        self.clock = clock

    async def check(self, phone_number: str) -> RateLimitDecision:
        """
        Count one request against the phone's window.

        Args:
            phone_number: Normalized phone number

        Returns:
            RateLimitDecision with the remaining budget and window reset time

        Raises:
            InfrastructureError: If the rate-limit store fails
        """
        try:
            window = await self.store.hit(
                phone_number,
                limit=self.config.limit,
                window_seconds=int(self.config.window.total_seconds()),
                now=self.clock(),
            )
        except Exception as e:
            logger.error(f"Rate limit store failed for {mask_phone_number(phone_number)}: {e}")
            raise InfrastructureError(f"Rate limit store unavailable: {e}")

        if not window.allowed:
            logger.warning(
                f"Rate limit exceeded for {mask_phone_number(phone_number)}: "
                f"{window.count}/{window.limit}, resets at {window.reset_time.isoformat()}"
            )
            return RateLimitDecision(allowed=False, attempts_remaining=0, reset_time=window.reset_time)

        return RateLimitDecision(
            allowed=True,
            attempts_remaining=window.limit - window.count,
            reset_time=window.reset_time,
        )
