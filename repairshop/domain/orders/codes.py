"""
Order code generation
Produces short unique order codes and retries with backoff on collisions
"""

import asyncio
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional, TypeVar

from ...config import ORDER_CODE_MAX_ATTEMPTS, ORDER_CODE_RETRY_DELAY_MS
from .exceptions import DuplicateOrderCode, ExhaustedRetries

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PREFIX = "ORD"
_CODE_PATTERN = re.compile(r"^([A-Z]+)(\d{6})(\d{4})$")


def code_prefix(appliance_type: Optional[str]) -> str:
    """First three letters of the appliance type, e.g. "nevera" -> "NEV" """
    if not appliance_type:
        return DEFAULT_PREFIX
    letters = re.sub(r"[^A-Za-z]", "", appliance_type)
    return letters[:3].upper() if len(letters) >= 3 else DEFAULT_PREFIX


def format_order_code(code: str) -> str:
    """Display form of an order code: NEV2610190423 -> NEV-261019-0423"""
    match = _CODE_PATTERN.match(code)
    if not match:
        return code
    return "-".join(match.groups())


def random_candidate(prefix: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    return f"{prefix}{now:%y%m%d}{secrets.randbelow(10_000):04d}"


@dataclass
class CodeRetryState:
    """Attempt bookkeeping for code generation, independent of storage"""

    max_attempts: int = ORDER_CODE_MAX_ATTEMPTS
    base_delay: float = ORDER_CODE_RETRY_DELAY_MS / 1000
    attempt: int = 0
    collisions: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts

    def start_attempt(self) -> int:
        if self.exhausted:
            raise ExhaustedRetries(
                f"Could not generate a unique order number after {self.max_attempts} attempts"
            )
        self.attempt += 1
        return self.attempt

    def record_collision(self) -> float:
        """Count a collision and return how long to wait before the next attempt"""
        self.collisions += 1
        return self.base_delay * self.attempt


class OrderCodeGenerator:
    """
    Generates unique order codes.

    Two collision sources are handled the same way (back off, retry, bounded):
    - `exists(code)` reports the candidate is already stored
    - the insert callback raises DuplicateOrderCode because a concurrent
      creator took the code between the check and the insert

    Backoff awaits `sleep`, so a retry never blocks the event loop.
    """

    def __init__(
        self,
        exists: Callable[[str], bool],
        candidate_factory: Callable[[str], str] = random_candidate,
        max_attempts: int = ORDER_CODE_MAX_ATTEMPTS,
        base_delay: float = ORDER_CODE_RETRY_DELAY_MS / 1000,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.exists = exists
        self.candidate_factory = candidate_factory
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.sleep = sleep

    def new_state(self) -> CodeRetryState:
        return CodeRetryState(max_attempts=self.max_attempts, base_delay=self.base_delay)

    async def generate_unique_code(
        self, prefix: str = DEFAULT_PREFIX, state: Optional[CodeRetryState] = None
    ) -> str:
        """Return a code not present in storage, or raise ExhaustedRetries"""
        state = state or self.new_state()
        while True:
            attempt = state.start_attempt()
            code = self.candidate_factory(prefix)
            logger.debug(f"🔢 Order code candidate #{attempt}: {code}")

            if not self.exists(code):
                return code

            await self._backoff(state, code)

    async def create_with_unique_code(
        self, insert: Callable[[str], T], prefix: str = DEFAULT_PREFIX
    ) -> T:
        """
        Generate a code and hand it to `insert`, retrying on late collisions.

        Returns whatever `insert` returns. Both kinds of collision share one
        attempt budget.
        """
        state = self.new_state()
        while True:
            code = await self.generate_unique_code(prefix, state)
            try:
                return insert(code)
            except DuplicateOrderCode:
                await self._backoff(state, code)

    async def _backoff(self, state: CodeRetryState, code: str) -> None:
        delay = state.record_collision()
        logger.warning(
            f"⚠️ Duplicate order code {code} (attempt {state.attempt}/{state.max_attempts})"
        )
        if state.exhausted:
            logger.error("❌ Maximum order code attempts reached")
            raise ExhaustedRetries(
                f"Could not generate a unique order number after {state.max_attempts} attempts"
            )
        await self.sleep(delay)
