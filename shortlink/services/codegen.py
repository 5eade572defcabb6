"""Short code generation with length escalation."""

import logging
import secrets
from typing import Awaitable, Callable, Optional

from shortlink.core.config import settings
from shortlink.services.exceptions import ShortCodeGenerationError

logger = logging.getLogger(__name__)

ExistsCheck = Callable[[str], Awaitable[bool]]


class CodeGenerator:
    """
    Draws random codes until one is free.

    After ``max_collisions`` consecutive taken codes the target length grows
    by one for good, keeping the collision rate bounded as the namespace
    fills. The free check is advisory; the store's unique constraint on
    ``code`` has the final say.
    """

    def __init__(
        self,
        exists: ExistsCheck,
        alphabet: Optional[str] = None,
        length: Optional[int] = None,
        max_length: Optional[int] = None,
        max_collisions: Optional[int] = None,
    ):
        self._exists = exists
        self.alphabet = alphabet or settings.CODE_ALPHABET
        self._length = length or settings.CODE_LENGTH
        self.max_length = max_length or settings.CODE_MAX_LENGTH
        self.max_collisions = max_collisions or settings.CODE_MAX_COLLISIONS
        self._collisions = 0

    @property
    def length(self) -> int:
        """Length of the next code to be drawn."""
        return self._length

    def draw(self, length: Optional[int] = None) -> str:
        length = length or self._length
        return "".join(secrets.choice(self.alphabet) for _ in range(length))

    async def next(self) -> str:
        """
        Return a code that was free when checked.

        Raises:
            ShortCodeGenerationError: If the length would have to grow past max_length
            RepositoryError: If the existence check fails
        """
        while True:
            candidate = self.draw()
            if not await self._exists(candidate):
                self._collisions = 0
                return candidate

            self._collisions += 1
            if self._collisions < self.max_collisions:
                continue

            if self._length >= self.max_length:
                raise ShortCodeGenerationError(
                    f"Could not generate a unique code within {self.max_length} characters"
                )
            self._length += 1
            self._collisions = 0
            logger.warning(f"Short code collisions persisted, code length raised to {self._length}")
