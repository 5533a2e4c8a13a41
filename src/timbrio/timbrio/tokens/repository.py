from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from .model import PunchToken


class TokenRepository(Protocol):
    def create(self, token: PunchToken) -> None:
        raise NotImplementedError

    def get(self, token_id: str) -> Optional[PunchToken]:
        raise NotImplementedError

    def consume(self, token_id: str, *, now: datetime) -> bool:
        """Atomically flip ``used`` if the token is unused and ``now < expires_at``.

        Returns True for exactly one caller per token.
        """

        raise NotImplementedError

    def release(self, token_id: str) -> bool:
        """Flip ``used`` back to false; only valid for the caller that consumed it."""

        raise NotImplementedError

    def delete_expired(self, *, before: datetime) -> int:
        raise NotImplementedError
