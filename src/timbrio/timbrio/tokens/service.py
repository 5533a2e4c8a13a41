from __future__ import annotations

import io
import logging
import secrets
from contextlib import contextmanager
from datetime import timedelta

import qrcode

from ..common.datetime_utils import Clock, SystemClock
from ..core.constants import DEFAULT_TOKEN_TTL_SECONDS
from ..core.exceptions import ConflictError, TokenAlreadyUsed, TokenExpired, TokenNotFound
from ..core.policy import Action, require
from ..users.model import Identity
from .model import PunchToken, to_qr_payload
from .repository import TokenRepository

logger = logging.getLogger(__name__)


class TokenIssuer:
    """Mints and validates single-use kiosk punch tokens."""

    def __init__(
        self,
        tokens: TokenRepository,
        *,
        clock: Clock | None = None,
        ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
    ):
        self._tokens = tokens
        self._clock = clock or SystemClock()
        self._ttl = timedelta(seconds=int(ttl_seconds))

    def issue(self) -> PunchToken:
        now = self._clock.now()
        token = PunchToken(
            token_id=secrets.token_urlsafe(24),
            issued_at=now,
            expires_at=now + self._ttl,
        )
        self._tokens.create(token)
        logger.info("punch token issued, expires at %s", token.expires_at.isoformat())
        return token

    def issue_for(self, actor: Identity) -> PunchToken:
        require(Action.ISSUE_TOKEN, actor.role)
        return self.issue()

    def validate_and_consume(self, token_id: str) -> PunchToken:
        now = self._clock.now()
        if self._tokens.consume(token_id, now=now):
            token = self._tokens.get(token_id)
            if token is None:
                raise TokenNotFound("punch token not found")
            return token

        # Lost the conditional update: tell the caller which rule failed.
        token = self._tokens.get(token_id)
        if token is None:
            logger.warning("rejected unknown punch token")
            raise TokenNotFound("punch token not found")
        if token.used:
            logger.warning("rejected reused punch token")
            raise TokenAlreadyUsed("punch token has already been used")
        logger.warning("rejected expired punch token")
        raise TokenExpired("punch token has expired, scan the new code")

    @contextmanager
    def released_on_conflict(self, token: PunchToken):
        """Hand a consumed token back when the punch it paid for loses a write race."""

        try:
            yield token
        except ConflictError:
            if self._tokens.release(token.token_id):
                logger.warning("punch token released after a conflicting write")
            raise

    def qr_payload(self, token: PunchToken) -> str:
        return to_qr_payload(token)

    def render_qr_png(self, token: PunchToken) -> bytes:
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=10,
            border=2,
        )
        qr.add_data(to_qr_payload(token))
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")
        buf = io.BytesIO()
        img.save(buf, format="PNG")
        return buf.getvalue()

    def purge_expired(self) -> int:
        removed = self._tokens.delete_expired(before=self._clock.now())
        if removed:
            logger.info("purged %d expired punch tokens", removed)
        return removed
