import base64
import json
import logging
import math
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from codex_router import config
from .errors import RefreshFailed, RefreshResponseInvalid
from .models import CodexAuth, RefreshOutcome, TokenRefreshResult

logger = logging.getLogger(__name__)

EXPIRY_GRACE_SECONDS = 60


def _reject_constant(name: str):
    raise ValueError(f"non-standard JSON constant {name}")


def decode_jwt_payload(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode the payload of a JWT without verifying its signature.
    Returns None if the token is not a three-part JWT with a JSON object payload.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return None

    segment = parts[1]
    try:
        raw = base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
        payload = json.loads(raw.decode("utf-8"), parse_constant=_reject_constant)
    except ValueError:
        return None

    return payload if isinstance(payload, dict) else None


def is_access_token_expired(credentials: CodexAuth, now: float = None) -> bool:
    """True if the access token is expired or expires within the grace window."""
    payload = decode_jwt_payload(credentials.tokens.access_token)
    exp = payload.get("exp") if payload else None
    if isinstance(exp, bool) or not isinstance(exp, (int, float)) or not math.isfinite(exp):
        # Expiry unknown, refresh to be safe
        return True

    now_seconds = int(now if now is not None else time.time())
    logger.debug("Access token exp=%s, now=%s", exp, now_seconds)
    return exp - now_seconds <= EXPIRY_GRACE_SECONDS


class TokenRefresher:
    """
    Refresh-token grant against the OpenAI auth server.
    Only the refresh grant is implemented; logging in is left to `codex login`.
    """

    def __init__(
        self,
        token_url: str = None,
        client_id: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_url = token_url or config.TOKEN_URL
        self.client_id = client_id or config.CLIENT_ID
        self.timeout = timeout if timeout is not None else config.HTTP_TIMEOUT
        self._transport = transport

    def is_expired(self, credentials: CodexAuth) -> bool:
        return is_access_token_expired(credentials)

    async def exchange(self, refresh_token: str) -> TokenRefreshResult:
        payload = {
            "grant_type": "refresh_token",
            "client_id": self.client_id,
            "refresh_token": refresh_token,
        }

        logger.info("Requesting token refresh from %s", self.token_url)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.post(
                self.token_url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )

        if not resp.is_success:
            logger.warning("Token refresh rejected with HTTP %s", resp.status_code)
            raise RefreshFailed(resp.status_code, resp.text)

        try:
            return TokenRefreshResult.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            logger.warning("Token refresh response missing required fields")
            raise RefreshResponseInvalid("Token refresh response missing required fields") from e

    async def refresh_if_expired(self, credentials: CodexAuth) -> RefreshOutcome:
        """
        Returns the input object untouched when the token is still valid.
        Otherwise exchanges the refresh token and returns a new CodexAuth with
        fresh tokens; every other field is carried over.
        """
        if not self.is_expired(credentials):
            return RefreshOutcome(credentials=credentials, refreshed=False)

        result = await self.exchange(credentials.tokens.refresh_token)

        data = credentials.to_json_dict()
        data["tokens"] = {
            **data["tokens"],
            "access_token": result.access_token,
            "refresh_token": result.refresh_token or credentials.tokens.refresh_token,
            "id_token": result.id_token,
        }
        data["last_refresh"] = datetime.now(timezone.utc).isoformat()

        logger.info("Access token refreshed")
        return RefreshOutcome(credentials=CodexAuth.model_validate(data), refreshed=True)
