# learnhub/auth/tokens.py

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from jose import jwt, JWTError

from learnhub.config import Settings
from learnhub.errors import Unauthenticated


@dataclass(frozen=True)
class TokenClaims:
    account_id: str
    expiry: datetime


class CredentialVerifier:
    """Signs and verifies bearer tokens (HS256 by default)"""

    def __init__(self, settings: Settings):
        self._secret = settings.jwt_secret_key
        self._algorithm = settings.jwt_algorithm
        self._expire_minutes = settings.access_token_expire_minutes

    def issue(self, account_id: str, expires_in: Optional[timedelta] = None) -> str:
        now = datetime.utcnow()
        payload = {
            "sub": account_id,
            "iat": now,
            "exp": now + (expires_in or timedelta(minutes=self._expire_minutes)),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenClaims:
        if not token:
            raise Unauthenticated("Authorization header missing")
        try:
            # Decodes and checks expiration/signature
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError:
            raise Unauthenticated("Invalid or expired token")

        account_id = payload.get("sub")
        expiry = payload.get("exp")
        if not account_id or expiry is None:
            raise Unauthenticated("Invalid token: missing claims")

        return TokenClaims(account_id=account_id, expiry=datetime.utcfromtimestamp(expiry))


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    """Accepts both "Bearer <token>" and a raw token"""
    if not authorization:
        return None
    value = authorization.strip()
    if value.lower().startswith("bearer "):
        value = value[7:].strip()
    return value or None
