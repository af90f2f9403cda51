import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Tuple, Union

from jose import jwt, JWTError
from coach.core import config

logger = logging.getLogger(__name__)


def _verification_key() -> Tuple[Union[str, Dict[str, Any]], List[str]]:
    """
    Resolve the key used to verify identity-provider tokens.

    A public key (PEM or JWK JSON) takes precedence over the shared secret.
    """
    raw_public_key = config.AUTH_JWT_PUBLIC_KEY
    if raw_public_key:
        if raw_public_key.startswith("{"):
            return json.loads(raw_public_key), [config.AUTH_JWT_PUBLIC_KEY_ALGORITHM]
        return raw_public_key.replace("\\n", "\n"), [config.AUTH_JWT_PUBLIC_KEY_ALGORITHM]
    if config.AUTH_JWT_SECRET:
        return config.AUTH_JWT_SECRET, [config.AUTH_JWT_ALGORITHM]
    raise JWTError("No token verification key configured (AUTH_JWT_PUBLIC_KEY or AUTH_JWT_SECRET)")


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify a bearer token and return its claims.

    Raises:
        JWTError: signature, expiry, audience or issuer check failed
    """
    key, algorithms = _verification_key()
    return jwt.decode(
        token,
        key,
        algorithms=algorithms,
        audience=config.AUTH_JWT_AUDIENCE,
        issuer=config.AUTH_JWT_ISSUER,
        options={"verify_aud": bool(config.AUTH_JWT_AUDIENCE)},
    )


def create_access_token(data: dict, expires_delta: timedelta = None):
    """Issue a token signed with the shared secret (local development and tests)."""
    if not config.AUTH_JWT_SECRET:
        raise ValueError("AUTH_JWT_SECRET not configured")
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=60))
    to_encode.update({"exp": expire})
    if config.AUTH_JWT_AUDIENCE:
        to_encode.setdefault("aud", config.AUTH_JWT_AUDIENCE)
    if config.AUTH_JWT_ISSUER:
        to_encode.setdefault("iss", config.AUTH_JWT_ISSUER)
    return jwt.encode(to_encode, config.AUTH_JWT_SECRET, algorithm=config.AUTH_JWT_ALGORITHM)
