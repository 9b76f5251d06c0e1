import time
from typing import Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer

from config import get_settings


class InvalidToken(ValueError):
    pass


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.token_secret, salt="session-token")


def issue_token(username: str, ttl_secs: Optional[int] = None) -> str:
    ttl = ttl_secs if ttl_secs is not None else get_settings().token_ttl_secs
    issued_at = int(time.time())
    claims = {"username": username, "iat": issued_at, "exp": issued_at + ttl}
    return _serializer().dumps(claims)


def verify_token(token: str) -> dict[str, object]:
    """Return the claims carried by ``token``.

    Raises InvalidToken when the signature does not match, the payload was
    tampered with, the token is past its expiry, or no username is present.
    """
    serializer = _serializer()
    try:
        claims = serializer.loads(token)
    except BadSignature as exc:
        raise InvalidToken("Invalid token") from exc

    if not isinstance(claims, dict) or not claims.get("username"):
        raise InvalidToken("Invalid token")

    expiry = claims.get("exp")
    if not isinstance(expiry, int) or time.time() > expiry:
        raise InvalidToken("Token expired")

    return claims
