from dataclasses import dataclass
from typing import Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer

from config import get_settings


@dataclass(frozen=True)
class TokenPayload:
    user_id: int
    email: str


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.secret_key, salt="auth-token")


def generate_token(user_id: int, email: str) -> str:
    return _serializer().dumps({"u": user_id, "e": email})


def verify_token(token: str, max_age_secs: Optional[int] = None) -> Optional[TokenPayload]:
    """Return the payload of a valid token, or None when it is forged or expired."""
    if max_age_secs is None:
        max_age_secs = get_settings().token_max_age_secs
    try:
        data = _serializer().loads(token, max_age=max_age_secs)
    except BadSignature:
        return None

    if not isinstance(data, dict):
        return None
    user_id = data.get("u")
    if not isinstance(user_id, int):
        return None
    return TokenPayload(user_id=user_id, email=str(data.get("e", "")))


def extract_bearer_token(header: Optional[str]) -> Optional[str]:
    if not header or not header.startswith("Bearer "):
        return None
    token = header[len("Bearer ") :].strip()
    return token or None
