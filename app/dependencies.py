import os
from pathlib import Path

from fastapi.templating import Jinja2Templates
from itsdangerous import BadSignature, URLSafeTimedSerializer

SESSION_COOKIE = "hh_session"
SESSION_MAX_AGE = 60 * 60 * 24 * 7  # 7 days

templates = Jinja2Templates(directory=Path(__file__).parent / "templates")


def _get_signer() -> URLSafeTimedSerializer:
    key = os.environ.get("SECRET_KEY", "dev-secret-change-in-production")
    return URLSafeTimedSerializer(key, salt="household-session")


def create_session_token() -> str:
    return _get_signer().dumps("ok")


def verify_session_token(token: str) -> bool:
    try:
        _get_signer().loads(token, max_age=SESSION_MAX_AGE)
        return True
    except BadSignature:
        return False


# Paths that don't require auth
_PUBLIC_PREFIXES = ("/login", "/static")


def is_public(path: str) -> bool:
    return any(path.startswith(p) for p in _PUBLIC_PREFIXES)
