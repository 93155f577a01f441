"""
Client for the hosted auth service.

Credentials, token issuance and refresh all live upstream; this module is a
thin HTTP client over its REST API. Callers get `AuthSession` / `AuthUser`
values back, or one of the errors from `exceptions`.
"""
import logging
from dataclasses import dataclass

import httpx
from django.conf import settings

from .exceptions import SessionExpired, Unauthenticated, UpstreamError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    refresh_token: str
    user: AuthUser


# ---------------------------------------------------------------------------
# HTTP client (lazy singleton)
# ---------------------------------------------------------------------------
_client = None


def _get_client():
    global _client
    if _client is None:
        _client = httpx.Client(
            base_url=f"{settings.AUTH_SERVICE_URL}/auth/v1",
            timeout=settings.AUTH_SERVICE_TIMEOUT,
            headers={"apikey": settings.AUTH_SERVICE_KEY},
        )
    return _client


def _bearer(access_token):
    return {"Authorization": f"Bearer {access_token}"}


def _error_message(response):
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if not isinstance(data, dict):
        return f"HTTP {response.status_code}"
    for key in ("error_description", "msg", "message", "error"):
        if data.get(key):
            return str(data[key])
    return f"HTTP {response.status_code}"


def _request(method, url, **kwargs):
    """Send a request; 400/401/403 mean the credentials were rejected."""
    try:
        response = _get_client().request(method, url, **kwargs)
    except httpx.HTTPError as exc:
        logger.exception("Auth service request failed: %s %s", method, url)
        raise UpstreamError(str(exc)) from exc
    if response.status_code in (400, 401, 403):
        raise Unauthenticated(_error_message(response))
    if response.is_error:
        logger.warning(
            "Auth service returned %s for %s %s", response.status_code, method, url,
        )
        raise UpstreamError(_error_message(response))
    return response


def _parse_user(data):
    return AuthUser(id=str(data["id"]), email=data.get("email") or "")


def _parse_session(data):
    return AuthSession(
        access_token=data["access_token"],
        refresh_token=data["refresh_token"],
        user=_parse_user(data["user"]),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def get_user(access_token):
    """Return the identity behind an access token."""
    if not access_token:
        raise SessionExpired()
    response = _request("GET", "/user", headers=_bearer(access_token))
    return _parse_user(response.json())


def refresh_session(refresh_token):
    if not refresh_token:
        raise SessionExpired()
    response = _request(
        "POST", "/token",
        params={"grant_type": "refresh_token"},
        json={"refresh_token": refresh_token},
    )
    return _parse_session(response.json())


def set_session(access_token, refresh_token):
    """
    Validate a client-held token pair.

    The access token is checked first; if it has expired the refresh token is
    exchanged once for a fresh pair. Raises Unauthenticated when both are
    rejected.
    """
    try:
        user = get_user(access_token)
    except Unauthenticated:
        logger.info("Access token rejected, trying refresh token")
        return refresh_session(refresh_token)
    return AuthSession(
        access_token=access_token, refresh_token=refresh_token, user=user,
    )


def exchange_code(code, code_verifier=""):
    """Trade a one-time callback code (magic link / OAuth) for a session."""
    response = _request(
        "POST", "/token",
        params={"grant_type": "pkce"},
        json={"auth_code": code, "code_verifier": code_verifier},
    )
    return _parse_session(response.json())


def sign_in_with_password(email, password):
    response = _request(
        "POST", "/token",
        params={"grant_type": "password"},
        json={"email": email, "password": password},
    )
    return _parse_session(response.json())


def sign_up(email, password):
    """
    Register a new account.

    Returns an AuthSession when the service signs the user in straight away,
    or None when it wants the e-mail address confirmed first.
    """
    response = _request(
        "POST", "/signup", json={"email": email, "password": password},
    )
    data = response.json()
    if data.get("access_token"):
        return _parse_session(data)
    return None


def sign_out(access_token):
    _request("POST", "/logout", headers=_bearer(access_token))
