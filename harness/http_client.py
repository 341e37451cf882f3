"""
HTTP boundary of the load tester.

Wraps :mod:`requests` so that the rest of the harness only deals with
three things: a bearer token, a pre-configured session per virtual user,
and a status code (or a :class:`~harness.exceptions.RequestError`).
Response bodies are never interpreted beyond the login token.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urljoin

import requests

from harness.exceptions import AuthenticationError, RequestError
from harness.models import HttpMethod, Scenario

logger = logging.getLogger(__name__)

TOKEN_FIELDS = ("accessToken", "access_token", "token")


def _safe_json(response: requests.Response) -> dict[str, Any]:
    """Return response JSON as a dict, or ``{}`` if parsing fails."""
    try:
        data = response.json()
    except ValueError:
        return {}

    if isinstance(data, dict):
        return data
    return {}


def build_url(base_url: str, path: str) -> str:
    """Join ``path`` onto ``base_url`` without dropping the base path."""
    return urljoin(base_url.rstrip("/") + "/", path.lstrip("/"))


def auth_header(token: str) -> dict[str, str]:
    """Headers every authenticated request carries."""
    return {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }


def authenticate(base_url: str, login: str, password: str, timeout: float = 10.0) -> str:
    """
    Log in once and return the bearer token.

    Args:
        base_url: API root, e.g. ``http://localhost:5000/api``.
        login: Account login.
        password: Account password.
        timeout: Request timeout in seconds.

    Returns:
        The token string from the login response.

    Raises:
        AuthenticationError: On transport failure, a non-2xx status, or a
            response without a token.
    """
    url = build_url(base_url, "/auth/login")
    try:
        response = requests.post(
            url,
            json={"login": login, "password": password},
            timeout=timeout,
        )
    except requests.RequestException as exc:
        raise AuthenticationError(f"Login request failed: {exc}") from exc

    if not response.ok:
        raise AuthenticationError(f"Login rejected with status {response.status_code}")

    body = _safe_json(response)
    for field_name in TOKEN_FIELDS:
        token = body.get(field_name)
        if isinstance(token, str) and token:
            logger.info("Authenticated against %s as %s", base_url, login)
            return token

    raise AuthenticationError("Login response did not contain an access token")


def build_session(token: str) -> requests.Session:
    """Create a per-user session carrying the shared, read-only token."""
    session = requests.Session()
    session.headers.update(auth_header(token))
    return session


def send(session: Any, base_url: str, scenario: Scenario, timeout: float = 10.0) -> int:
    """
    Issue one scenario request.

    Args:
        session: A ``requests.Session`` (or anything exposing the same
            ``request`` method).
        base_url: API root the scenario path is relative to.
        scenario: The request template.
        timeout: Request timeout in seconds.

    Returns:
        The 2xx status code.

    Raises:
        RequestError: For non-2xx responses (carrying the status) and for
            timeouts or network errors (status ``0``).
    """
    url = build_url(base_url, scenario.render_path())
    kwargs: dict[str, Any] = {"params": scenario.query_params(), "timeout": timeout}
    if scenario.method is HttpMethod.POST and scenario.body is not None:
        kwargs["json"] = dict(scenario.body)

    try:
        response = session.request(scenario.method.value, url, **kwargs)
    except requests.Timeout as exc:
        raise RequestError(f"Timeout after {timeout}s: {exc}") from exc
    except requests.RequestException as exc:
        raise RequestError(str(exc) or exc.__class__.__name__) from exc

    if not 200 <= response.status_code < 300:
        raise RequestError(
            f"Request failed with status code {response.status_code}",
            status_code=response.status_code,
        )
    return response.status_code
