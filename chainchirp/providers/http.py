"""
HTTP transport for provider calls.

One requests.Session per provider carrying the default headers
(User-Agent, Accept, Content-Type) plus the provider's auth headers.
Every failure is raised as ProviderHTTPError with either the HTTP status or
a network error code so the retrier can classify it.
"""
from __future__ import annotations

import errno
import logging
import threading
from typing import Any, Dict, Optional, Protocol

import requests

from ..config import provider_secret
from ..core.errors import ProviderHTTPError
from .base import ProviderSpec, QueryParams

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 10.0
DEFAULT_USER_AGENT = "ChainChirp-CLI/1.0.0"

_ERRNO_CODES = {
    errno.ECONNRESET: "ECONNRESET",
    errno.ECONNABORTED: "ECONNABORTED",
    errno.ETIMEDOUT: "ETIMEDOUT",
    errno.ECONNREFUSED: "ECONNREFUSED",
}


class ProviderTransport(Protocol):
    """Anything that can GET a provider path and return the decoded JSON body."""

    def get(
        self,
        spec: ProviderSpec,
        path: str,
        params: Optional[QueryParams] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        ...


def build_url(spec: ProviderSpec, path: str) -> str:
    """Join base URL and path; absolute URLs (cross-host mappings) pass through."""
    if path.startswith(("http://", "https://")):
        return path
    return spec.base_url.rstrip("/") + "/" + path.lstrip("/")


def _encode_params(params: Optional[QueryParams]) -> Dict[str, Any]:
    """Drop None values, render booleans the way the upstream APIs expect."""
    out: Dict[str, Any] = {}
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            out[key] = "true" if value else "false"
        elif isinstance(value, (list, tuple)):
            out[key] = ",".join(str(v).lower() if isinstance(v, bool) else str(v) for v in value)
        else:
            out[key] = value
    return out


def network_error_code(exc: requests.RequestException) -> str:
    """Map a requests/urllib3 failure onto a stable network error code."""
    if isinstance(exc, requests.Timeout):
        return "ETIMEDOUT"
    cause: Optional[BaseException] = exc
    seen = 0
    while cause is not None and seen < 8:
        if isinstance(cause, ConnectionResetError):
            return "ECONNRESET"
        if isinstance(cause, ConnectionAbortedError):
            return "ECONNABORTED"
        if isinstance(cause, ConnectionRefusedError):
            return "ECONNREFUSED"
        if isinstance(cause, TimeoutError):
            return "ETIMEDOUT"
        if isinstance(cause, OSError) and cause.errno in _ERRNO_CODES:
            return _ERRNO_CODES[cause.errno]
        for arg in getattr(cause, "args", ()):
            if isinstance(arg, BaseException):
                nested = arg
                break
        else:
            nested = None
        cause = nested or cause.__cause__ or cause.__context__
        seen += 1
    if isinstance(exc, requests.ConnectionError):
        return "ENOTFOUND"
    return "EREQUEST"


class RequestsTransport:
    """requests-backed transport with one cached Session per provider."""

    def __init__(
        self,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self.timeout_s = timeout_s
        self.user_agent = user_agent
        self._sessions: Dict[str, requests.Session] = {}
        self._lock = threading.Lock()

    def headers_for(self, spec: ProviderSpec) -> Dict[str, str]:
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        for header, env_name in spec.auth_headers.items():
            headers[header] = provider_secret(env_name)
        return headers

    def session_for(self, spec: ProviderSpec) -> requests.Session:
        with self._lock:
            session = self._sessions.get(spec.key)
            if session is None:
                session = requests.Session()
                session.headers.update(self.headers_for(spec))
                self._sessions[spec.key] = session
            return session

    def get(
        self,
        spec: ProviderSpec,
        path: str,
        params: Optional[QueryParams] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        url = build_url(spec, path)
        session = self.session_for(spec)
        logger.debug("GET %s params=%s", url, params)
        try:
            resp = session.get(
                url,
                params=_encode_params(params),
                timeout=timeout if timeout is not None else self.timeout_s,
            )
        except requests.RequestException as exc:
            code = network_error_code(exc)
            raise ProviderHTTPError(
                f"{spec.name} request failed ({code}): {exc}",
                provider=spec.key,
                code=code,
            ) from exc

        if resp.status_code >= 400:
            raise ProviderHTTPError(
                f"{spec.name} returned HTTP {resp.status_code} for {path}",
                provider=spec.key,
                status=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderHTTPError(
                f"{spec.name} returned a non-JSON body for {path}",
                provider=spec.key,
                status=resp.status_code,
            ) from exc

    def close(self) -> None:
        with self._lock:
            for session in self._sessions.values():
                session.close()
            self._sessions.clear()
