"""Access-token cache for the token-exchange authentication strategy."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

import httpx

from docrag.errors import NetworkError, ProviderError

logger = logging.getLogger(__name__)

# Tokens are refreshed this long before the provider says they expire,
# or halfway through the lifetime when that is shorter
REFRESH_MARGIN_SECONDS = 24 * 60 * 60
# Provider default lifetime when the response omits ``expires_in`` (30 days)
DEFAULT_TOKEN_LIFETIME_SECONDS = 30 * 24 * 60 * 60


class AccessTokenManager:
    """Exchanges a key/secret pair for a bearer token and caches it.

    One manager is meant to be shared by every backend using the same
    credentials. Refreshes are single-flight: callers that arrive while a
    refresh is running wait on the lock and then reuse its result.

    Parameters
    ----------
    token_url:
        OAuth-style token endpoint.
    api_key, secret_key:
        Client credentials sent as ``client_id`` / ``client_secret``.
    http_client:
        Client used for the exchange; a private one is created when omitted.
    timeout:
        Per-request timeout in seconds.
    clock:
        Returns the current time in seconds; injectable for tests.
    """

    def __init__(
        self,
        token_url: str,
        api_key: str,
        secret_key: str,
        *,
        http_client: httpx.Client | None = None,
        timeout: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.token_url = token_url
        self._api_key = api_key
        self._secret_key = secret_key
        self._http = http_client or httpx.Client(timeout=timeout)
        self._timeout = timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._token: str | None = None
        self._expires_at: float = 0.0
        self._refresh_at: float = 0.0
        self._owns_client = http_client is None
        self.exchange_count = 0

    @property
    def token_is_fresh(self) -> bool:
        """True when a cached token exists and is not inside the refresh margin."""
        return self._token is not None and self._clock() < self._refresh_at

    def get_token(self) -> str:
        """Return a valid access token, exchanging credentials if needed."""
        if self.token_is_fresh:
            return self._token  # type: ignore[return-value]

        with self._lock:
            # Another caller may have refreshed while we waited
            if not self.token_is_fresh:
                self._refresh()
            return self._token  # type: ignore[return-value]

    def invalidate(self) -> None:
        """Drop the cached token so the next call exchanges again."""
        with self._lock:
            self._token = None
            self._expires_at = 0.0
            self._refresh_at = 0.0

    def close(self) -> None:
        """Close the HTTP client if this manager created it."""
        if self._owns_client:
            self._http.close()

    def _refresh(self) -> None:
        params = {
            "grant_type": "client_credentials",
            "client_id": self._api_key,
            "client_secret": self._secret_key,
        }
        try:
            r = self._http.post(self.token_url, params=params, timeout=self._timeout)
            r.raise_for_status()
            data = r.json()
        except httpx.HTTPStatusError as exc:
            logger.error("Token exchange failed -> %d", exc.response.status_code)
            raise ProviderError(
                f"Token endpoint error: {exc.response.status_code}",
                status_code=exc.response.status_code,
                response=response_body(exc.response),
            ) from exc
        except httpx.TimeoutException as exc:
            raise NetworkError("Token endpoint timeout") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Token endpoint unreachable: {exc}") from exc
        except ValueError as exc:
            raise ProviderError("Token endpoint returned invalid JSON") from exc

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise ProviderError(
                "Token endpoint response has no access_token",
                status_code=r.status_code,
                response=data if isinstance(data, dict) else {},
            )

        lifetime = _parse_lifetime(data.get("expires_in"))
        if lifetime is None:
            raise ProviderError(
                "Token endpoint returned invalid expires_in",
                status_code=r.status_code,
                response=data,
            )

        now = self._clock()
        self._token = token
        self._expires_at = now + lifetime
        self._refresh_at = self._expires_at - min(REFRESH_MARGIN_SECONDS, lifetime / 2)
        self.exchange_count += 1
        logger.info("Obtained access token (expires in %ds)", int(lifetime))


def _parse_lifetime(value: object) -> float | None:
    """Seconds from an ``expires_in`` field; None when it is not a positive number."""
    if value is None:
        return float(DEFAULT_TOKEN_LIFETIME_SECONDS)
    if isinstance(value, bool):
        return None
    try:
        lifetime = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return lifetime if 0 < lifetime < float("inf") else None


def response_body(response: httpx.Response) -> dict:
    """Best-effort decoded body of an error response."""
    try:
        body = response.json()
    except ValueError:
        return {"raw": response.text}
    return body if isinstance(body, dict) else {"raw": body}
