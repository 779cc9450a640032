"""HTTP embedding backends for the two provider authentication strategies.

Direct-key
    The configured key (recognised by its prefix, ``bce-v3/`` by default) is
    sent as the bearer token on every request.

Token-exchange
    A key/secret pair is traded for an access token at the token endpoint.
    The token is cached by an :class:`AccessTokenManager` and reused until
    it is within a day of expiring.

Both strategies POST ``{"model": ..., "input": [...]}`` and read back
``{"data": [{"embedding": [...]}, ...]}``. Neither retries.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from docrag.config import Settings
from docrag.embedders.credentials import AccessTokenManager, response_body
from docrag.errors import ConfigurationError, NetworkError, ProviderError

logger = logging.getLogger(__name__)


class _HttpEmbeddingBackend:
    """Shared request/response handling for both strategies."""

    name = "http"

    def __init__(
        self,
        model: str,
        *,
        http_client: httpx.Client | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.model = model
        self._timeout = timeout
        self._http = http_client or httpx.Client(timeout=timeout)
        self._owns_client = http_client is None

    def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        return self._post(self._url(), self._bearer_token(), texts)

    def close(self) -> None:
        """Close the HTTP client if this backend created it."""
        if self._owns_client:
            self._http.close()

    # -- strategy hooks -------------------------------------------------------

    def _url(self) -> str:
        raise NotImplementedError

    def _bearer_token(self) -> str:
        raise NotImplementedError

    # -- internals ------------------------------------------------------------

    def _post(self, url: str, token: str, texts: list[str]) -> list[list[float]]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }
        payload = {"model": self.model, "input": texts}

        logger.debug("%s embedding request: %d texts", self.name, len(texts))
        try:
            r = self._http.post(url, json=payload, headers=headers, timeout=self._timeout)
            r.raise_for_status()
            data = r.json()
        except httpx.HTTPStatusError as exc:
            body = response_body(exc.response)
            logger.error(
                "%s embedding API error -> %d %s", self.name, exc.response.status_code, body
            )
            raise ProviderError(
                f"Embedding API error: {exc.response.status_code} {exc.response.reason_phrase}",
                status_code=exc.response.status_code,
                response=body,
            ) from exc
        except httpx.TimeoutException as exc:
            raise NetworkError("Embedding API timeout") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Embedding API unreachable: {exc}") from exc
        except ValueError as exc:
            raise ProviderError(
                "Embedding API returned invalid JSON", status_code=r.status_code
            ) from exc

        return _parse_vectors(data, status_code=r.status_code)


class DirectKeyBackend(_HttpEmbeddingBackend):
    """Sends the API key itself as the bearer token."""

    name = "direct-key"

    def __init__(self, url: str, api_key: str, model: str, **kwargs: Any) -> None:
        super().__init__(model, **kwargs)
        self.url = url
        self._api_key = api_key

    def _url(self) -> str:
        return self.url

    def _bearer_token(self) -> str:
        return self._api_key


class TokenExchangeBackend(_HttpEmbeddingBackend):
    """Sends a cached access token obtained from the token endpoint."""

    name = "token-exchange"

    def __init__(
        self,
        base_url: str,
        token_manager: AccessTokenManager,
        model: str,
        **kwargs: Any,
    ) -> None:
        super().__init__(model, **kwargs)
        self.url = f"{base_url.rstrip('/')}/embeddings"
        self.token_manager = token_manager

    def _url(self) -> str:
        return self.url

    def _bearer_token(self) -> str:
        return self.token_manager.get_token()


def create_backend(
    config: Settings,
    *,
    http_client: httpx.Client | None = None,
    token_manager: AccessTokenManager | None = None,
) -> _HttpEmbeddingBackend:
    """Pick the authentication strategy from the shape of the configured key.

    Raises:
        ConfigurationError: the key is missing, or the token-exchange
            strategy was selected without a secret.
    """
    if not config.embedding_api_key:
        raise ConfigurationError(
            "Embedding provider is not configured: set DOCRAG_EMBEDDING_API_KEY"
        )

    if not config.uses_direct_key and not config.embedding_secret_key:
        raise ConfigurationError(
            "Token-exchange keys need a secret: set DOCRAG_EMBEDDING_SECRET_KEY"
        )

    owns_client = http_client is None
    http_client = http_client or httpx.Client(timeout=config.request_timeout_seconds)
    common = {"http_client": http_client, "timeout": config.request_timeout_seconds}

    backend: _HttpEmbeddingBackend
    if config.uses_direct_key:
        logger.info("Key has %r prefix, using direct-key embedding API", config.direct_key_prefix)
        backend = DirectKeyBackend(
            config.direct_embedding_url,
            config.embedding_api_key,
            config.embedding_model,
            **common,
        )
    else:
        logger.info("Using token-exchange embedding API")
        if token_manager is None:
            token_manager = AccessTokenManager(
                config.token_url,
                config.embedding_api_key,
                config.embedding_secret_key,
                **common,
            )
        backend = TokenExchangeBackend(
            config.compatible_base_url,
            token_manager,
            config.embedding_model,
            **common,
        )

    # The token manager shares this client, so the backend closes it for both
    backend._owns_client = owns_client
    return backend


def _parse_vectors(data: Any, *, status_code: int = 0) -> list[list[float]]:
    """Pull the ordered vectors out of an embeddings response body."""
    items = data.get("data") if isinstance(data, dict) else None
    if not isinstance(items, list):
        raise ProviderError(
            "Embedding API response has no data array",
            status_code=status_code,
            response=data if isinstance(data, dict) else {},
        )

    if items and all(isinstance(item, dict) and "index" in item for item in items):
        items = sorted(items, key=lambda item: item["index"])

    vectors = []
    for item in items:
        embedding = item.get("embedding") if isinstance(item, dict) else None
        if not isinstance(embedding, list):
            raise ProviderError(
                "Embedding API response item has no embedding",
                status_code=status_code,
                response=data,
            )
        try:
            vectors.append([float(x) for x in embedding])
        except (TypeError, ValueError) as exc:
            raise ProviderError(
                "Embedding API response holds non-numeric values",
                status_code=status_code,
                response=data,
            ) from exc
    return vectors

