"""Configuration root of the Firebase Admin SDK.

``FirebaseApp`` is built synchronously and cheaply: the credential is stored
and the shared token manager and pipeline are wired up, but no network call
happens until a service client issues its first request.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Self

from .config import AppConfig
from .core.pipeline import RequestPipeline
from .core.retry_policy import RetryPolicy
from .core.token_manager import TokenManager
from .core.token_source import ServiceAccountTokenSource
from .credentials import ServiceAccountKey
from .errors import InvalidConfigError
from .http import create_async_http_client
from .services import Service, ServiceClient

if TYPE_CHECKING:
    import httpx

    from .models import AccessToken


class FirebaseApp:
    """Shared credential, token state and retry policy for all service clients."""

    def __init__(
        self,
        credential: ServiceAccountKey,
        config: AppConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the app. Performs no I/O.

        Args:
            credential: Parsed service account key.
            config: SDK configuration.
            http_client: Optional transport; one is created if omitted.

        Raises:
            InvalidConfigError: If the credential or config is not usable.
        """
        if not isinstance(credential, ServiceAccountKey):
            raise InvalidConfigError(
                "credential must be a ServiceAccountKey", field="credential"
            )
        if config is not None and not isinstance(config, AppConfig):
            raise InvalidConfigError("config must be an AppConfig", field="config")

        self._credential = credential
        self._config = config or AppConfig()
        self._owns_http = http_client is None
        self._http = http_client or create_async_http_client(self._config)

        source = ServiceAccountTokenSource(credential, self._http, self._config.token)
        self._token_manager = TokenManager(source, self._config.token)
        self._pipeline = RequestPipeline(
            self._http,
            self._token_manager,
            RetryPolicy(self._config.retry),
        )

    @classmethod
    def from_service_account_file(
        cls,
        path: str | Path,
        config: AppConfig | None = None,
        **kwargs: Any,
    ) -> Self:
        """Create an app from a service account JSON key file."""
        return cls(ServiceAccountKey.from_file(path), config, **kwargs)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the pooled HTTP client if the app created it."""
        if self._owns_http:
            await self._http.aclose()

    @property
    def credential(self) -> ServiceAccountKey:
        return self._credential

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def project_id(self) -> str | None:
        return self._credential.project_id

    @property
    def token_manager(self) -> TokenManager:
        return self._token_manager

    @property
    def pipeline(self) -> RequestPipeline:
        return self._pipeline

    async def get_access_token(self) -> AccessToken:
        """Current access token, fetched or refreshed on demand."""
        return await self._token_manager.get_token()

    def client_for(
        self,
        service: Service | str,
        *,
        base_url: str | None = None,
    ) -> ServiceClient:
        """Return a handle for ``service`` sharing this app's token and pipeline.

        Args:
            service: Service to address.
            base_url: Override for the service base URL (emulators, tests).

        Raises:
            InvalidConfigError: Unknown service, or project ID missing.
        """
        try:
            resolved = Service(service)
        except ValueError as e:
            raise InvalidConfigError(f"Unknown service: {service}", field="service") from e
        return ServiceClient(self, resolved, base_url or resolved.base_url(self.project_id))

    def auth(self) -> ServiceClient:
        """Client for identity management."""
        return self.client_for(Service.AUTH)

    def messaging(self) -> ServiceClient:
        """Client for push messaging."""
        return self.client_for(Service.MESSAGING)

    def remote_config(self) -> ServiceClient:
        """Client for remote configuration."""
        return self.client_for(Service.REMOTE_CONFIG)

    def firestore(self) -> ServiceClient:
        """Client for the document database."""
        return self.client_for(Service.FIRESTORE)

    def storage(self) -> ServiceClient:
        """Client for object storage."""
        return self.client_for(Service.STORAGE)

    def crashlytics(self) -> ServiceClient:
        """Client for crash-report management."""
        return self.client_for(Service.CRASHLYTICS)

    def __repr__(self) -> str:
        return f"FirebaseApp(project_id={self.project_id!r})"
