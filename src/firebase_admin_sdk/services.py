"""Per-service client handles.

A ``ServiceClient`` is a thin handle on an app: it knows its service base URL
and forwards every logical request to the app's shared pipeline. Creating
one performs no I/O.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any

from .errors import InvalidConfigError
from .models import ApiRequest

if TYPE_CHECKING:
    import httpx

    from .app import FirebaseApp
    from .core.pipeline import RequestPipeline
    from .core.token_manager import TokenManager


class Service(StrEnum):
    """Platform APIs reachable through an app."""

    AUTH = "auth"
    MESSAGING = "messaging"
    REMOTE_CONFIG = "remote_config"
    FIRESTORE = "firestore"
    STORAGE = "storage"
    CRASHLYTICS = "crashlytics"

    @property
    def url_template(self) -> str:
        return _BASE_URLS[self]

    def base_url(self, project_id: str | None) -> str:
        """Resolve the base URL for a project.

        Raises:
            InvalidConfigError: If the service is project scoped and no
                project ID is known.
        """
        template = self.url_template
        if "{project_id}" not in template:
            return template
        if not project_id:
            raise InvalidConfigError(
                f"project_id is required for the {self.value} service",
                field="project_id",
            )
        return template.replace("{project_id}", project_id)


_BASE_URLS: dict[Service, str] = {
    Service.AUTH: "https://identitytoolkit.googleapis.com/v1/projects/{project_id}",
    Service.MESSAGING: "https://fcm.googleapis.com/v1/projects/{project_id}",
    Service.REMOTE_CONFIG: "https://firebaseremoteconfig.googleapis.com/v1/projects/{project_id}",
    Service.FIRESTORE: (
        "https://firestore.googleapis.com/v1/projects/{project_id}/databases/(default)/documents"
    ),
    Service.STORAGE: "https://storage.googleapis.com/storage/v1",
    Service.CRASHLYTICS: "https://firebasecrashlytics.googleapis.com/v1alpha/projects/{project_id}",
}


class ServiceClient:
    """Lightweight handle sharing the app's token manager and pipeline."""

    __slots__ = ("service", "base_url", "_app")

    def __init__(self, app: FirebaseApp, service: Service, base_url: str) -> None:
        self._app = app
        self.service = service
        self.base_url = base_url.rstrip("/")

    @property
    def app(self) -> FirebaseApp:
        return self._app

    @property
    def pipeline(self) -> RequestPipeline:
        return self._app.pipeline

    @property
    def token_manager(self) -> TokenManager:
        return self._app.token_manager

    def url(self, path: str = "") -> str:
        """Absolute URL for a path relative to the service base URL."""
        if not path:
            return self.base_url
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def execute(
        self,
        request: ApiRequest,
        *,
        idempotent: bool | None = None,
        deadline: float | None = None,
    ) -> httpx.Response:
        """Run a logical request through the shared pipeline."""
        return await self._app.pipeline.execute(
            request, idempotent=idempotent, deadline=deadline
        )

    async def request(
        self,
        method: str,
        path: str = "",
        *,
        idempotent: bool | None = None,
        deadline: float | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Build and execute a request against this service.

        Args:
            method: HTTP method.
            path: Path relative to the service base URL.
            idempotent: Retry safety override.
            deadline: Optional overall time limit in seconds.
            **kwargs: ``params``, ``headers``, ``json_body``, ``content`` or ``data``.
        """
        request = ApiRequest(method=method.upper(), url=self.url(path), **kwargs)
        return await self.execute(request, idempotent=idempotent, deadline=deadline)

    def __repr__(self) -> str:
        return f"ServiceClient(service={self.service.value!r}, base_url={self.base_url!r})"
