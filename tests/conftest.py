"""
Shared test fixtures for Firebase Admin SDK tests.

Provides a generated service account key, fast retry configuration and a
scripted fake backend (token endpoint + API) behind ``httpx.MockTransport``.
"""

from __future__ import annotations

import asyncio
import json
from urllib.parse import parse_qs

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from firebase_admin_sdk.app import FirebaseApp
from firebase_admin_sdk.config import (
    AppConfig,
    RetryConfig,
    TelemetryConfig,
    TokenConfig,
)
from firebase_admin_sdk.credentials import GOOGLE_TOKEN_URI, ServiceAccountKey

ScriptedResponse = httpx.Response | Exception


class FakeBackend:
    """Token endpoint and API server driven by scripted responses.

    Scripted entries are consumed in order; once a script is empty the token
    endpoint issues ``token-<n>`` and the API answers ``200 {}``.
    """

    def __init__(self, token_uri: str = GOOGLE_TOKEN_URI) -> None:
        self.token_uri = token_uri
        self.token_calls = 0
        self.token_script: list[ScriptedResponse] = []
        self.token_gate: asyncio.Event | None = None
        self.token_forms: list[dict[str, list[str]]] = []

        self.api_script: list[ScriptedResponse] = []
        self.api_requests: list[httpx.Request] = []
        self.api_delay: float = 0.0

    @property
    def api_calls(self) -> int:
        return len(self.api_requests)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if str(request.url) == self.token_uri:
            return await self._token(request)
        return await self._api(request)

    async def _token(self, request: httpx.Request) -> httpx.Response:
        self.token_calls += 1
        call = self.token_calls
        self.token_forms.append(parse_qs(request.content.decode()))
        if self.token_gate is not None:
            await self.token_gate.wait()
        if self.token_script:
            return _play(self.token_script.pop(0))
        return httpx.Response(
            200,
            json={"access_token": f"token-{call}", "expires_in": 3600, "token_type": "Bearer"},
        )

    async def _api(self, request: httpx.Request) -> httpx.Response:
        self.api_requests.append(request)
        if self.api_delay:
            await asyncio.sleep(self.api_delay)
        if self.api_script:
            return _play(self.api_script.pop(0))
        return httpx.Response(200, json={})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def _play(entry: ScriptedResponse) -> httpx.Response:
    if isinstance(entry, Exception):
        raise entry
    return entry


def json_response(status_code: int, body: dict | None = None, **headers: str) -> httpx.Response:
    """Build a scripted response with an optional JSON body."""
    return httpx.Response(
        status_code,
        content=json.dumps(body or {}).encode(),
        headers={"Content-Type": "application/json", **headers},
    )


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    """Provide an RSA key generated once per test session."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key: rsa.RSAPrivateKey) -> str:
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def service_account_info(private_key_pem: str) -> dict:
    """Provide a service account JSON key as a dict."""
    return {
        "type": "service_account",
        "project_id": "demo-project",
        "private_key_id": "key-1",
        "private_key": private_key_pem,
        "client_email": "sdk@demo-project.iam.gserviceaccount.com",
        "client_id": "1234567890",
        "token_uri": GOOGLE_TOKEN_URI,
    }


@pytest.fixture
def service_account_key(service_account_info: dict) -> ServiceAccountKey:
    return ServiceAccountKey.from_dict(service_account_info)


@pytest.fixture
def retry_config() -> RetryConfig:
    """Provide retry configuration without real backoff delays."""
    return RetryConfig(
        max_attempts=4,
        initial_delay=0.0,
        max_delay=1.0,
        exponential_base=2.0,
        jitter=0.0,
        max_elapsed=60.0,
    )


@pytest.fixture
def token_config() -> TokenConfig:
    return TokenConfig(expiry_skew=60.0, refresh_ahead=300.0)


@pytest.fixture
def app_config(retry_config: RetryConfig, token_config: TokenConfig) -> AppConfig:
    return AppConfig(
        retry=retry_config,
        token=token_config,
        telemetry=TelemetryConfig(enabled=False),
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def http_client(backend: FakeBackend) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=backend.transport())


@pytest.fixture
def app(
    service_account_key: ServiceAccountKey,
    app_config: AppConfig,
    http_client: httpx.AsyncClient,
) -> FirebaseApp:
    """Provide an app wired to the fake backend."""
    return FirebaseApp(service_account_key, app_config, http_client=http_client)


@pytest.fixture
def make_response():
    """Provide the scripted JSON response builder."""
    return json_response
