"""Service account credential.

The credential is loaded once, validated in memory and never mutated. It is
shared by reference with the token source; signing material is kept in a
``SecretStr`` so it never shows up in reprs or logs.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    SecretStr,
    ValidationError,
    field_validator,
)

from .errors import ErrorCode, InvalidConfigError

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


class ServiceAccountKey(BaseModel):
    """Parsed service account JSON key."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: str = "service_account"
    project_id: str | None = None
    private_key_id: str | None = None
    private_key: SecretStr
    client_email: str = Field(..., min_length=1)
    client_id: str | None = None
    token_uri: HttpUrl = Field(default=GOOGLE_TOKEN_URI, validate_default=True)

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        """Only service account keys can sign JWT assertions."""
        if v != "service_account":
            msg = f"Unsupported credential type: {v}"
            raise ValueError(msg)
        return v

    @field_validator("private_key")
    @classmethod
    def validate_private_key(cls, v: SecretStr) -> SecretStr:
        """Reject values that are obviously not a PEM private key."""
        if "PRIVATE KEY-----" not in v.get_secret_value():
            msg = "private_key must be a PEM encoded private key"
            raise ValueError(msg)
        return v

    @property
    def token_endpoint(self) -> str:
        """Token endpoint as a plain string."""
        return str(self.token_uri)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Build a key from an already decoded JSON object.

        Raises:
            InvalidConfigError: If required fields are missing or malformed.
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise _invalid_key(e) from e

    @classmethod
    def from_json(cls, raw: str | bytes) -> Self:
        """Build a key from a JSON document."""
        try:
            return cls.model_validate_json(raw)
        except ValidationError as e:
            raise _invalid_key(e) from e

    @classmethod
    def from_file(cls, path: str | Path) -> Self:
        """Read a key from a service account JSON file.

        Raises:
            InvalidConfigError: If the file cannot be read or is not a valid key.
        """
        try:
            raw = Path(path).read_bytes()
        except OSError as e:
            raise InvalidConfigError(
                f"Cannot read service account key file {path}: {e.strerror or e}",
                field="path",
                code=ErrorCode.INVALID_CREDENTIAL,
            ) from e
        return cls.from_json(raw)


def _invalid_key(error: ValidationError) -> InvalidConfigError:
    first = error.errors()[0]
    return InvalidConfigError(
        f"Invalid service account key: {first['msg']}",
        field=".".join(str(p) for p in first["loc"]) or None,
        code=ErrorCode.INVALID_CREDENTIAL,
    )
