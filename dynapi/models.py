"""Pydantic models for endpoint declarations, assets and settings.

Stored documents use the camelCase wire schema (``parameterSource``,
``responseType``, ``redirectUrl`` ...). Python code works with snake_case
attributes; ``to_document`` produces the wire form.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from dynapi.constants import HTTPMethods, ParameterSources, ResponseTypes


def utc_now_iso() -> str:
    """Current instant as an ISO-8601 string with millisecond precision."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


class WireModel(BaseModel):
    """Base model for documents persisted in the wire schema."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_document(self) -> Dict[str, Any]:
        """Dump the model in its persisted (camelCase) form."""
        return self.model_dump(by_alias=True, mode="json")


class ParameterSpec(WireModel):
    """A declared input parameter."""

    name: str
    required: bool = False


class ResponseRule(WireModel):
    """One candidate payload, optionally guarded by a condition.

    Exactly one payload field is meaningful for a given response type:
    ``data`` (json), ``text`` (text), ``asset_path``/``asset_id``/``base64``
    (binary and image) or ``redirect_url`` (redirect).
    """

    condition: Optional[str] = None
    data: Any = None
    text: Any = None
    asset_path: Optional[str] = None
    asset_id: Optional[str] = None
    base64: Optional[str] = None
    content_type: Optional[str] = None
    file_name: Optional[str] = None
    redirect_url: Optional[str] = None
    url: Optional[str] = None

    @property
    def has_condition(self) -> bool:
        return bool(self.condition and self.condition.strip())


class Endpoint(WireModel):
    """A virtual route declaration."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    path: str
    method: str = HTTPMethods.GET
    description: str = ""
    protected: bool = False
    token: Optional[str] = None
    parameter_source: str = ParameterSources.NONE
    parameters: List[ParameterSpec] = Field(default_factory=list)
    response_type: str = ResponseTypes.JSON
    responses: List[ResponseRule] = Field(default_factory=list)
    enabled: bool = True
    position: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @field_validator("parameter_source", "response_type", mode="before")
    @classmethod
    def _lower_vocabulary(cls, value: Any) -> Any:
        if value is None:
            return None
        return value.lower() if isinstance(value, str) else value

    @field_validator("parameter_source", mode="after")
    @classmethod
    def _default_source(cls, value: Optional[str]) -> str:
        return value or ParameterSources.NONE

    def allows_method(self, method: str) -> bool:
        """Check whether this declaration answers the given HTTP method."""
        return self.method == HTTPMethods.ANY or self.method == method.upper()


class Asset(WireModel):
    """An uploaded file referenced by response rules."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    filename: str
    path: str
    ext: str = ""
    content_type: Optional[str] = None
    size: int = 0
    created_at: str = Field(default_factory=utc_now_iso)


class ScalabilitySettings(WireModel):
    """Worker and connection sizing persisted for the admin surface."""

    workers: int = 1
    max_connections: int = 1000
    connection_timeout: int = 30000
    keep_alive_timeout: int = 5000


class ServerSettings(WireModel):
    """Runtime settings persisted in the document store."""

    id: str = "server"
    admin_password_hash: Optional[str] = None
    session_secret: Optional[str] = None
    log_level: str = "info"
    port: Optional[int] = None
    scalability: ScalabilitySettings = Field(default_factory=ScalabilitySettings)

    def public_dict(self) -> Dict[str, Any]:
        """Settings without secrets, as exported and shown to admins."""
        return self.model_dump(
            by_alias=True,
            mode="json",
            exclude={"admin_password_hash", "session_secret", "id"},
        )


class RegistryExport(WireModel):
    """Portable snapshot of the full registry."""

    version: str
    exported_at: str = Field(default_factory=utc_now_iso)
    settings: Optional[Dict[str, Any]] = None
    endpoints: Optional[List[Dict[str, Any]]] = None
    assets: Dict[str, str] = Field(default_factory=dict)
    asset_records: List[Dict[str, Any]] = Field(default_factory=list)


__all__ = [
    "utc_now_iso",
    "WireModel",
    "ParameterSpec",
    "ResponseRule",
    "Endpoint",
    "Asset",
    "ScalabilitySettings",
    "ServerSettings",
    "RegistryExport",
]
