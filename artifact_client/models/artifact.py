"""
Pydantic models for the records exchanged with the artifact service.
"""

import ipaddress
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class TokenScope(str, Enum):
    """What a token authorizes."""

    UPLOAD = "upload"
    DOWNLOAD = "download"


class TokenConstraints(BaseModel):
    """
    Constraints attached to a token when it is issued.

    Defaults:
        max_uses: 1 (sent as ``max_uploads`` or ``max_downloads``).
        valid_from: None, the token is active immediately.
        valid_to: None, the service decides when it expires.
        allowed_cidr: None, no network restriction.

    Fields left as None are not transmitted, so the service applies its own
    defaults for them.
    """

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    max_uses: int = Field(1, ge=1)
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    allowed_cidr: Optional[str] = None

    @field_validator("allowed_cidr")
    @classmethod
    def validate_cidr(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        try:
            ipaddress.ip_network(v, strict=False)
        except ValueError as e:
            raise ValueError(f"Invalid CIDR notation: {v}") from e
        return v

    @model_validator(mode="after")
    def validate_window(self) -> "TokenConstraints":
        """Rejects an activation window that ends before it starts."""
        if self.valid_from and self.valid_to and self.valid_to < self.valid_from:
            raise ValueError("valid_to cannot be earlier than valid_from.")
        return self

    def to_payload(self, scope: TokenScope) -> dict[str, Any]:
        """Builds the JSON body fields for a token request of the given scope."""
        count_key = "max_uploads" if scope is TokenScope.UPLOAD else "max_downloads"
        payload: dict[str, Any] = {count_key: self.max_uses}
        if self.valid_from is not None:
            payload["valid_from"] = self.valid_from.isoformat()
        if self.valid_to is not None:
            payload["valid_to"] = self.valid_to.isoformat()
        if self.allowed_cidr:
            payload["allowed_cidr"] = self.allowed_cidr
        return payload


class IssuedToken(BaseModel):
    """
    A token plus its follow-up URL.

    For uploads ``url`` is the initiation URL to exchange for a presigned
    upload URL; for downloads it is a ready-to-use presigned download URL.
    """

    token: str
    scope: TokenScope
    url: str


class FileDescriptor(BaseModel):
    """File metadata announced to the service before an upload."""

    filename: str
    content_type: str = DEFAULT_CONTENT_TYPE
    size: Optional[int] = Field(None, ge=0)

    @field_validator("content_type", mode="before")
    @classmethod
    def default_content_type(cls, v: Optional[str]) -> str:
        return v or DEFAULT_CONTENT_TYPE

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "filename": self.filename,
            "content_type": self.content_type,
        }
        if self.size is not None:
            payload["size"] = self.size
        return payload


class PresignedUpload(BaseModel):
    """A presigned upload URL and the artifact identifier assigned to it."""

    presigned_url: str
    uuid: str


class Artifact(BaseModel):
    """The service-side record of one uploaded file."""

    model_config = ConfigDict(extra="allow")

    uuid: str
    filename: str = ""
    content_type: str = DEFAULT_CONTENT_TYPE
    size: int = 0
    status: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_complete(self) -> bool:
        return (self.status or "").lower() == "complete"


class StorageUsage(BaseModel):
    """Storage quota figures reported by the service."""

    total_space: int = 0
    used_space: int = 0
    remaining_space: int = 0
    usage_percent: float = 0.0
    file_count: int = 0
