"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_CHUNK_SIZE = 65536  # 64 KB
MIN_CHUNK_SIZE = 1024  # 1 KB
MAX_CHUNK_SIZE = 8388608  # 8 MB


class ClientConfig(BaseModel):
    """A validated configuration model for the artifact service client."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Service
    base_url: str

    # Network Settings
    request_timeout: float = 30.0
    transfer_timeout: float = 300.0
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_connections: int = 8

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Requires an http(s) URL and strips the trailing slash."""
        if not v:
            raise ValueError("Base URL cannot be empty.")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Base URL must start with http:// or https://, got: {v}")
        return v.rstrip("/")

    @field_validator("request_timeout", "transfer_timeout")
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeouts must be positive.")
        return v

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        """Keeps the transfer chunk size within sane bounds."""
        if v < MIN_CHUNK_SIZE or v > MAX_CHUNK_SIZE:
            raise ValueError(
                f"Chunk size must be between {MIN_CHUNK_SIZE} and {MAX_CHUNK_SIZE} bytes."
            )
        return v

    @field_validator("max_connections")
    @classmethod
    def validate_connections(cls, v: int) -> int:
        """Ensures a reasonable connection pool size."""
        if v < 1 or v > 64:
            raise ValueError("Max connections must be between 1 and 64.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
