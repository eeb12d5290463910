"""
Configuration Management

Centralized configuration using Pydantic Settings.
All settings loaded from environment variables with sensible defaults.
"""
import base64
import binascii
from typing import Optional, List
from pydantic_settings import BaseSettings
from pydantic import Field, ConfigDict, field_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Ignore extra environment variables that aren't defined in the model
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ============================================================
    # Token Configuration
    # ============================================================
    token_store: str = Field("jwt", description="Token strategy: jwt or memory")
    jwt_secret: Optional[str] = Field(
        None,
        description="Base64-encoded HMAC key for JWT tokens (at least 32 bytes)"
    )
    jwt_issuer: str = Field("", description="JWT issuer (empty = not set or checked)")
    jwt_audience: str = Field("", description="Comma-separated JWT audiences (empty = not checked)")
    token_ttl_seconds: int = Field(900, description="Token lifetime in seconds")
    token_cache_size: int = Field(1000, description="Maximum live tokens (memory strategy)")
    token_single_use: bool = Field(False, description="Consume tokens on first use (memory strategy)")
    invalid_token_status_code: int = Field(
        500,
        description="HTTP status for requests with an invalid bearer token (500 or 401)"
    )

    # ============================================================
    # File Staging Configuration
    # ============================================================
    file_cache_size: int = Field(100, description="Maximum staged files")
    file_ttl_seconds: int = Field(60, description="Staged file lifetime in seconds")
    cache_sweep_interval_seconds: float = Field(30.0, description="Seconds between expired-item sweeps")
    files_url_prefix: Optional[str] = Field(
        None,
        description="Public URL of the files route, e.g. https://attest.example.com/v1/attest/files"
    )

    # ============================================================
    # Placement Configuration
    # ============================================================
    token_directory: str = Field("/tmp", description="Device directory tokens are written to")
    place_rate_limit_per_minute: int = Field(30, description="Placement requests per minute per IP")

    # ============================================================
    # MDM Configuration
    # ============================================================
    mdm_url: Optional[str] = Field(None, description="MicroMDM URL, e.g. https://mdm.example.com")
    mdm_api_token: Optional[str] = Field(None, description="MicroMDM API token")
    mdm_cache_size: int = Field(100, description="Cached serial -> UDID lookups")
    mdm_timeout_seconds: float = Field(30.0, description="MicroMDM request timeout")

    # ============================================================
    # Package Signing Configuration
    # ============================================================
    signing_identity_path: Optional[str] = Field(
        None,
        description="PKCS#12 file with the installer signing key and certificate"
    )
    signing_identity_password: Optional[str] = Field(None, description="PKCS#12 password")
    package_identifier: str = Field("com.example.device-attestation", description="Payload package identifier")
    package_version: str = Field("1.0.0", description="Payload package version")

    # ============================================================
    # Server Configuration
    # ============================================================
    api_host: str = Field("0.0.0.0", description="API server host")
    api_port: int = Field(8443, description="API server port")
    ssl_certfile: Optional[str] = Field(None, description="TLS certificate (macOS requires TLS for package downloads)")
    ssl_keyfile: Optional[str] = Field(None, description="TLS private key")

    # ============================================================
    # Logging Configuration
    # ============================================================
    log_level: str = Field("INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR)")
    log_format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string"
    )

    @field_validator("token_store")
    @classmethod
    def _check_token_store(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("jwt", "memory"):
            raise ValueError(f"token_store must be 'jwt' or 'memory', got {value!r}")
        return value

    @property
    def jwt_audience_list(self) -> List[str]:
        """Parse JWT audiences into list."""
        return [aud.strip() for aud in self.jwt_audience.split(",") if aud.strip()]

    @property
    def jwt_key(self) -> bytes:
        """Decode the JWT HMAC key."""
        if not self.jwt_secret:
            raise ValueError("JWT_SECRET is required for the jwt token store")
        try:
            return base64.b64decode(self.jwt_secret, validate=True)
        except binascii.Error as e:
            raise ValueError(f"JWT_SECRET is not valid base64: {e}") from e


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings (singleton).

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings():
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = Settings()
    return _settings
