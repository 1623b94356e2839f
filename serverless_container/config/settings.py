"""Container settings loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BINARY_MEDIA_TYPES = (
    "application/octet-stream,application/pdf,application/zip,application/gzip,"
    "image/*,audio/*,video/*,font/*"
)


class Settings(BaseSettings):
    # Request/response encoding
    default_charset: str = "utf-8"
    # Comma-separated list; "type/*" matches any subtype
    binary_media_types: str = DEFAULT_BINARY_MEDIA_TYPES

    # Path handling
    use_stage_as_root_path: bool = False  # REST/HTTP API stage becomes the ASGI root_path
    strip_base_path: bool = False
    service_base_path: str = ""  # e.g. "/orders" for a custom domain base path mapping

    # Logging
    log_level: str = "INFO"
    audit_log_file: str = ""  # Empty = stdout only

    model_config = SettingsConfigDict(
        env_prefix="SC_", env_file=".env", env_file_encoding="utf-8"
    )

    @property
    def binary_media_types_list(self) -> list[str]:
        """Parse the comma-separated media types, lower-cased."""
        return [t.strip().lower() for t in self.binary_media_types.split(",") if t.strip()]

    @property
    def normalized_base_path(self) -> str:
        """Service base path with a leading slash and no trailing slash."""
        base = self.service_base_path.strip().strip("/")
        return f"/{base}" if base else ""


@lru_cache
def get_settings() -> Settings:
    return Settings()
