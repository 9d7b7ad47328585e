import os
from functools import lru_cache

from pydantic_settings import BaseSettings


def _load_doppler_secrets():
    """Load secrets from Doppler API into environment variables.

    Must run BEFORE Settings is instantiated so pydantic can read the env vars.
    """
    token = os.getenv("DOPPLER_TOKEN")
    if not token:
        return

    try:
        import requests
        response = requests.get(
            "https://api.doppler.com/v3/configs/config/secrets/download",
            params={"format": "json"},
            auth=(token, ""),
            timeout=30,
        )
        response.raise_for_status()
        secrets = response.json()

        for key, value in secrets.items():
            if key not in os.environ:  # Don't override existing env vars
                os.environ[key] = value

        print(f"Loaded {len(secrets)} secrets from Doppler")
    except Exception as e:
        print(f"Warning: Failed to load Doppler secrets: {e}")


# Load Doppler secrets into environment BEFORE Settings is instantiated
_load_doppler_secrets()


class Settings(BaseSettings):
    environment: str = "development"

    # Supabase
    supabase_url: str = ""
    supabase_publishable_key: str = ""
    supabase_secret_key: str = ""
    supabase_jwt_secret: str = ""  # JWT secret for HS256 token verification
    supabase_timeout: int = 30

    # Server
    base_url: str = "http://localhost:8000"
    web_app_url: str = "http://localhost:3000"
    cors_origin_regex: str = r"^https://([a-z0-9-]+\.)?passkit\.example$"  # Production origins

    # Storage buckets
    images_bucket: str = "pass-images"
    passes_bucket: str = "passes"  # Generated .pkpass files
    certificates_bucket: str = "certificates"

    # Pass update history is pruned after this many days
    pass_update_retention_days: int = 90

    # Image resizing
    image_resize_mode: str = "contain"  # 'contain' or 'cover'
    image_max_upload_kb: int = 1024
    image_quality_warning_ratio: float = 1.0

    # Credential uploads
    apple_certificate_max_kb: int = 512
    google_credential_max_kb: int = 50
    google_credential_rotation_days: int = 90

    # At-rest encryption for certificate passwords and Google private keys
    cert_encryption_key: str = ""  # 64 hex chars (256-bit AES key)

    # Redis (business domain whitelist cache)
    redis_url: str = "redis://localhost:6379/0"

    # Email (Resend)
    resend_api_key: str = ""
    email_from: str = "PassKit <noreply@passkit.example>"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()


def get_public_base_url() -> str:
    """Public base URL of the API, used to build shareable links."""
    return settings.base_url.rstrip("/")
