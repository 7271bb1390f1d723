import os
from dataclasses import dataclass

MB = 1024 * 1024


def _env(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


@dataclass(frozen=True)
class Settings:
    """Process settings, read once from the environment (and .env via python-dotenv)."""

    secret_key: str
    env: str
    database_url: str

    # Resource attachments: "local" writes under storage_root, "s3" uses the bucket below.
    storage_backend: str
    storage_root: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str

    # Journal analysis; an empty key means keyword analysis only.
    openai_api_key: str
    openai_model: str

    @property
    def is_production(self) -> bool:
        return self.env in ("prod", "production")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            secret_key=_env("SECRET_KEY", "change-me"),
            env=_env("ENV", "development").lower(),
            database_url=_env("DATABASE_URL", "sqlite:///rhub.db"),
            storage_backend=_env("STORAGE_BACKEND", "local").lower(),
            storage_root=_env("STORAGE_ROOT"),
            s3_endpoint=_env("S3_ENDPOINT"),
            s3_region=_env("S3_REGION", "nyc3"),
            s3_bucket=_env("S3_BUCKET"),
            s3_access_key_id=_env("S3_ACCESS_KEY_ID"),
            s3_secret_access_key=_env("S3_SECRET_ACCESS_KEY"),
            openai_api_key=_env("OPENAI_API_KEY"),
            openai_model=_env("OPENAI_MODEL", "gpt-4o"),
        )

    def flask_config(self) -> dict:
        cfg = {
            "SECRET_KEY": self.secret_key,
            "ENV": self.env,
            "DATABASE_URL": self.database_url,
            "STORAGE_BACKEND": self.storage_backend,
            "STORAGE_ROOT": self.storage_root,
            "S3_ENDPOINT": self.s3_endpoint,
            "S3_REGION": self.s3_region,
            "S3_BUCKET": self.s3_bucket,
            "S3_ACCESS_KEY_ID": self.s3_access_key_id,
            "S3_SECRET_ACCESS_KEY": self.s3_secret_access_key,
            "OPENAI_API_KEY": self.openai_api_key,
            "OPENAI_MODEL": self.openai_model,
            "CSRF_ENABLED": self.env != "test",
            # Request cap; the 10 MB per-file PDF limit is checked when the upload is stored.
            "MAX_CONTENT_LENGTH": 10 * MB + 64 * 1024,
        }
        cfg.update(
            SESSION_COOKIE_HTTPONLY=True,
            SESSION_COOKIE_SAMESITE="Lax",
            SESSION_COOKIE_SECURE=self.is_production,
        )
        return cfg


def load_config() -> dict:
    return Settings.from_env().flask_config()
