from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # Application
    app_name: str = "sitedeploy"
    environment: str = "development"
    log_level: str = "INFO"
    server_url: str = "http://localhost:8000"  # External base URL for /preview links

    # Qiniu object storage
    qiniu_access_key: str = ""
    qiniu_secret_key: str = ""
    qiniu_bucket: str = ""
    qiniu_zone: str = "z0"
    qiniu_domain: str = ""  # Optional custom display domain

    # Salt for deterministic storage prefixes
    hash_secret: str = "default-secret"

    # Link lifetimes (seconds)
    upload_token_lifetime: int = 3600 * 24
    index_url_lifetime: int = 3600 * 24 * 365
    preview_url_lifetime: int = 3600

    # GitHub Pages
    github_token: str = ""
    github_username: str = ""

    # Deployment history
    history_file: str = "data/history.json"
    history_limit: int = 50

    # HTTP Proxy
    http_proxy: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def qiniu_default_domain(self) -> str:
        """Canonical bucket domain; signatures are always computed against it."""
        return f"{self.qiniu_bucket}.{self.qiniu_zone}.qiniucs.com"

    def missing_qiniu_settings(self) -> List[str]:
        """Env var names of required storage settings that are empty."""
        required = (
            ("QINIU_ACCESS_KEY", self.qiniu_access_key),
            ("QINIU_SECRET_KEY", self.qiniu_secret_key),
            ("QINIU_BUCKET", self.qiniu_bucket),
        )
        return [name for name, value in required if not value]


@lru_cache()
def get_settings() -> Settings:
    return Settings()
