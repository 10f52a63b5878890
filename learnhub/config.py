"""
LearnHub Configuration
Validated settings built once at startup and injected where needed
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional


DEFAULT_TOKEN_EXPIRE_MINUTES = 7 * 24 * 60
DEFAULT_MAX_VIDEO_BYTES = 500 * 1024 * 1024


@dataclass(frozen=True)
class Settings:
    mongo_url: str
    jwt_secret_key: str
    mongo_db_name: str = "learnhub"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = DEFAULT_TOKEN_EXPIRE_MINUTES
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None
    max_video_bytes: int = DEFAULT_MAX_VIDEO_BYTES
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the environment - fails fast on missing vars"""
        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            mongo_url=cls._require_env("MONGO_URL"),
            jwt_secret_key=cls._require_env("JWT_SECRET_KEY"),
            mongo_db_name=os.getenv("MONGO_DB_NAME", "learnhub"),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            access_token_expire_minutes=int(
                os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", DEFAULT_TOKEN_EXPIRE_MINUTES)
            ),
            cloudinary_cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME"),
            cloudinary_api_key=os.getenv("CLOUDINARY_API_KEY"),
            cloudinary_api_secret=os.getenv("CLOUDINARY_API_SECRET"),
            max_video_bytes=int(os.getenv("MAX_VIDEO_BYTES", DEFAULT_MAX_VIDEO_BYTES)),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )

    @staticmethod
    def _require_env(key: str) -> str:
        """Get required environment variable or crash"""
        value = os.getenv(key)
        if not value:
            raise RuntimeError(f"FATAL: Missing required environment variable: {key}")
        return value

    @property
    def uploads_configured(self) -> bool:
        return bool(
            self.cloudinary_cloud_name
            and self.cloudinary_api_key
            and self.cloudinary_api_secret
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
