# reflect_app/config/settings.py

import os

from reflect_app.config.constants import DEFAULT_POINTS_TO_BLOOM


class Settings:
    # Database URL used by SQLAlchemy
    db_connection_string: str = os.getenv(
        "DATABASE_URL",
        "sqlite:///./reflect.db"
    )

    # Object storage (Firebase Storage REST API) for plant artwork
    storage_bucket: str = os.getenv("STORAGE_BUCKET", "")
    storage_base_url: str = os.getenv(
        "STORAGE_BASE_URL", "https://firebasestorage.googleapis.com/v0/b"
    )
    storage_asset_root: str = os.getenv("STORAGE_ASSET_ROOT", "game_assets/plants")
    storage_timeout: float = float(os.getenv("STORAGE_TIMEOUT", "5"))

    # Threshold used when a plant type's catalog entry cannot be read
    default_points_to_bloom: int = int(
        os.getenv("DEFAULT_POINTS_TO_BLOOM", DEFAULT_POINTS_TO_BLOOM)
    )

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()
