"""Configuration management for the booking mapper."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


def _parse_cors_origins() -> list[str]:
    """Parse CORS origins from environment variable."""
    cors_env = os.getenv("CORS_ALLOW_ORIGINS")
    if cors_env:
        return cors_env.split(",")
    return ["*"]


class Settings(BaseModel):
    """Application settings."""

    # Template store
    database_path: Path = Path(os.getenv("DATABASE_PATH", "data/bookingmapper.db"))

    # Booking API (commit collaborator)
    booking_api_url: str = os.getenv("BOOKING_API_URL", "http://localhost:3001/api")
    booking_api_token: Optional[str] = os.getenv("BOOKING_API_TOKEN")
    booking_api_timeout_seconds: float = float(os.getenv("BOOKING_API_TIMEOUT_SECONDS", "30"))

    # Server settings
    host: str = os.getenv("HOST", "127.0.0.1")
    port: int = int(os.getenv("PORT", "8000"))
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"

    # CORS settings (comma-separated list of allowed origins, or * for all)
    cors_allow_origins: list[str] = _parse_cors_origins()

    # Import guards
    max_rows_per_import: int = int(os.getenv("MAX_ROWS_PER_IMPORT", "10000"))
    max_file_size_bytes: int = int(os.getenv("MAX_FILE_SIZE_BYTES", str(10 * 1024 * 1024)))

    # Expression evaluation
    decimal_places: int = int(os.getenv("DECIMAL_PLACES", "2"))
    max_expression_length: int = int(os.getenv("MAX_EXPRESSION_LENGTH", "500"))

    # Bucket for rows whose listing name derives empty
    unknown_listing_name: str = os.getenv("UNKNOWN_LISTING_NAME", "Unknown Listing")


settings = Settings()
