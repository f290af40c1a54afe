"""
HalRest — Application Configuration
=====================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or a .env file),
       validates types/ranges, and provides a singleton ``settings`` object.
Who:   Imported by the app factory, the controller defaults and the Problem
       renderer.
When:  Loaded once at module import time.

Values here are defaults. Every RestController can override its own page size,
page size parameter, collection name and method sets when it is constructed.
"""

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes are grouped by concern for readability.
    """

    # ── Routing ───────────────────────────────────────────────────────────
    # Prefix under which resources registered by the app factory are mounted
    api_prefix: str = Field(default="/api")

    # ── Collections ───────────────────────────────────────────────────────
    # Items per collection page when the request does not ask for a size
    page_size: int = Field(default=30, ge=1)

    # Query parameter that lets clients choose a page size (disabled when unset)
    page_size_param: Optional[str] = Field(default=None)

    # Optional upper bound on client-chosen page sizes (unbounded when unset)
    max_page_size: Optional[int] = Field(default=None, ge=1)

    # Key under ``_embedded`` holding the collection entries
    collection_name: str = Field(default="items")

    # ── Problem Rendering ─────────────────────────────────────────────────
    # Adds the exception class name to problems built from backend faults
    expose_problem_exception_class: bool = Field(default=False)

    # ── CORS ──────────────────────────────────────────────────────────────
    # Comma-separated URLs
    cors_origins: str = Field(default="http://localhost:3000")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8000, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    @field_validator("api_prefix")
    @classmethod
    def normalize_api_prefix(cls, v: str) -> str:
        """Leading slash, no trailing slash ("" mounts at the root)."""
        v = v.strip().rstrip("/")
        if v and not v.startswith("/"):
            v = "/" + v
        return v

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Singleton instance, imported throughout the application
settings = Settings()
