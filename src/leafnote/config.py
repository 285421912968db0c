"""Configuration management for leafnote.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


@dataclass
class Config:
    """Application configuration."""

    # Local store
    db_path: Path

    # Supabase (remote item store, auth, analytics events)
    supabase_url: Optional[str]
    supabase_anon_key: Optional[str]
    supabase_service_role_key: Optional[str]

    # Google Books
    google_books_api_key: Optional[str]

    # HTTP
    http_timeout: float  # seconds

    # External recommendations cache
    cache_ttl: int  # seconds

    # Weekly report
    resend_api_key: Optional[str]
    report_to_email: Optional[str]
    report_from_email: str

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get(
            "LEAFNOTE_DB_PATH",
            str(Path.home() / ".leafnote" / "leafnote.db"),
        )
        db_path = Path(db_path_str).expanduser()

        return cls(
            db_path=db_path,
            supabase_url=os.environ.get("SUPABASE_URL"),
            supabase_anon_key=os.environ.get("SUPABASE_ANON_KEY"),
            supabase_service_role_key=os.environ.get("SUPABASE_SERVICE_ROLE_KEY"),
            google_books_api_key=os.environ.get("GOOGLE_BOOKS_API_KEY"),
            http_timeout=float(os.environ.get("LEAFNOTE_HTTP_TIMEOUT", "10")),
            cache_ttl=int(os.environ.get("LEAFNOTE_CACHE_TTL", str(24 * 60 * 60))),
            resend_api_key=os.environ.get("RESEND_API_KEY"),
            report_to_email=os.environ.get("REPORT_TO_EMAIL"),
            report_from_email=os.environ.get(
                "REPORT_FROM_EMAIL", "Leafnote Analytics <onboarding@resend.dev>"
            ),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if str(self.db_path) != ":memory:" and not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        if self.supabase_url and not self.supabase_url.startswith("http"):
            errors.append(f"SUPABASE_URL does not look like a URL: {self.supabase_url}")

        if self.http_timeout <= 0:
            errors.append("LEAFNOTE_HTTP_TIMEOUT must be positive")

        return errors

    def has_supabase_config(self) -> bool:
        """Check if Supabase configuration is present."""
        return bool(self.supabase_url and self.supabase_anon_key)

    def has_report_config(self) -> bool:
        """Check if the weekly report can read events and send e-mail."""
        return bool(
            self.supabase_url
            and self.supabase_service_role_key
            and self.resend_api_key
            and self.report_to_email
        )


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
