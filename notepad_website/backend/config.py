"""
Runtime settings for the notepad service.

Values come from environment variables (optionally loaded from a ``.env``
file next to the working directory). Existing environment variables win
over ``.env`` entries.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

STORE_BACKENDS = ("sqlite", "memory")
ROOT_MODES = ("directory", "redirect")

@dataclass(frozen=True)
class Settings:
    """Process-wide configuration injected into the app at startup."""

    # Signing key for auth tokens. Override in every real deployment.
    secret: str = "notepad-development-secret-change-me-please"
    salt: str = "notepad-development-salt"
    store: str = "sqlite"
    db_path: str = "notes.db"
    # What GET / does: render the directory or redirect to a new note
    root_mode: str = "directory"
    log_level: str = "INFO"
    auth_days: int = 7
    random_id_length: int = 3

    def __post_init__(self):
        if self.store not in STORE_BACKENDS:
            raise ValueError(f"Unsupported store backend: {self.store}. Expected one of {STORE_BACKENDS}")
        if self.root_mode not in ROOT_MODES:
            raise ValueError(f"Unsupported root mode: {self.root_mode}. Expected one of {ROOT_MODES}")
        if self.auth_days <= 0:
            raise ValueError("auth_days must be a positive integer")

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv(override=False)
        defaults = cls()
        return cls(
            secret=os.getenv("NOTEPAD_SECRET", defaults.secret),
            salt=os.getenv("NOTEPAD_SALT", defaults.salt),
            store=os.getenv("NOTEPAD_STORE", defaults.store).lower(),
            db_path=os.getenv("NOTEPAD_DB_PATH", defaults.db_path),
            root_mode=os.getenv("NOTEPAD_ROOT_MODE", defaults.root_mode).lower(),
            log_level=os.getenv("NOTEPAD_LOG_LEVEL", defaults.log_level).upper(),
            auth_days=int(os.getenv("NOTEPAD_AUTH_DAYS", defaults.auth_days)),
        )
