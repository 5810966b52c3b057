import hashlib
import secrets
import string
from datetime import datetime, UTC
from typing import Optional

RANDOM_ALPHABET = string.ascii_lowercase + string.digits
UNKNOWN_TIME = "Unknown"

def gen_random_str(length: int) -> str:
    """Generate a random lowercase alphanumeric identifier of the given length."""
    return "".join(secrets.choice(RANDOM_ALPHABET) for _ in range(length))

def time_now() -> int:
    """Return the current time as integer unix seconds (UTC)."""
    return int(datetime.now(UTC).timestamp())

def format_update_at(timestamp: Optional[int]) -> str:
    """Render a unix timestamp as 'YYYY-MM-DD HH:MM' local time, or 'Unknown'."""
    if not timestamp:
        return UNKNOWN_TIME
    return datetime.fromtimestamp(int(timestamp)).strftime("%Y-%m-%d %H:%M")

def salt_pw(password: str, salt: str) -> str:
    """Hash a plaintext password with the configured salt (SHA-256, hex)."""
    return hashlib.sha256(f"{salt}{password}".encode()).hexdigest()

def share_token(path: str) -> str:
    """Stable short digest of a note path, used as its public share id."""
    return hashlib.md5(path.encode()).hexdigest()
