from typing import Any, Dict, Optional

from .utils import UNKNOWN_TIME

class NoteMetadata:
    """Metadata stored alongside a note's content."""

    FIELDS = {"pw": "pw", "share": "share", "mode": "mode", "update_at": "updateAt"}

    def __init__(self, pw: Optional[str] = None, share: Optional[bool] = None,
                 mode: Optional[str] = None, update_at: Optional[int] = None):
        self.pw = pw
        self.share = share
        self.mode = mode
        self.update_at = update_at

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "NoteMetadata":
        data = data or {}
        return cls(**{attr: data.get(key) for attr, key in cls.FIELDS.items()})

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the stored representation, dropping unset fields."""
        return {
            key: getattr(self, attr)
            for attr, key in self.FIELDS.items()
            if getattr(self, attr) is not None
        }

    def merge(self, **patch: Any) -> "NoteMetadata":
        """Return a copy with ``patch`` applied.

        Fields not named in the patch are kept; fields passed as ``None``
        are unset.
        """
        unknown = set(patch) - set(self.FIELDS)
        if unknown:
            raise ValueError(f"Unknown metadata fields: {sorted(unknown)}")
        values = {attr: getattr(self, attr) for attr in self.FIELDS}
        values.update(patch)
        return NoteMetadata(**values)

    @property
    def has_password(self) -> bool:
        return bool(self.pw)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NoteMetadata):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"NoteMetadata({self.to_dict()!r})"

class Note:
    """A single text document keyed by its URL path segment."""

    def __init__(self, path: str, content: str = "", metadata: Optional[NoteMetadata] = None):
        self.path = path
        self.content = content
        self.metadata = metadata or NoteMetadata()

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "content": self.content, "ext": self.metadata.to_dict()}

class NoteListItem:
    """One row of the notes directory."""

    def __init__(self, name: str, title: str, update_at: str = UNKNOWN_TIME,
                 has_password: bool = False, is_shared: bool = False,
                 timestamp: Optional[int] = None):
        self.name = name
        self.title = title
        self.update_at = update_at
        self.has_password = has_password
        self.is_shared = is_shared
        # Raw unix time used for ordering; None when update_at is "Unknown".
        self.timestamp = timestamp

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "title": self.title,
            "updateAt": self.update_at,
            "hasPassword": self.has_password,
            "isShared": self.is_shared,
        }

class AuthError(Exception):
    """Raised when a password or auth token check fails."""
    pass

class StoreError(Exception):
    """Raised when the key-value store cannot complete an operation."""
    pass

class ApiError(Exception):
    """An error that is returned to the client as a JSON envelope."""

    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message
