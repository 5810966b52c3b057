import asyncio
import hmac
import logging
from typing import List, Optional
from urllib.parse import unquote

import jwt

from .domain import AuthError, Note, NoteListItem, NoteMetadata
from .store import KVNamespace
from .utils import UNKNOWN_TIME, format_update_at, salt_pw, share_token, time_now

logger = logging.getLogger(__name__)

class AuthService:
    """Issues and verifies path-scoped auth tokens and checks note passwords."""

    ALGORITHM = "HS256"

    def __init__(self, secret: str, salt: str):
        self._secret = secret
        self._salt = salt

    def hash_password(self, password: str) -> str:
        return salt_pw(password, self._salt)

    def check_password(self, password: Optional[str], stored_hash: Optional[str]) -> bool:
        if not password or not stored_hash:
            return False
        return hmac.compare_digest(self.hash_password(password), stored_hash)

    def issue(self, path: str) -> str:
        """Sign ``{path}``. Expiry is left to the cookie carrying the token."""
        return jwt.encode({"path": path}, self._secret, algorithm=self.ALGORITHM)

    def verify(self, token: Optional[str], path: str) -> bool:
        """True only for a correctly signed token whose path claim is ``path``."""
        if not token:
            return False
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self.ALGORITHM])
        except jwt.PyJWTError:
            return False
        return isinstance(payload, dict) and payload.get("path") == path

class NoteRepository:
    """Reads and writes notes in the NOTES namespace."""

    def __init__(self, kv: KVNamespace):
        self.kv = kv

    async def query(self, path: str) -> Note:
        value, metadata = await self.kv.get_with_metadata(path)
        return Note(path, value or "", NoteMetadata.from_dict(metadata))

    async def write(self, path: str, content: str, base: Optional[NoteMetadata] = None, **patch) -> Note:
        """Create or update a note, merging ``patch`` into its metadata.

        ``base`` is the metadata the caller already read; when omitted the
        stored metadata is fetched first.
        """
        if base is None:
            base = (await self.query(path)).metadata
        metadata = base.merge(**patch)
        await self.kv.put(path, content, metadata.to_dict())
        return Note(path, content, metadata)

    async def delete(self, path: str) -> None:
        await self.kv.delete(path)

    async def _list_item(self, key: str) -> NoteListItem:
        note = await self.query(key)
        meta = note.metadata
        return NoteListItem(
            name=key,
            title=unquote(key),
            update_at=format_update_at(meta.update_at),
            has_password=meta.has_password,
            is_shared=bool(meta.share),
            timestamp=int(meta.update_at) if meta.update_at else None,
        )

    async def list_notes(self) -> List[NoteListItem]:
        """List every note, newest first. Never raises; always returns a list."""
        try:
            keys = await self.kv.list()
        except Exception:
            logger.exception("[list] enumerating notes failed")
            return []

        results = await asyncio.gather(*(self._list_item(key) for key in keys), return_exceptions=True)
        items = []
        for key, result in zip(keys, results):
            if isinstance(result, BaseException):
                logger.error(f"[list] processing note {key!r} failed: {result!r}")
                result = NoteListItem(name=key, title=unquote(key))
            items.append(result)
        return sort_notes(items)

def sort_notes(items: List[NoteListItem]) -> List[NoteListItem]:
    """Most recent first; entries without a known update time go last."""
    return sorted(
        items,
        key=lambda item: (
            item.timestamp is None or item.update_at == UNKNOWN_TIME,
            -(item.timestamp or 0),
        ),
    )

class ShareRegistry:
    """Maps share tokens to note paths in the SHARE namespace."""

    def __init__(self, kv: KVNamespace):
        self.kv = kv

    async def share(self, path: str) -> str:
        token = share_token(path)
        await self.kv.put(token, path)
        return token

    async def unshare(self, path: str) -> None:
        await self.kv.delete(share_token(path))

    async def resolve(self, token: str) -> Optional[str]:
        return await self.kv.get(token)

class NotesApp:
    """Main app logic: applies the note authorization rule around the repository."""

    def __init__(self, repo: NoteRepository, shares: ShareRegistry, auth: AuthService):
        self.repo = repo
        self.shares = shares
        self.auth = auth

    def is_authorized(self, note: Note, token: Optional[str]) -> bool:
        return not note.metadata.has_password or self.auth.verify(token, note.path)

    async def load_authorized(self, path: str, token: Optional[str]) -> Note:
        note = await self.repo.query(path)
        if not self.is_authorized(note, token):
            raise AuthError("Password auth failed!")
        return note

    async def open_note(self, path: str, token: Optional[str]):
        """Return ``(note, authorized)`` for the editor page."""
        note = await self.repo.query(path)
        return note, self.is_authorized(note, token)

    async def authenticate(self, path: str, password: Optional[str]) -> str:
        """Check ``password`` against the note's hash and issue a fresh token."""
        note = await self.repo.query(path)
        if not self.auth.check_password(password, note.metadata.pw):
            logger.info(f"[auth] rejected password for {path!r}")
            raise AuthError("Password auth failed!")
        logger.info(f"[auth] issued token for {path!r}")
        return self.auth.issue(path)

    async def set_password(self, path: str, password: Optional[str], token: Optional[str]) -> Note:
        """Set the note password, or remove it when ``password`` is empty."""
        note = await self.load_authorized(path, token)
        pw = self.auth.hash_password(password) if password else None
        logger.info(f"[auth] password {'set' if pw else 'cleared'} for {path!r}")
        return await self.repo.write(path, note.content, note.metadata, pw=pw)

    async def update_setting(self, path: str, token: Optional[str],
                             mode: Optional[str] = None, share: Optional[bool] = None) -> Optional[str]:
        """Patch display mode and sharing; return the share token when sharing is on."""
        note = await self.load_authorized(path, token)
        patch = {}
        if mode is not None:
            patch["mode"] = mode
        if share is not None:
            patch["share"] = share
        await self.repo.write(path, note.content, note.metadata, **patch)

        if share:
            shared = await self.shares.share(path)
            logger.info(f"[share] {path!r} shared as {shared}")
            return shared
        if share is False:
            await self.shares.unshare(path)
            logger.info(f"[share] {path!r} unshared")
        return None

    async def save_content(self, path: str, text: Optional[str], token: Optional[str]) -> Optional[Note]:
        """Store ``text`` as the note content; empty text deletes the note."""
        note = await self.load_authorized(path, token)
        if text is not None and text.strip():
            return await self.repo.write(path, text, note.metadata, update_at=time_now())
        await self.repo.delete(path)
        if note.metadata.share:
            await self.shares.unshare(path)
        logger.info(f"[note] deleted {path!r}")
        return None

    async def open_shared(self, token: str) -> Optional[Note]:
        path = await self.shares.resolve(token)
        if not path:
            return None
        return await self.repo.query(path)

    async def list_notes(self) -> List[NoteListItem]:
        return await self.repo.list_notes()
