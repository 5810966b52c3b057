"""Shared fixtures: an app wired to in-memory stores and a test client."""

import os

# Importing the app module builds a default app; keep it off the filesystem.
os.environ["NOTEPAD_STORE"] = "memory"

import pytest
from fastapi.testclient import TestClient

from notepad_website.backend.config import Settings
from notepad_website.backend.main import create_app
from notepad_website.backend.services import AuthService, NoteRepository, NotesApp, ShareRegistry
from notepad_website.backend.store import NOTES, SHARE, MemoryKV

SECRET = "test-secret-0123456789-abcdefghijklmnop"
SALT = "test-salt"


@pytest.fixture()
def settings() -> Settings:
    return Settings(secret=SECRET, salt=SALT, store="memory")


@pytest.fixture()
def notes_kv() -> MemoryKV:
    return MemoryKV(NOTES)


@pytest.fixture()
def share_kv() -> MemoryKV:
    return MemoryKV(SHARE)


@pytest.fixture()
def auth_service() -> AuthService:
    return AuthService(SECRET, SALT)


@pytest.fixture()
def notes_app(notes_kv, share_kv, auth_service) -> NotesApp:
    return NotesApp(NoteRepository(notes_kv), ShareRegistry(share_kv), auth_service)


@pytest.fixture()
def client(settings, notes_kv, share_kv) -> TestClient:
    app = create_app(settings, notes_kv, share_kv)
    with TestClient(app) as test_client:
        yield test_client


class BrokenKV(MemoryKV):
    """A namespace whose operations fail, optionally only for some keys."""

    def __init__(self, name: str, fail_list: bool = False, bad_keys=(), fail_writes: bool = False):
        super().__init__(name)
        self.fail_list = fail_list
        self.bad_keys = set(bad_keys)
        self.fail_writes = fail_writes

    async def list(self, prefix: str = ""):
        if self.fail_list:
            raise RuntimeError("store unavailable")
        return await super().list(prefix)

    async def get_with_metadata(self, key: str):
        if key in self.bad_keys:
            raise RuntimeError(f"cannot read {key}")
        return await super().get_with_metadata(key)

    async def put(self, key, value, metadata=None):
        if self.fail_writes:
            raise RuntimeError("write rejected")
        return await super().put(key, value, metadata)

    async def delete(self, key):
        if self.fail_writes:
            raise RuntimeError("write rejected")
        return await super().delete(key)


@pytest.fixture()
def broken_kv():
    return BrokenKV
