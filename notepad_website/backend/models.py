from typing import List, Optional
from pydantic import BaseModel, Field

class PasswordPayload(BaseModel):
    passwd: Optional[str] = None

class SettingPayload(BaseModel):
    mode: Optional[str] = None
    share: Optional[bool] = None

class NoteEntry(BaseModel):
    name: str
    title: str
    update_at: str = Field(alias="updateAt")
    has_password: bool = Field(alias="hasPassword")
    is_shared: bool = Field(alias="isShared")

class NotesListData(BaseModel):
    notes: List[NoteEntry]
    count: int
