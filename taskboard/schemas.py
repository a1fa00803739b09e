from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class Message(BaseModel):
    message: str


class Health(BaseModel):
    status: str = "ok"


class Version(BaseModel):
    version: str


# === Auth ===


class RegisterIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UserOut(BaseModel):
    id: str
    name: str
    email: str


class AuthOut(BaseModel):
    token: str
    user: UserOut


# === Boards ===


class BoardCreate(BaseModel):
    title: Optional[str] = None
    background: Optional[str] = Field(default=None, max_length=200)


class BoardUpdate(BaseModel):
    title: Optional[str] = None
    background: Optional[str] = Field(default=None, max_length=200)


class BoardOut(BaseModel):
    id: str
    title: str
    slug: Optional[str]
    background: str
    userId: Optional[str]
    role: str
    createdAt: datetime
    updatedAt: datetime


# === Members ===


class MemberIn(BaseModel):
    email: Optional[str] = None
    role: Optional[str] = None


class MemberPatch(BaseModel):
    role: Optional[str] = None


class MemberOut(BaseModel):
    id: str
    boardId: str
    userId: str
    role: str
    user: UserOut
    createdAt: datetime
    updatedAt: datetime


class MembersOut(BaseModel):
    owner: Optional[UserOut]
    members: List[MemberOut]


# === Lists ===


class ListIn(BaseModel):
    title: Optional[str] = None


class ListOut(BaseModel):
    id: str
    boardId: str
    title: str
    position: int
    createdAt: datetime
    updatedAt: datetime


class ListReorder(BaseModel):
    boardId: Optional[str] = None
    listIds: List[str] = Field(default_factory=list)


# === Cards ===


class ChecklistItem(BaseModel):
    id: Optional[str] = None
    text: str
    completed: bool = False


class Comment(BaseModel):
    id: Optional[str] = None
    text: str
    createdAt: Optional[datetime] = None


class CardCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None


class CardUpdate(BaseModel):
    """Partial update; fields left out of the request body are not touched."""

    title: Optional[str] = None
    description: Optional[str] = None
    labels: Optional[List[str]] = None
    dueDate: Optional[datetime] = None
    checklist: Optional[List[ChecklistItem]] = None
    comments: Optional[List[Comment]] = None


class CardOut(BaseModel):
    id: str
    boardId: str
    listId: str
    title: str
    description: str
    position: int
    labels: List[str]
    dueDate: Optional[datetime]
    checklist: List[ChecklistItem]
    comments: List[Comment]
    createdAt: datetime
    updatedAt: datetime


class CardReorder(BaseModel):
    boardId: Optional[str] = None
    sourceListId: str
    destListId: str
    sourceCardIds: List[str] = Field(default_factory=list)
    destCardIds: List[str] = Field(default_factory=list)
