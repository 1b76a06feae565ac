import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemberRole(str, Enum):
    member = "member"
    manager = "manager"


class QuestType(str, Enum):
    mountain = "mountain"  # land
    ocean = "ocean"  # sea


class QuestStatus(str, Enum):
    open = "open"
    in_progress = "in-progress"
    completed = "completed"


class NotificationType(str, Enum):
    falling_behind = "falling_behind"
    overdue = "overdue"


DEFAULT_AVATAR = (
    "https://images.unsplash.com/photo-1535713875002-d1d0cf377fde"
    "?auto=format&fit=crop&w=100&h=100"
)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=_new_id, primary_key=True)
    username: str = Field(unique=True, index=True)
    password: str
    household_id: Optional[str] = Field(default=None, foreign_key="households.id")


class Household(SQLModel, table=True):
    __tablename__ = "households"

    id: str = Field(default_factory=_new_id, primary_key=True)
    name: str
    created_at: datetime = Field(default_factory=utcnow)


class Member(SQLModel, table=True):
    __tablename__ = "members"

    id: Optional[int] = Field(default=None, primary_key=True)
    household_id: str = Field(foreign_key="households.id", index=True)
    user_id: str = Field(foreign_key="users.id")
    name: str
    avatar: str = Field(default=DEFAULT_AVATAR)
    title: str = Field(default="Adventurer")
    role: MemberRole = Field(default=MemberRole.member)
    xp: int = Field(default=0)
    level: int = Field(default=1)
    streak: int = Field(default=0)


class Quest(SQLModel, table=True):
    __tablename__ = "quests"

    id: Optional[int] = Field(default=None, primary_key=True)
    household_id: str = Field(foreign_key="households.id", index=True)
    title: str
    description: Optional[str] = None
    xp: int = Field(default=100)
    difficulty: int = Field(default=2)  # 1-5
    type: QuestType = Field(default=QuestType.mountain)
    status: QuestStatus = Field(default=QuestStatus.open)
    assignee_id: Optional[int] = Field(default=None, foreign_key="members.id")
    steps: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    due_date: Optional[datetime] = None


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"

    id: Optional[int] = Field(default=None, primary_key=True)
    household_id: str = Field(foreign_key="households.id")
    quest_id: int = Field(foreign_key="quests.id")
    member_id: Optional[int] = Field(default=None, foreign_key="members.id")
    type: NotificationType = Field(default=NotificationType.falling_behind)
    message: str
    read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)


__all__ = [
    "DEFAULT_AVATAR",
    "User",
    "Household",
    "Member",
    "Quest",
    "Notification",
    "MemberRole",
    "QuestType",
    "QuestStatus",
    "NotificationType",
]
