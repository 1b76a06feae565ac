"""Request bodies and response shapes for the JSON API.

Wire names are camelCase (``householdId``, ``assigneeId``...). Request
bodies accept either spelling.
"""

from datetime import datetime, timezone
from typing import ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import DEFAULT_AVATAR, MemberRole, QuestStatus, QuestType


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Credentials(CamelModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class HouseholdCreate(CamelModel):
    name: str = Field(min_length=1)


class PartialUpdate(CamelModel):
    nullable_fields: ClassVar[frozenset[str]] = frozenset()

    def changes(self) -> dict:
        """Fields the caller actually sent, minus nulls on required columns."""
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None or key in self.nullable_fields
        }


class MemberCreate(CamelModel):
    user_id: str
    name: str = Field(min_length=1)
    avatar: str = DEFAULT_AVATAR
    title: str = "Adventurer"
    role: MemberRole = MemberRole.member
    xp: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    streak: int = Field(default=0, ge=0)


class MemberUpdate(PartialUpdate):
    name: Optional[str] = Field(default=None, min_length=1)
    avatar: Optional[str] = None
    title: Optional[str] = None
    role: Optional[MemberRole] = None
    xp: Optional[int] = Field(default=None, ge=0)
    level: Optional[int] = Field(default=None, ge=1)
    streak: Optional[int] = Field(default=None, ge=0)


class QuestCreate(CamelModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    xp: int = Field(default=100, ge=0)
    difficulty: int = Field(default=2, ge=1, le=5)
    type: QuestType = QuestType.mountain
    status: QuestStatus = QuestStatus.open
    assignee_id: Optional[int] = None
    steps: list[str] = Field(default_factory=list)
    due_date: Optional[datetime] = None

    @field_validator("due_date")
    @classmethod
    def due_date_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class QuestUpdate(PartialUpdate):
    nullable_fields: ClassVar[frozenset[str]] = frozenset({"description", "assignee_id", "due_date"})

    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    xp: Optional[int] = Field(default=None, ge=0)
    difficulty: Optional[int] = Field(default=None, ge=1, le=5)
    type: Optional[QuestType] = None
    status: Optional[QuestStatus] = None
    assignee_id: Optional[int] = None
    steps: Optional[list[str]] = None
    due_date: Optional[datetime] = None

    @field_validator("due_date")
    @classmethod
    def due_date_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class HouseholdRead(CamelModel):
    id: str
    name: str
    created_at: Optional[datetime] = None

    @field_validator("created_at")
    @classmethod
    def created_at_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class MemberRead(CamelModel):
    id: int
    household_id: str
    user_id: str
    name: str
    avatar: str
    title: str
    role: MemberRole
    xp: int
    level: int
    streak: int


class LeaderboardEntry(MemberRead):
    rank: int
    level_progress: float
    xp_to_next_level: int


class QuestRead(CamelModel):
    id: int
    household_id: str
    title: str
    description: Optional[str] = None
    xp: int
    difficulty: int
    type: QuestType
    status: QuestStatus
    assignee_id: Optional[int] = None
    steps: list[str] = Field(default_factory=list)
    due_date: Optional[datetime] = None

    @field_validator("due_date")
    @classmethod
    def due_date_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)
