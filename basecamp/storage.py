from contextlib import contextmanager
from typing import Optional

import structlog
from fastapi import Depends
from sqlmodel import Session, select

from . import gamification
from .db import get_session
from .models import Household, Member, MemberRole, Quest, QuestStatus, User

logger = structlog.get_logger(__name__)


class QuestTransitionError(ValueError):
    pass


class Storage:
    """Row-level persistence for users, households, members and quests.

    Lookups return ``None`` rather than raising when a row is missing.
    Multi-row writes run inside a single transaction.
    """

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def _transaction(self):
        try:
            yield self.session
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def _save(self, row):
        with self._transaction():
            self.session.add(row)
        self.session.refresh(row)
        return row

    def _apply(self, row, updates: dict):
        for key, value in updates.items():
            setattr(row, key, value)
        return self._save(row)

    # Users

    def get_user(self, user_id: str) -> Optional[User]:
        return self.session.get(User, user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.username == username)).first()

    def create_user(self, user: User, household_id: Optional[str] = None) -> User:
        if household_id is not None:
            user.household_id = household_id
        return self._save(user)

    def update_user_household(self, user_id: str, household_id: str) -> None:
        user = self.get_user(user_id)
        if user:
            self._apply(user, {"household_id": household_id})

    # Households

    def create_household(
        self,
        household: Household,
        creator_id: str,
        creator_member: Optional[Member] = None,
    ) -> Household:
        creator = self.get_user(creator_id)
        if creator is None:
            raise ValueError(f"Unknown household creator {creator_id}")
        with self._transaction():
            self.session.add(household)
            self.session.flush()
            creator.household_id = household.id
            self.session.add(creator)
            member = creator_member or Member(
                user_id=creator.id,
                name=creator.username,
                title="Household Owner",
            )
            member.household_id = household.id
            member.role = MemberRole.manager
            self.session.add(member)
        self.session.refresh(household)
        return household

    def get_household(self, household_id: str) -> Optional[Household]:
        return self.session.get(Household, household_id)

    def get_household_by_user_id(self, user_id: str) -> Optional[Household]:
        user = self.get_user(user_id)
        if not user or not user.household_id:
            return None
        return self.get_household(user.household_id)

    # Members

    def add_member(self, member: Member) -> Member:
        return self._save(member)

    def get_members_by_household(self, household_id: str) -> list[Member]:
        return list(
            self.session.exec(
                select(Member).where(Member.household_id == household_id).order_by(Member.id)
            ).all()
        )

    def get_member(self, member_id: int) -> Optional[Member]:
        return self.session.get(Member, member_id)

    def get_member_by_user_id(self, household_id: str, user_id: str) -> Optional[Member]:
        return self.session.exec(
            select(Member)
            .where(Member.household_id == household_id, Member.user_id == user_id)
            .order_by(Member.id)
        ).first()

    def update_member(self, member_id: int, updates: dict) -> Optional[Member]:
        member = self.get_member(member_id)
        if member is None:
            return None
        if "xp" in updates and "level" not in updates:
            updates = {**updates, "level": gamification.level_for_xp(updates["xp"])}
        return self._apply(member, updates)

    def remove_member(self, member_id: int) -> bool:
        member = self.get_member(member_id)
        if member is None:
            return False
        with self._transaction():
            assigned = self.session.exec(select(Quest).where(Quest.assignee_id == member_id)).all()
            for quest in assigned:
                quest.assignee_id = None
                self.session.add(quest)
            self.session.delete(member)
        logger.info("member_removed", member_id=member_id, cleared_quests=len(assigned))
        return True

    # Quests

    def create_quest(self, quest: Quest) -> Quest:
        if quest.status == QuestStatus.completed:
            quest.status = QuestStatus.open
            return self.complete_quest(quest)
        return self._save(quest)

    def get_quests_by_household(self, household_id: str) -> list[Quest]:
        return list(
            self.session.exec(
                select(Quest).where(Quest.household_id == household_id).order_by(Quest.id)
            ).all()
        )

    def get_quest(self, quest_id: int) -> Optional[Quest]:
        return self.session.get(Quest, quest_id)

    def update_quest(self, quest_id: int, updates: dict) -> Optional[Quest]:
        """Apply a partial edit.

        Setting ``status`` to completed goes through ``complete_quest`` so the
        assignee is paid. A completed quest cannot be moved back.
        """
        quest = self.get_quest(quest_id)
        if quest is None:
            return None
        status = updates.get("status")
        if quest.status == QuestStatus.completed and status not in (None, QuestStatus.completed):
            raise QuestTransitionError(f"Quest {quest_id} is already completed")
        if status == QuestStatus.completed:
            changes = {key: value for key, value in updates.items() if key != "status"}
            return self.complete_quest(quest, changes)
        return self._apply(quest, updates)

    def delete_quest(self, quest_id: int) -> bool:
        quest = self.get_quest(quest_id)
        if quest is None:
            return False
        with self._transaction():
            self.session.delete(quest)
        return True

    def claim_quest(self, quest: Quest, member_id: Optional[int] = None) -> Quest:
        if gamification.claim(quest, member_id):
            self._save(quest)
            logger.info("quest_claimed", quest_id=quest.id, member_id=member_id)
        return quest

    def complete_quest(self, quest: Quest, changes: Optional[dict] = None) -> Quest:
        """Mark a quest completed and pay its XP to the assignee.

        ``changes`` are applied in the same transaction. Completing an
        already-completed quest pays nothing.
        """
        with self._transaction():
            for key, value in (changes or {}).items():
                setattr(quest, key, value)
            self.session.add(quest)
            completed = gamification.complete(quest)
            assignee = self.get_member(quest.assignee_id) if completed and quest.assignee_id else None
            if assignee is not None:
                gamification.award_xp(assignee, quest.xp)
                self.session.add(assignee)
        self.session.refresh(quest)
        if completed:
            logger.info(
                "quest_completed",
                quest_id=quest.id,
                assignee_id=quest.assignee_id,
                xp=quest.xp if assignee is not None else 0,
            )
        return quest


def get_storage(session: Session = Depends(get_session)) -> Storage:
    return Storage(session)
