import os
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from starlette.middleware.sessions import SessionMiddleware

from . import gamification
from .auth import hash_password, login_user, logout_user, require_user, verify_password
from .db import init_db
from .errors import error_response, setup_error_handlers
from .log import setup_logging
from .models import Household, Member, Quest, User
from .schemas import (
    Credentials,
    HouseholdCreate,
    HouseholdRead,
    LeaderboardEntry,
    MemberCreate,
    MemberRead,
    MemberUpdate,
    QuestCreate,
    QuestRead,
    QuestUpdate,
)
from .storage import QuestTransitionError, Storage, get_storage

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_db()
    yield


setup_logging()
app = FastAPI(title="Basecamp household quests", lifespan=lifespan)
setup_error_handlers(app)
app.add_middleware(
    SessionMiddleware,
    secret_key=os.getenv("SESSION_SECRET", "dev-secret"),
    session_cookie=os.getenv("SESSION_COOKIE", "basecampsession"),
)

public = APIRouter(prefix="/api/auth")
# Every route on this router goes through the session check before dispatch.
api = APIRouter(prefix="/api", dependencies=[Depends(require_user)])


def public_user(user: User, include_household: bool = False) -> dict:
    data = {"id": user.id, "username": user.username}
    if include_household:
        data["householdId"] = user.household_id
    return data


def ensure_household_access(storage: Storage, household_id: str, user: User) -> None:
    if user.household_id == household_id:
        return
    if storage.get_member_by_user_id(household_id, user.id):
        return
    raise HTTPException(status_code=404, detail="Household not found")


def get_household(storage: Storage, household_id: str, user: User) -> Household:
    household = storage.get_household(household_id)
    if not household:
        raise HTTPException(status_code=404, detail="Household not found")
    ensure_household_access(storage, household_id, user)
    return household


def get_member(storage: Storage, member_id: int, user: User) -> Member:
    member = storage.get_member(member_id)
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")
    try:
        ensure_household_access(storage, member.household_id, user)
    except HTTPException:
        raise HTTPException(status_code=404, detail="Member not found") from None
    return member


def get_quest(storage: Storage, quest_id: int, user: User) -> Quest:
    quest = storage.get_quest(quest_id)
    if not quest:
        raise HTTPException(status_code=404, detail="Quest not found")
    try:
        ensure_household_access(storage, quest.household_id, user)
    except HTTPException:
        raise HTTPException(status_code=404, detail="Quest not found") from None
    return quest


def check_assignee(storage: Storage, household_id: str, assignee_id: Optional[int]) -> None:
    if assignee_id is None:
        return
    member = storage.get_member(assignee_id)
    if not member or member.household_id != household_id:
        raise HTTPException(status_code=400, detail="Invalid request")


# Auth


@public.post("/register")
async def register(
    request: Request,
    credentials: Credentials,
    storage: Storage = Depends(get_storage),
):
    if storage.get_user_by_username(credentials.username):
        return error_response(400, "Username already exists")
    user = storage.create_user(
        User(username=credentials.username, password=hash_password(credentials.password))
    )
    login_user(request, user)
    logger.info("user_registered", user_id=user.id)
    return {"user": public_user(user)}


@public.post("/login")
async def login(
    request: Request,
    credentials: Credentials,
    storage: Storage = Depends(get_storage),
):
    user = storage.get_user_by_username(credentials.username)
    if not user or not verify_password(credentials.password, user.password):
        logger.info("login_failed")
        return error_response(401, "Invalid credentials")
    login_user(request, user)
    logger.info("user_logged_in", user_id=user.id)
    return {"user": public_user(user)}


@api.post("/auth/logout")
def logout(request: Request):
    logout_user(request)
    return {"success": True}


@api.get("/auth/me")
def me(user: User = Depends(require_user)):
    return {"user": public_user(user, include_household=True)}


# Households


@api.post("/households", response_model=HouseholdRead)
async def create_household(
    payload: HouseholdCreate,
    storage: Storage = Depends(get_storage),
    user: User = Depends(require_user),
):
    household = storage.create_household(Household(name=payload.name), user.id)
    logger.info("household_created", household_id=household.id, creator_id=user.id)
    return household


@api.get("/households/{household_id}", response_model=HouseholdRead)
def read_household(
    household_id: str,
    storage: Storage = Depends(get_storage),
    user: User = Depends(require_user),
):
    return get_household(storage, household_id, user)


# Members


@api.get("/households/{household_id}/members", response_model=list[MemberRead])
def list_members(
    household_id: str,
    storage: Storage = Depends(get_storage),
    user: User = Depends(require_user),
):
    get_household(storage, household_id, user)
    return storage.get_members_by_household(household_id)


@api.post("/households/{household_id}/members", response_model=MemberRead)
async def add_member(
    household_id: str,
    payload: MemberCreate,
    storage: Storage = Depends(get_storage),
    user: User = Depends(require_user),
):
    get_household(storage, household_id, user)
    joining = storage.get_user(payload.user_id)
    if not joining:
        raise HTTPException(status_code=404, detail="User not found")
    member = storage.add_member(Member(household_id=household_id, **payload.model_dump()))
    if not joining.household_id:
        storage.update_user_household(joining.id, household_id)
    return member


@api.get("/households/{household_id}/leaderboard", response_model=list[LeaderboardEntry])
def household_leaderboard(
    household_id: str,
    storage: Storage = Depends(get_storage),
    user: User = Depends(require_user),
):
    get_household(storage, household_id, user)
    members = storage.get_members_by_household(household_id)
    return [
        LeaderboardEntry(
            **MemberRead.model_validate(member).model_dump(),
            rank=rank,
            level_progress=gamification.level_progress(member.xp),
            xp_to_next_level=gamification.xp_to_next_level(member.xp),
        )
        for rank, member in gamification.ranked(members)
    ]


@api.patch("/members/{member_id}", response_model=MemberRead)
async def update_member(
    member_id: int,
    payload: MemberUpdate,
    storage: Storage = Depends(get_storage),
    user: User = Depends(require_user),
):
    get_member(storage, member_id, user)
    return storage.update_member(member_id, payload.changes())


@api.delete("/members/{member_id}")
async def remove_member(
    member_id: int,
    storage: Storage = Depends(get_storage),
    user: User = Depends(require_user),
):
    get_member(storage, member_id, user)
    storage.remove_member(member_id)
    return {"success": True}


# Quests


@api.get("/households/{household_id}/quests", response_model=list[QuestRead])
def list_quests(
    household_id: str,
    status: Optional[str] = None,
    type: Optional[str] = None,
    difficulty: Optional[str] = None,
    search: Optional[str] = None,
    storage: Storage = Depends(get_storage),
    user: User = Depends(require_user),
):
    get_household(storage, household_id, user)
    quests = storage.get_quests_by_household(household_id)
    return gamification.filter_quests(
        quests, search=search, terrain=type, difficulty=difficulty, status=status
    )


@api.post("/households/{household_id}/quests", response_model=QuestRead)
async def create_quest(
    household_id: str,
    payload: QuestCreate,
    storage: Storage = Depends(get_storage),
    user: User = Depends(require_user),
):
    get_household(storage, household_id, user)
    check_assignee(storage, household_id, payload.assignee_id)
    quest = storage.create_quest(Quest(household_id=household_id, **payload.model_dump()))
    logger.info("quest_created", quest_id=quest.id, household_id=household_id)
    return quest


@api.patch("/quests/{quest_id}", response_model=QuestRead)
async def update_quest(
    quest_id: int,
    payload: QuestUpdate,
    storage: Storage = Depends(get_storage),
    user: User = Depends(require_user),
):
    quest = get_quest(storage, quest_id, user)
    updates = payload.changes()
    check_assignee(storage, quest.household_id, updates.get("assignee_id"))
    try:
        return storage.update_quest(quest_id, updates)
    except QuestTransitionError:
        raise HTTPException(status_code=400, detail="Invalid request") from None


@api.post("/quests/{quest_id}/claim", response_model=QuestRead)
async def claim_quest(
    quest_id: int,
    storage: Storage = Depends(get_storage),
    user: User = Depends(require_user),
):
    quest = get_quest(storage, quest_id, user)
    member = storage.get_member_by_user_id(quest.household_id, user.id)
    return storage.claim_quest(quest, member.id if member else None)


@api.post("/quests/{quest_id}/complete", response_model=QuestRead)
async def complete_quest(
    quest_id: int,
    storage: Storage = Depends(get_storage),
    user: User = Depends(require_user),
):
    quest = get_quest(storage, quest_id, user)
    return storage.complete_quest(quest)


@api.delete("/quests/{quest_id}")
async def delete_quest(
    quest_id: int,
    storage: Storage = Depends(get_storage),
    user: User = Depends(require_user),
):
    get_quest(storage, quest_id, user)
    storage.delete_quest(quest_id)
    return {"success": True}


app.include_router(public)
app.include_router(api)


@app.get("/health")
def health():
    return {"status": "ok"}
