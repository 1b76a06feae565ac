"""HTTP client for the Basecamp API and an in-memory household store.

``HouseholdStore`` keeps one cache keyed by the signed-in user's household.
Every mutation goes to the server first. The cache only changes when the
call succeeds.
"""

import os
from typing import Any, Optional

import httpx
import structlog

from . import gamification

logger = structlog.get_logger(__name__)

API_URL = os.getenv("BASECAMP_API_URL", "http://localhost:8000")
TIMEOUT = float(os.getenv("BASECAMP_TIMEOUT", "10"))


class BasecampAPIError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class BasecampClient:
    def __init__(
        self,
        base_url: str = API_URL,
        timeout: float = TIMEOUT,
        http: Optional[httpx.Client] = None,
    ):
        self._http = http or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> Any:
        response = self._http.request(method, path, **kwargs)
        if response.is_error:
            try:
                message = response.json().get("error", response.reason_phrase)
            except ValueError:
                message = response.reason_phrase
            logger.warning("api_error", method=method, path=path, status=response.status_code, error=message)
            raise BasecampAPIError(response.status_code, message)
        return response.json()

    # Auth

    def register(self, username: str, password: str) -> dict:
        body = {"username": username, "password": password}
        return self._request("POST", "/api/auth/register", json=body)["user"]

    def login(self, username: str, password: str) -> dict:
        body = {"username": username, "password": password}
        return self._request("POST", "/api/auth/login", json=body)["user"]

    def logout(self) -> None:
        self._request("POST", "/api/auth/logout")

    def me(self) -> dict:
        return self._request("GET", "/api/auth/me")["user"]

    # Households

    def create_household(self, name: str) -> dict:
        return self._request("POST", "/api/households", json={"name": name})

    def get_household(self, household_id: str) -> dict:
        return self._request("GET", f"/api/households/{household_id}")

    # Members

    def list_members(self, household_id: str) -> list[dict]:
        return self._request("GET", f"/api/households/{household_id}/members")

    def leaderboard(self, household_id: str) -> list[dict]:
        return self._request("GET", f"/api/households/{household_id}/leaderboard")

    def add_member(self, household_id: str, member: dict) -> dict:
        return self._request("POST", f"/api/households/{household_id}/members", json=member)

    def update_member(self, member_id: int, updates: dict) -> dict:
        return self._request("PATCH", f"/api/members/{member_id}", json=updates)

    def remove_member(self, member_id: int) -> None:
        self._request("DELETE", f"/api/members/{member_id}")

    # Quests

    def list_quests(self, household_id: str, **filters: Optional[str]) -> list[dict]:
        params = {key: value for key, value in filters.items() if value is not None}
        return self._request("GET", f"/api/households/{household_id}/quests", params=params)

    def create_quest(self, household_id: str, quest: dict) -> dict:
        return self._request("POST", f"/api/households/{household_id}/quests", json=quest)

    def update_quest(self, quest_id: int, updates: dict) -> dict:
        return self._request("PATCH", f"/api/quests/{quest_id}", json=updates)

    def claim_quest(self, quest_id: int) -> dict:
        return self._request("POST", f"/api/quests/{quest_id}/claim")

    def complete_quest(self, quest_id: int) -> dict:
        return self._request("POST", f"/api/quests/{quest_id}/complete")

    def delete_quest(self, quest_id: int) -> None:
        self._request("DELETE", f"/api/quests/{quest_id}")


def _splice(items: list[dict], updated: dict) -> list[dict]:
    return [updated if item["id"] == updated["id"] else item for item in items]


class HouseholdStore:
    def __init__(self, client: BasecampClient):
        self.client = client
        self.user: Optional[dict] = None
        self.household_id: Optional[str] = None
        self.quests: list[dict] = []
        self.members: list[dict] = []

    def invalidate(self) -> None:
        self.household_id = None
        self.quests = []
        self.members = []

    def refresh(self) -> None:
        """Reload the signed-in user and, from them, the household cache."""
        try:
            self.user = self.client.me()
        except BasecampAPIError:
            self.user = None
            self.invalidate()
            raise
        household_id = self.user.get("householdId")
        if household_id != self.household_id:
            self.invalidate()
        self.household_id = household_id
        if household_id:
            self.quests = self.client.list_quests(household_id)
            self.members = self.client.list_members(household_id)

    def _require_household(self) -> str:
        if not self.household_id:
            raise RuntimeError("No household loaded; call refresh() first")
        return self.household_id

    # Quests

    def add_quest(self, quest: dict) -> dict:
        created = self.client.create_quest(self._require_household(), quest)
        self.quests = [*self.quests, created]
        return created

    def update_quest(self, quest_id: int, updates: dict) -> dict:
        updated = self.client.update_quest(quest_id, updates)
        self.quests = _splice(self.quests, updated)
        if updates.get("status") == "completed":
            self.members = self.client.list_members(self._require_household())
        return updated

    def claim_quest(self, quest_id: int) -> dict:
        updated = self.client.claim_quest(quest_id)
        self.quests = _splice(self.quests, updated)
        return updated

    def complete_quest(self, quest_id: int) -> dict:
        updated = self.client.complete_quest(quest_id)
        self.quests = _splice(self.quests, updated)
        # completion pays XP to the assignee server-side
        self.members = self.client.list_members(self._require_household())
        return updated

    def delete_quest(self, quest_id: int) -> None:
        self.client.delete_quest(quest_id)
        self.quests = [quest for quest in self.quests if quest["id"] != quest_id]

    # Members

    def add_member(self, member: dict) -> dict:
        created = self.client.add_member(self._require_household(), member)
        self.members = [*self.members, created]
        return created

    def update_member(self, member_id: int, updates: dict) -> dict:
        updated = self.client.update_member(member_id, updates)
        self.members = _splice(self.members, updated)
        return updated

    def update_member_role(self, member_id: int, role: str) -> dict:
        return self.update_member(member_id, {"role": role})

    def remove_member(self, member_id: int) -> None:
        self.client.remove_member(member_id)
        self.members = [member for member in self.members if member["id"] != member_id]
        self.quests = [
            {**quest, "assigneeId": None} if quest.get("assigneeId") == member_id else quest
            for quest in self.quests
        ]

    # Derived views

    def leaderboard(self) -> list[dict]:
        return gamification.leaderboard(self.members)

    def profile_rank(self, member_id: int) -> Optional[int]:
        """Rank of one cached member, or ``None`` if they are not loaded."""
        member = next((m for m in self.members if m["id"] == member_id), None)
        if member is None:
            return None
        return gamification.profile_rank(member, self.members)

    def quests_by_status(self, status: str) -> list[dict]:
        return gamification.filter_quests(self.quests, status=status)

    def filter_quests(self, **filters: Optional[str]) -> list[dict]:
        return gamification.filter_quests(self.quests, **filters)
