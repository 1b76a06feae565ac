"""XP, levels, leaderboard ordering and quest lifecycle transitions.

Everything here works on ORM rows and on the plain dicts the API client
receives, so the server and ``HouseholdStore`` rank and filter identically.
"""

from collections.abc import Iterable, Mapping
from typing import Any, Optional

from .models import QuestStatus, QuestType

XP_PER_LEVEL = 1000

TERRAIN_ALIASES = {
    "land": QuestType.mountain.value,
    "mountain": QuestType.mountain.value,
    "sea": QuestType.ocean.value,
    "ocean": QuestType.ocean.value,
}

DIFFICULTY_BANDS = {
    "easy": range(0, 2),
    "medium": range(2, 4),
    "hard": range(4, 5),
    "extreme": range(5, 6),
}


def _get(item: Any, key: str, default: Any = None) -> Any:
    if isinstance(item, Mapping):
        return item.get(key, default)
    return getattr(item, key, default)


def _value(raw: Any) -> Any:
    return getattr(raw, "value", raw)


def level_for_xp(xp: int) -> int:
    return max(xp, 0) // XP_PER_LEVEL + 1


def level_progress(xp: int) -> float:
    """Percentage through the current level."""
    return (max(xp, 0) % XP_PER_LEVEL) / 10


def xp_to_next_level(xp: int) -> int:
    return XP_PER_LEVEL - max(xp, 0) % XP_PER_LEVEL


def leaderboard(members: Iterable[Any]) -> list:
    # sorted() is stable with reverse=True, equal XP keeps input order
    return sorted(members, key=lambda m: _get(m, "xp") or 0, reverse=True)


def ranked(members: Iterable[Any]) -> list[tuple[int, Any]]:
    return [(index + 1, member) for index, member in enumerate(leaderboard(members))]


def profile_rank(member: Any, members: Iterable[Any]) -> int:
    xp = _get(member, "xp") or 0
    return sum(1 for other in members if (_get(other, "xp") or 0) > xp) + 1


def filter_quests(
    quests: Iterable[Any],
    search: Optional[str] = None,
    terrain: Optional[str] = None,
    difficulty: Optional[str] = None,
    status: Optional[str] = None,
) -> list:
    """Filter quests the way the quest board does.

    ``terrain`` accepts ``land``/``sea`` or the stored ``mountain``/``ocean``;
    ``difficulty`` is one of the named bands. ``None`` or ``"all"``/``"any"``
    disables a filter. Unknown terrain or difficulty names match nothing.
    """
    needle = search.lower() if search else None
    wanted_type = None
    if terrain and terrain.lower() != "all":
        wanted_type = TERRAIN_ALIASES.get(terrain.lower(), terrain.lower())
    band = None
    if difficulty and difficulty.lower() != "any":
        band = DIFFICULTY_BANDS.get(difficulty.lower(), range(0))
    wanted_status = _value(status) if status and status != "all" else None

    result = []
    for quest in quests:
        if needle and needle not in (_get(quest, "title") or "").lower():
            continue
        if wanted_type and _value(_get(quest, "type")) != wanted_type:
            continue
        if band is not None and _get(quest, "difficulty") not in band:
            continue
        if wanted_status and _value(_get(quest, "status")) != wanted_status:
            continue
        result.append(quest)
    return result


def claim(quest, member_id: Optional[int] = None) -> bool:
    """Move an open quest to in-progress. Returns False when nothing changed."""
    if _value(quest.status) != QuestStatus.open.value:
        return False
    quest.status = QuestStatus.in_progress
    if member_id is not None:
        quest.assignee_id = member_id
    return True


def complete(quest) -> bool:
    if _value(quest.status) == QuestStatus.completed.value:
        return False
    quest.status = QuestStatus.completed
    return True


def award_xp(member, xp: int) -> None:
    member.xp = (member.xp or 0) + xp
    member.level = level_for_xp(member.xp)
