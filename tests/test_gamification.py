from types import SimpleNamespace

from basecamp import gamification
from basecamp.models import Member, Quest, QuestStatus


def test_level_curve():
    assert gamification.level_for_xp(0) == 1
    assert gamification.level_for_xp(999) == 1
    assert gamification.level_for_xp(1000) == 2
    assert gamification.level_for_xp(2450) == 3
    assert gamification.level_progress(2450) == 45.0
    assert gamification.level_progress(2000) == 0.0
    assert gamification.xp_to_next_level(2450) == 550
    assert gamification.xp_to_next_level(0) == 1000


def test_leaderboard_is_stable_for_equal_xp():
    members = [
        {"id": 1, "xp": 100},
        {"id": 2, "xp": 300},
        {"id": 3, "xp": 100},
        {"id": 4, "xp": 300},
        {"id": 5, "xp": 100},
    ]
    assert [m["id"] for m in gamification.leaderboard(members)] == [2, 4, 1, 3, 5]
    assert [rank for rank, _ in gamification.ranked(members)] == [1, 2, 3, 4, 5]


def test_leaderboard_accepts_rows():
    rows = [SimpleNamespace(name="Sam", xp=2100), SimpleNamespace(name="Alex", xp=2450)]
    assert [row.name for row in gamification.leaderboard(rows)] == ["Alex", "Sam"]


def test_profile_rank_counts_strictly_higher():
    members = [{"xp": 2450}, {"xp": 2100}, {"xp": 2100}, {"xp": 1850}]
    assert gamification.profile_rank({"xp": 2100}, members) == 2
    assert gamification.profile_rank({"xp": 2450}, members) == 1
    assert gamification.profile_rank({"xp": 0}, members) == 5


def test_filter_quests_difficulty_bands():
    quests = [{"title": f"q{d}", "difficulty": d, "type": "mountain", "status": "open"} for d in range(1, 6)]
    pick = lambda band: [q["difficulty"] for q in gamification.filter_quests(quests, difficulty=band)]
    assert pick("easy") == [1]
    assert pick("Medium") == [2, 3]
    assert pick("hard") == [4]
    assert pick("extreme") == [5]
    assert pick("any") == [1, 2, 3, 4, 5]
    assert pick("impossible") == []


def test_filter_quests_terrain_and_status():
    quests = [
        {"title": "Dishes", "difficulty": 3, "type": "mountain", "status": "open"},
        {"title": "Laundry", "difficulty": 5, "type": "ocean", "status": "completed"},
    ]
    assert gamification.filter_quests(quests, terrain="Sea") == [quests[1]]
    assert gamification.filter_quests(quests, terrain="mountain") == [quests[0]]
    assert gamification.filter_quests(quests, terrain="all") == quests
    assert gamification.filter_quests(quests, status="completed") == [quests[1]]
    assert gamification.filter_quests(quests, status=QuestStatus.open) == [quests[0]]


def test_claim_only_from_open():
    quest = Quest(household_id="h", title="Dishes")
    assert gamification.claim(quest, member_id=7)
    assert quest.status == QuestStatus.in_progress
    assert quest.assignee_id == 7

    assert not gamification.claim(quest, member_id=8)
    assert quest.assignee_id == 7

    quest.status = QuestStatus.completed
    assert not gamification.claim(quest)
    assert quest.status == QuestStatus.completed


def test_complete_reports_transition_once():
    quest = Quest(household_id="h", title="Dishes", status=QuestStatus.in_progress)
    assert gamification.complete(quest)
    assert not gamification.complete(quest)
    assert quest.status == QuestStatus.completed


def test_award_xp_recomputes_level():
    member = Member(household_id="h", user_id="u", name="Alex", xp=900, level=1)
    gamification.award_xp(member, 150)
    assert member.xp == 1050
    assert member.level == 2
