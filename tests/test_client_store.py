import pytest

from basecamp.client import BasecampAPIError, BasecampClient, HouseholdStore


@pytest.fixture
def api(client):
    return BasecampClient(http=client)


@pytest.fixture
def store(api):
    api.register("alex", "pw1234")
    api.create_household("Basecamp")
    store = HouseholdStore(api)
    store.refresh()
    return store


def test_refresh_loads_household_cache(store):
    assert store.user["username"] == "alex"
    assert store.household_id is not None
    assert store.quests == []
    assert [m["role"] for m in store.members] == ["manager"]


def test_refresh_without_household_leaves_cache_empty(api):
    api.register("sam", "pw")
    store = HouseholdStore(api)
    store.refresh()
    assert store.household_id is None
    assert store.members == []
    with pytest.raises(RuntimeError):
        store.add_quest({"title": "Sweep"})


def test_quest_mutations_splice_server_results(store):
    quest = store.add_quest({"title": "Dishes", "xp": 150, "difficulty": 3, "type": "mountain"})
    assert store.quests == [quest]

    claimed = store.claim_quest(quest["id"])
    assert claimed["status"] == "in-progress"
    assert store.quests == [claimed]
    assert store.quests_by_status("open") == []

    completed = store.complete_quest(quest["id"])
    assert store.quests_by_status("completed") == [completed]
    assert store.members[0]["xp"] == 150

    store.update_quest(quest["id"], {"title": "Dish Mountain"})
    assert store.quests[0]["title"] == "Dish Mountain"

    store.delete_quest(quest["id"])
    assert store.quests == []


def test_failed_mutation_leaves_cache_unchanged(store):
    quest = store.add_quest({"title": "Dishes"})
    before = list(store.quests)

    with pytest.raises(BasecampAPIError) as excinfo:
        store.update_quest(quest["id"], {"difficulty": 9})
    assert excinfo.value.status_code == 400
    assert excinfo.value.message == "Invalid request"
    assert store.quests == before

    with pytest.raises(BasecampAPIError) as excinfo:
        store.delete_quest(9999)
    assert excinfo.value.status_code == 404
    assert store.quests == before


def test_member_mutations(store, other_client):
    sam = BasecampClient(http=other_client).register("sam", "pw")
    member = store.add_member({"userId": sam["id"], "name": "Sam", "xp": 2100})
    assert member in store.members

    promoted = store.update_member_role(member["id"], "manager")
    assert promoted["role"] == "manager"
    assert [m["name"] for m in store.leaderboard()] == ["Sam", "alex"]
    assert store.profile_rank(member["id"]) == 1
    assert store.profile_rank(store.members[0]["id"]) == 2
    assert store.profile_rank(9999) is None

    quest = store.add_quest({"title": "Laundry", "assigneeId": member["id"]})
    store.remove_member(member["id"])
    assert [m["name"] for m in store.members] == ["alex"]
    assert store.quests[0]["id"] == quest["id"]
    assert store.quests[0]["assigneeId"] is None


def test_identity_change_invalidates_cache(store, api):
    store.add_quest({"title": "Dishes"})
    old_household = store.household_id

    api.logout()
    with pytest.raises(BasecampAPIError):
        store.refresh()
    assert store.user is None
    assert store.household_id is None
    assert store.quests == []

    api.register("jordan", "pw")
    api.create_household("Harbor")
    store.refresh()
    assert store.household_id != old_household
    assert store.quests == []
    assert [m["name"] for m in store.members] == ["jordan"]


def test_filter_quests_view(store):
    store.add_quest({"title": "Laundry Expedition", "type": "ocean", "difficulty": 5})
    store.add_quest({"title": "Dishes", "type": "mountain", "difficulty": 3})
    assert [q["title"] for q in store.filter_quests(terrain="sea")] == ["Laundry Expedition"]
    assert [q["title"] for q in store.filter_quests(search="dish", difficulty="medium")] == ["Dishes"]


def test_client_default_transport_has_timeout():
    api = BasecampClient(base_url="http://basecamp.test", timeout=2.5)
    try:
        assert api._http.timeout.read == 2.5
    finally:
        api.close()


def test_completing_through_update_reloads_members(store):
    quest = store.add_quest({"title": "Dishes", "xp": 400})
    store.claim_quest(quest["id"])
    updated = store.update_quest(quest["id"], {"status": "completed"})
    assert updated["status"] == "completed"
    assert store.members[0]["xp"] == 400

    with pytest.raises(BasecampAPIError) as excinfo:
        store.update_quest(quest["id"], {"status": "open"})
    assert excinfo.value.status_code == 400
    assert store.quests == [updated]
