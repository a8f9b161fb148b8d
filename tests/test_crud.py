import datetime

import pytest

import crud
import service
from conftest import add_university, onboarded_user
from errors import ConflictError, NotFoundError


def test_first_profile_is_admin(db) -> None:
    first = crud.create_profile(db, "first@example.com")
    second = crud.create_profile(db, "second@example.com")

    assert first.role == "admin"
    assert second.role == "user"
    assert second.current_stage == "not_started"
    assert second.onboarding_completed is False


def test_duplicate_email_is_a_conflict(db) -> None:
    crud.create_profile(db, "dup@example.com")
    with pytest.raises(ConflictError):
        crud.create_profile(db, "dup@example.com")


def test_update_profile_ignores_protected_fields(db) -> None:
    profile = crud.create_profile(db, "p@example.com")
    updated = crud.update_profile(db, profile.id, {"full_name": "Renamed", "role": "admin", "current_stage": "applying"})

    assert updated.full_name == "Renamed"
    assert updated.role == "admin"  # first profile
    assert updated.current_stage == "not_started"


def test_get_universities_filters_and_orders(db) -> None:
    add_university(db, name="Unranked", ranking=None)
    add_university(db, name="Toronto", country="Canada", ranking=20, tuition_fee_min=25000, programs=["Engineering"])
    add_university(db, name="MIT", ranking=1, tuition_fee_min=55000)
    add_university(db, name="Boston U", ranking=50, tuition_fee_min=40000, programs=["Business"])

    assert [u.name for u in crud.get_universities(db)] == ["MIT", "Toronto", "Boston U", "Unranked"]
    assert [u.name for u in crud.get_universities(db, countries=["Canada"])] == ["Toronto"]
    assert [u.name for u in crud.get_universities(db, budget_max=45000)] == ["Toronto", "Boston U", "Unranked"]
    assert [u.name for u in crud.get_universities(db, programs=["Business", "Engineering"])] == ["Toronto", "Boston U"]


def test_search_universities_matches_name_country_city(db) -> None:
    add_university(db, name="Harvard", city="Cambridge", ranking=2)
    add_university(db, name="Oxford", country="UK", city="Oxford", ranking=3)

    assert [u.name for u in crud.search_universities(db, "cambridge")] == ["Harvard"]
    assert [u.name for u in crud.search_universities(db, "uk")] == ["Oxford"]
    assert len(crud.search_universities(db, "o", limit=1)) == 1


def test_list_countries_sorted_and_distinct(db) -> None:
    add_university(db, name="A", country="UK")
    add_university(db, name="B", country="Canada")
    add_university(db, name="C", country="UK")

    assert crud.list_countries(db) == ["Canada", "UK"]


def test_shortlist_rules(db) -> None:
    uni = add_university(db)
    profile = onboarded_user(db)

    entry = crud.add_to_shortlist(db, profile.id, uni.id, "dream", "first pick")
    assert entry.university.name == "Test University"

    with pytest.raises(ConflictError):
        crud.add_to_shortlist(db, profile.id, uni.id, "safe")

    updated = crud.update_shortlist_category(db, profile.id, uni.id, "safe")
    assert updated.category == "safe"

    with pytest.raises(NotFoundError):
        crud.add_to_shortlist(db, profile.id, 9999, "target")


def test_lock_requires_shortlist_and_blocks_removal(db) -> None:
    uni = add_university(db)
    profile = onboarded_user(db)

    with pytest.raises(ConflictError, match="not in shortlist"):
        crud.lock_university(db, profile.id, uni.id)

    crud.add_to_shortlist(db, profile.id, uni.id, "target")
    crud.lock_university(db, profile.id, uni.id)

    with pytest.raises(ConflictError):
        crud.lock_university(db, profile.id, uni.id)
    with pytest.raises(ConflictError, match="Unlock"):
        crud.remove_from_shortlist(db, profile.id, uni.id)

    crud.unlock_university(db, profile.id, uni.id)
    crud.remove_from_shortlist(db, profile.id, uni.id)
    assert crud.get_shortlisted_universities(db, profile.id) == []


def test_tasks_are_scoped_to_user_and_ordered(db) -> None:
    owner = onboarded_user(db, email="owner@example.com")
    other = onboarded_user(db, email="other@example.com")

    undated = crud.create_task(db, owner.id, "Undated")
    later = crud.create_task(db, owner.id, "Later", due_date=datetime.date(2027, 3, 1), priority="high")
    sooner = crud.create_task(db, owner.id, "Sooner", due_date=datetime.date(2027, 1, 1))

    assert [t.title for t in crud.get_tasks(db, owner.id)] == ["Sooner", "Later", "Undated"]
    assert later.priority == "high"
    assert undated.priority == "medium"

    with pytest.raises(NotFoundError):
        crud.delete_task(db, other.id, sooner.id)

    toggled = crud.toggle_task_completion(db, owner.id, sooner.id, True)
    assert toggled.completed is True

    crud.delete_task(db, owner.id, undated.id)
    assert [t.title for t in crud.get_tasks(db, owner.id)] == ["Sooner", "Later"]


def test_create_task_with_unknown_university(db) -> None:
    profile = onboarded_user(db)
    with pytest.raises(NotFoundError):
        crud.create_task(db, profile.id, "Bad", university_id=404)


def test_chat_history_returns_latest_in_order(db) -> None:
    profile = onboarded_user(db)
    for i in range(5):
        crud.create_chat_message(db, profile.id, "user", f"message {i}")

    history = crud.get_chat_messages(db, profile.id, limit=3)

    assert [m.content for m in history] == ["message 2", "message 3", "message 4"]


def test_default_tasks(db) -> None:
    uni = add_university(db)
    profile = onboarded_user(db)

    tasks = crud.generate_default_tasks(db, profile.id, uni.id)

    assert [t.title for t in tasks][:2] == ["Request Academic Transcripts", "Prepare Statement of Purpose"]
    assert {t.university_id for t in tasks} == {uni.id}
    assert [t.priority for t in tasks].count("high") == 3
