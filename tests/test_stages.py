import pytest

import crud
import schemas
import service
import stages
from conftest import add_university, onboarded_user
from errors import ConflictError, StageTransitionError
from models import StageEvent
from stages import StageTrigger


def test_registration_records_initial_stage(db) -> None:
    profile = service.register_user(db, "new@example.com", "New Student")

    assert profile.current_stage == "not_started"
    events = crud.get_stage_events(db, profile.id)
    assert [(e.from_stage, e.to_stage, e.trigger) for e in events] == [(None, "not_started", "registered")]


def test_full_journey_is_audited_in_order(db) -> None:
    uni = add_university(db)
    profile = onboarded_user(db)
    assert profile.current_stage == "exploring"

    service.shortlist_university(db, profile.id, schemas.ShortlistRequest(university_id=uni.id, category="dream"))
    service.lock_choice(db, profile.id, uni.id)
    service.open_application(db, profile.id)

    db.refresh(profile)
    assert profile.current_stage == "applying"
    history = [(e.from_stage, e.to_stage, e.trigger) for e in crud.get_stage_events(db, profile.id)]
    assert history == [
        (None, "not_started", "registered"),
        ("not_started", "exploring", "onboarding_completed"),
        ("exploring", "shortlisting", "shortlist_added"),
        ("shortlisting", "committed", "university_locked"),
        ("committed", "applying", "application_opened"),
    ]


def test_trigger_is_idempotent(db) -> None:
    profile = onboarded_user(db)
    before = len(crud.get_stage_events(db, profile.id))

    assert stages.advance(db, profile, StageTrigger.ONBOARDING_COMPLETED) is False
    assert stages.advance(db, profile, StageTrigger.ONBOARDING_STARTED) is False
    assert profile.current_stage == "exploring"
    assert len(crud.get_stage_events(db, profile.id)) == before


def test_disallowed_source_stage_raises_in_strict_mode(db) -> None:
    profile = service.register_user(db, "early@example.com")

    with pytest.raises(StageTransitionError):
        stages.advance(db, profile, StageTrigger.APPLICATION_OPENED)

    assert stages.advance(db, profile, StageTrigger.APPLICATION_OPENED, strict=False) is False
    assert profile.current_stage == "not_started"


def test_guard_blocks_lock_trigger_without_locked_university(db) -> None:
    profile = onboarded_user(db)

    with pytest.raises(StageTransitionError, match="No locked university"):
        stages.advance(db, profile, StageTrigger.UNIVERSITY_LOCKED)
    assert profile.current_stage == "exploring"


def test_guard_blocks_onboarding_completed_before_submit(db) -> None:
    profile = service.register_user(db, "partial@example.com")

    with pytest.raises(StageTransitionError, match="Onboarding has not been submitted"):
        stages.advance(db, profile, StageTrigger.ONBOARDING_COMPLETED)


def test_unlocking_does_not_regress_stage(db) -> None:
    uni = add_university(db)
    profile = onboarded_user(db)
    service.shortlist_university(db, profile.id, schemas.ShortlistRequest(university_id=uni.id, category="target"))
    service.lock_choice(db, profile.id, uni.id)

    crud.unlock_university(db, profile.id, uni.id)

    db.refresh(profile)
    assert profile.current_stage == "committed"


def test_journey_progress() -> None:
    assert stages.journey_progress("not_started") == 0
    assert stages.journey_progress("onboarding") == 0
    assert stages.journey_progress("exploring") == 25
    assert stages.journey_progress("shortlisting") == 50
    assert stages.journey_progress("committed") == 75
    assert stages.journey_progress("applying") == 100


def test_stage_info() -> None:
    assert stages.stage_info("shortlisting") == {
        "title": "Building Shortlist",
        "description": "Select your target universities",
    }


def _broken_stage_event(**kwargs) -> StageEvent:
    return StageEvent(**{**kwargs, "to_stage": None})


def test_failed_audit_write_keeps_previous_stage(db, monkeypatch) -> None:
    profile = service.register_user(db, "audit@example.com")
    before = len(crud.get_stage_events(db, profile.id))

    monkeypatch.setattr(crud, "StageEvent", _broken_stage_event)
    with pytest.raises(ConflictError):
        stages.advance(db, profile, StageTrigger.ONBOARDING_STARTED)
    monkeypatch.undo()

    assert profile.current_stage == "not_started"
    assert crud.get_profile(db, profile.id).current_stage == "not_started"
    assert len(crud.get_stage_events(db, profile.id)) == before


def test_failed_audit_write_rolls_back_registration(db, monkeypatch) -> None:
    monkeypatch.setattr(crud, "StageEvent", _broken_stage_event)
    with pytest.raises(ConflictError):
        service.register_user(db, "ghost@example.com")
    monkeypatch.undo()

    assert crud.get_profile_by_email(db, "ghost@example.com") is None
