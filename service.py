"""
Request orchestration.

Each function here is one user action or one screen load: it reads what the
screen needs, performs at most one mutation, fires the stage trigger tied to
that mutation and returns the refreshed view.
"""

from sqlalchemy.orm import Session
from typing import List, Optional
import logging

import crud
import schemas
import stages
from config import settings
from counsellor import INTENT_RECOMMEND, detect_intent, generate_reply, welcome_message
from errors import OnboardingRequiredError
from models import ChatRole, UserProfile
from stages import StageTrigger

logger = logging.getLogger(__name__)

def register_user(db: Session, email: str, full_name: Optional[str] = None) -> UserProfile:
    """Create the profile and its first stage event in one commit."""
    profile = crud.create_profile(db, email, full_name, commit=False)
    crud.create_stage_event(
        db,
        user_id=profile.id,
        from_stage=None,
        to_stage=profile.current_stage,
        trigger=stages.REGISTERED_TRIGGER,
    )
    db.refresh(profile)
    return profile

def submit_onboarding(db: Session, user_id: int, data: schemas.OnboardingData) -> UserProfile:
    """
    Save onboarding answers.
    Partial saves move a new user into onboarding, a final submit into exploring.
    """
    payload = data.model_dump(exclude={"final_submit"})
    profile = crud.save_onboarding(db, user_id, payload, final_submit=data.final_submit)

    if data.final_submit:
        stages.advance(db, profile, StageTrigger.ONBOARDING_COMPLETED)
    else:
        stages.advance(db, profile, StageTrigger.ONBOARDING_STARTED, strict=False)

    logger.info(f"[ONBOARDING] user={user_id} final={data.final_submit} stage={profile.current_stage}")
    return profile

def _require_onboarded(profile: UserProfile):
    if not profile.onboarding_completed:
        raise OnboardingRequiredError("Profile incomplete. Please complete onboarding.")

def stage_summary(profile: UserProfile) -> schemas.StageInfoResponse:
    info = stages.stage_info(profile.current_stage)
    return schemas.StageInfoResponse(
        stage=profile.current_stage,
        title=info["title"],
        description=info["description"],
        progress=stages.journey_progress(profile.current_stage),
    )

# Universities
def recommended_universities(db: Session, profile: UserProfile):
    """Universities matching the profile's countries, fields and budget ceiling."""
    return crud.get_universities(
        db,
        countries=profile.preferred_countries or None,
        programs=profile.preferred_fields or None,
        budget_max=profile.budget_max or None,
    )

def browse_universities(
    db: Session,
    user_id: int,
    search: str = "",
    country: Optional[str] = None,
) -> schemas.BrowseResponse:
    """The discovery screen: every university with the user's shortlist and lock flags."""
    crud.require_profile(db, user_id)
    universities = crud.get_universities(db)
    shortlisted = crud.get_shortlisted_universities(db, user_id)
    locked = crud.get_locked_universities(db, user_id)

    categories = {entry.university_id: entry.category for entry in shortlisted}
    locked_ids = {lock.university_id for lock in locked}

    term = (search or "").strip().lower()

    def matches(uni) -> bool:
        if term and not (
            term in uni.name.lower()
            or term in uni.country.lower()
            or term in (uni.city or "").lower()
        ):
            return False
        return not country or country == "all" or uni.country == country

    cards = [
        schemas.UniversityCard(
            university=schemas.UniversityResponse.model_validate(uni),
            shortlisted=uni.id in categories,
            locked=uni.id in locked_ids,
            category=categories.get(uni.id),
        )
        for uni in universities
        if matches(uni)
    ]

    return schemas.BrowseResponse(
        universities=cards,
        countries=sorted({uni.country for uni in universities}),
        shortlisted_count=len(shortlisted),
        locked_count=len(locked),
    )

# Shortlist and locks
def shortlist_university(db: Session, user_id: int, request: schemas.ShortlistRequest):
    profile = crud.require_profile(db, user_id)
    _require_onboarded(profile)

    entry = crud.add_to_shortlist(db, user_id, request.university_id, request.category.value, request.notes)
    stages.advance(db, profile, StageTrigger.SHORTLIST_ADDED, strict=False)
    return entry

def lock_choice(db: Session, user_id: int, university_id: int):
    profile = crud.require_profile(db, user_id)
    _require_onboarded(profile)

    lock = crud.lock_university(db, user_id, university_id)
    stages.advance(db, profile, StageTrigger.UNIVERSITY_LOCKED, strict=False)
    return lock

# Dashboard
def get_dashboard(db: Session, user_id: int) -> schemas.DashboardResponse:
    profile = crud.require_profile(db, user_id)
    full_name = profile.full_name or "Student"

    if not profile.onboarding_completed:
        return schemas.DashboardResponse(
            full_name=full_name,
            onboarding_required=True,
            stage=stage_summary(profile),
        )

    shortlisted = crud.get_shortlisted_universities(db, user_id)
    locked = crud.get_locked_universities(db, user_id)
    tasks = crud.get_tasks(db, user_id)

    return schemas.DashboardResponse(
        full_name=full_name,
        stage=stage_summary(profile),
        shortlisted_count=len(shortlisted),
        locked_count=len(locked),
        task_stats=schemas.TaskStats(
            total=len(tasks),
            completed=len([t for t in tasks if t.completed]),
        ),
    )

# Application
def open_application(db: Session, user_id: int) -> schemas.ApiResponse[schemas.ApplicationOverview]:
    """
    The application screen.

    Needs at least one locked university. Opening it moves a committed user
    to applying and seeds the default checklist when the user has no tasks.
    """
    profile = crud.require_profile(db, user_id)
    locked = crud.get_locked_universities(db, user_id)

    if not locked:
        return schemas.ApiResponse[schemas.ApplicationOverview](
            status="LOCKED",
            message="You need to lock at least one university before accessing application guidance.",
            data=schemas.ApplicationOverview(),
        )

    stages.advance(db, profile, StageTrigger.APPLICATION_OPENED, strict=False)

    tasks = crud.get_tasks(db, user_id)
    generated = False
    if not tasks:
        crud.generate_default_tasks(db, user_id, locked[0].university_id)
        tasks = crud.get_tasks(db, user_id)
        generated = True

    completed = [t for t in tasks if t.completed]
    pending = [t for t in tasks if not t.completed]
    # Rounded half up: 2 of 3 done is 67
    progress = int(len(completed) * 100 / len(tasks) + 0.5) if tasks else 0

    return schemas.ApiResponse[schemas.ApplicationOverview](
        status="OK",
        message="Default tasks created to get you started!" if generated else None,
        data=schemas.ApplicationOverview(
            locked_universities=[schemas.LockedUniversityResponse.model_validate(l) for l in locked],
            pending_tasks=[schemas.TaskResponse.model_validate(t) for t in pending],
            completed_tasks=[schemas.TaskResponse.model_validate(t) for t in completed],
            progress=progress,
            tasks_generated=generated,
        ),
    )

# Counsellor chat
def open_chat(db: Session, user_id: int, limit: Optional[int] = None):
    """Chat history, seeded with the welcome message on first visit."""
    profile = crud.require_profile(db, user_id)
    messages = crud.get_chat_messages(db, user_id, limit or settings.CHAT_HISTORY_LIMIT)
    if not messages:
        welcome = crud.create_chat_message(db, user_id, ChatRole.ASSISTANT.value, welcome_message(profile))
        messages = [welcome]
    return messages

def send_chat_message(db: Session, user_id: int, text: str) -> schemas.ChatExchangeResponse:
    profile = crud.require_profile(db, user_id)

    user_message = crud.create_chat_message(db, user_id, ChatRole.USER.value, text)

    intent = detect_intent(text)
    universities: List = []
    if intent == INTENT_RECOMMEND:
        universities = recommended_universities(db, profile)
    reply = generate_reply(text, profile, universities)

    assistant_message = crud.create_chat_message(
        db, user_id, ChatRole.ASSISTANT.value, reply, metadata={"intent": intent}
    )
    logger.info(f"[CHAT] user={user_id} intent={intent}")
    return schemas.ChatExchangeResponse(
        user_message=schemas.ChatMessageResponse.model_validate(user_message),
        assistant_message=schemas.ChatMessageResponse.model_validate(assistant_message),
    )
