"""
CRUD operations for database models.

One function per table operation. Per-user tables are always filtered by
``user_id`` so a user can only reach their own rows.
"""

from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import and_, or_, func
from models import (
    UserProfile, University, ShortlistedUniversity, LockedUniversity, Task,
    ChatMessage, StageEvent, StageEnum, UserRole, TaskPriority, ChatRole, CategoryEnum,
)
from errors import NotFoundError, ConflictError
from typing import List, Optional, Dict, Any
from datetime import date
import logging

logger = logging.getLogger(__name__)

# Fields a user may not change through a profile update
PROTECTED_PROFILE_FIELDS = {"id", "email", "role", "current_stage", "onboarding_completed", "created_at", "updated_at"}

DEFAULT_APPLICATION_TASKS = [
    {
        "title": "Request Academic Transcripts",
        "description": "Contact your institution to request official transcripts",
        "priority": TaskPriority.HIGH.value,
    },
    {
        "title": "Prepare Statement of Purpose",
        "description": "Write a compelling SOP explaining your goals and motivation",
        "priority": TaskPriority.HIGH.value,
    },
    {
        "title": "Request Letters of Recommendation",
        "description": "Ask professors or employers for recommendation letters",
        "priority": TaskPriority.HIGH.value,
    },
    {
        "title": "Prepare Financial Documents",
        "description": "Gather bank statements and financial proof documents",
        "priority": TaskPriority.MEDIUM.value,
    },
    {
        "title": "Complete Application Forms",
        "description": "Fill out online application forms for each university",
        "priority": TaskPriority.MEDIUM.value,
    },
]

def _commit(db: Session, action: str, flush_only: bool = False):
    """
    Commit, rolling back and re-raising on failure.
    With flush_only the writes are sent but left for a later commit.
    """
    try:
        if flush_only:
            db.flush()
        else:
            db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.error(f"[ERROR] {action} failed: {e.orig}")
        raise ConflictError(f"{action} violates a uniqueness or reference constraint")
    except Exception as e:
        db.rollback()
        logger.error(f"[ERROR] {action} failed: {str(e)}")
        raise

# Profile operations
def create_profile(db: Session, email: str, full_name: Optional[str] = None, commit: bool = True) -> UserProfile:
    """
    Register a new profile at stage not_started.
    The very first profile becomes an admin.
    With commit=False the row is only flushed, so it gets an id but stays
    in the open transaction.
    """
    if get_profile_by_email(db, email):
        raise ConflictError(f"A profile for {email} already exists")

    is_first = db.query(func.count(UserProfile.id)).scalar() == 0
    profile = UserProfile(
        email=email,
        full_name=full_name,
        role=UserRole.ADMIN.value if is_first else UserRole.USER.value,
        current_stage=StageEnum.NOT_STARTED.value,
        onboarding_completed=False,
    )
    db.add(profile)
    _commit(db, "create_profile", flush_only=not commit)
    if commit:
        db.refresh(profile)
    logger.info(f"[PROFILE] Created profile {profile.id} ({profile.role})")
    return profile

def get_profile(db: Session, user_id: int) -> Optional[UserProfile]:
    """Get user profile by ID."""
    return db.query(UserProfile).filter(UserProfile.id == user_id).first()

def get_profile_by_email(db: Session, email: str) -> Optional[UserProfile]:
    """Get user profile by email."""
    return db.query(UserProfile).filter(UserProfile.email == email).first()

def require_profile(db: Session, user_id: int) -> UserProfile:
    profile = get_profile(db, user_id)
    if not profile:
        raise NotFoundError("User not found")
    return profile

def update_profile(db: Session, user_id: int, updates: Dict[str, Any]) -> UserProfile:
    """Apply a partial update. Protected fields are ignored."""
    profile = require_profile(db, user_id)
    for key, value in updates.items():
        if key in PROTECTED_PROFILE_FIELDS:
            logger.warning(f"[PROFILE] Ignoring protected field '{key}' for user {user_id}")
            continue
        if hasattr(profile, key):
            setattr(profile, key, value)
    _commit(db, "update_profile")
    db.refresh(profile)
    return profile

def save_onboarding(db: Session, user_id: int, data: Dict[str, Any], final_submit: bool = False) -> UserProfile:
    """Write onboarding answers. A final submit marks onboarding complete."""
    profile = require_profile(db, user_id)
    for key, value in data.items():
        if key in PROTECTED_PROFILE_FIELDS or not hasattr(profile, key):
            continue
        setattr(profile, key, value)
    if final_submit:
        profile.onboarding_completed = True
    _commit(db, "save_onboarding")
    db.refresh(profile)
    return profile

def update_user_stage(db: Session, user_id: int, stage: str, commit: bool = True):
    """Write the user's current stage. Only the stage machine calls this."""
    updated = db.query(UserProfile).filter(UserProfile.id == user_id).update(
        {"current_stage": StageEnum(stage).value}
    )
    if not updated:
        db.rollback()
        raise NotFoundError("User not found")
    if commit:
        _commit(db, "update_user_stage")

# Stage audit
def create_stage_event(
    db: Session,
    user_id: int,
    from_stage: Optional[str],
    to_stage: str,
    trigger: str,
    commit: bool = True,
) -> StageEvent:
    event = StageEvent(user_id=user_id, from_stage=from_stage, to_stage=to_stage, trigger=trigger)
    db.add(event)
    _commit(db, "create_stage_event", flush_only=not commit)
    if commit:
        db.refresh(event)
    return event

def get_stage_events(db: Session, user_id: int) -> List[StageEvent]:
    return db.query(StageEvent).filter(StageEvent.user_id == user_id).order_by(StageEvent.id.asc()).all()

# University operations
def get_universities(
    db: Session,
    countries: Optional[List[str]] = None,
    programs: Optional[List[str]] = None,
    budget_max: Optional[int] = None,
) -> List[University]:
    """
    List universities ordered by ranking (unranked last).
    Country and budget filters run in SQL, the program overlap in memory.
    """
    query = db.query(University)

    if countries:
        query = query.filter(University.country.in_(countries))

    if budget_max:
        query = query.filter(University.tuition_fee_min <= budget_max)

    universities = query.order_by(University.ranking.asc().nulls_last(), University.id.asc()).all()

    if programs:
        wanted = set(programs)
        universities = [u for u in universities if wanted.intersection(u.programs or [])]

    logger.info(f"[UNIVERSITIES] filters countries={countries} programs={programs} budget_max={budget_max} -> {len(universities)}")
    return universities

def get_university(db: Session, university_id: int) -> Optional[University]:
    return db.query(University).filter(University.id == university_id).first()

def require_university(db: Session, university_id: int) -> University:
    university = get_university(db, university_id)
    if not university:
        raise NotFoundError("University not found")
    return university

def search_universities(db: Session, term: str, limit: int = 20) -> List[University]:
    """Case-insensitive substring match over name, country and city."""
    pattern = f"%{term.strip()}%"
    return db.query(University).filter(
        or_(
            University.name.ilike(pattern),
            University.country.ilike(pattern),
            University.city.ilike(pattern),
        )
    ).order_by(University.ranking.asc().nulls_last(), University.id.asc()).limit(limit).all()

def list_countries(db: Session) -> List[str]:
    rows = db.query(University.country).distinct().all()
    return sorted(row.country for row in rows)

def create_university(db: Session, data: Dict[str, Any]) -> University:
    university = University(**data)
    db.add(university)
    _commit(db, "create_university")
    db.refresh(university)
    return university

def update_university(db: Session, university_id: int, updates: Dict[str, Any]) -> University:
    university = require_university(db, university_id)
    for key, value in updates.items():
        if key != "id" and hasattr(university, key):
            setattr(university, key, value)
    _commit(db, "update_university")
    db.refresh(university)
    return university

def delete_university(db: Session, university_id: int):
    university = require_university(db, university_id)
    db.delete(university)
    _commit(db, "delete_university")

# Shortlist operations
def get_shortlisted_universities(db: Session, user_id: int) -> List[ShortlistedUniversity]:
    """Shortlist entries for a user, newest first."""
    return db.query(ShortlistedUniversity).filter(
        ShortlistedUniversity.user_id == user_id
    ).order_by(ShortlistedUniversity.created_at.desc(), ShortlistedUniversity.id.desc()).all()

def get_shortlist_entry(db: Session, user_id: int, university_id: int) -> Optional[ShortlistedUniversity]:
    return db.query(ShortlistedUniversity).filter(
        and_(
            ShortlistedUniversity.user_id == user_id,
            ShortlistedUniversity.university_id == university_id
        )
    ).first()

def add_to_shortlist(db: Session, user_id: int, university_id: int, category: str, notes: Optional[str] = None) -> ShortlistedUniversity:
    """Add a university to the user's shortlist."""
    require_university(db, university_id)
    if get_shortlist_entry(db, user_id, university_id):
        raise ConflictError("University is already in your shortlist")

    entry = ShortlistedUniversity(
        user_id=user_id,
        university_id=university_id,
        category=CategoryEnum(category).value,
        notes=notes or None,
    )
    db.add(entry)
    _commit(db, "add_to_shortlist")
    db.refresh(entry)
    return entry

def remove_from_shortlist(db: Session, user_id: int, university_id: int):
    """Remove a university from the shortlist. Locked universities must be unlocked first."""
    entry = get_shortlist_entry(db, user_id, university_id)
    if not entry:
        raise NotFoundError("University not in shortlist")
    if get_lock(db, user_id, university_id):
        raise ConflictError("Unlock this university before removing it from your shortlist")
    db.delete(entry)
    _commit(db, "remove_from_shortlist")

def update_shortlist_category(db: Session, user_id: int, university_id: int, category: str) -> ShortlistedUniversity:
    entry = get_shortlist_entry(db, user_id, university_id)
    if not entry:
        raise NotFoundError("University not in shortlist")
    entry.category = CategoryEnum(category).value
    _commit(db, "update_shortlist_category")
    db.refresh(entry)
    return entry

# Lock operations
def get_locked_universities(db: Session, user_id: int) -> List[LockedUniversity]:
    """Locked universities for a user, most recent lock first."""
    return db.query(LockedUniversity).filter(
        LockedUniversity.user_id == user_id
    ).order_by(LockedUniversity.locked_at.desc(), LockedUniversity.id.desc()).all()

def get_lock(db: Session, user_id: int, university_id: int) -> Optional[LockedUniversity]:
    return db.query(LockedUniversity).filter(
        and_(
            LockedUniversity.user_id == user_id,
            LockedUniversity.university_id == university_id
        )
    ).first()

def lock_university(db: Session, user_id: int, university_id: int) -> LockedUniversity:
    """Lock a shortlisted university."""
    if not get_shortlist_entry(db, user_id, university_id):
        raise ConflictError("University not in shortlist")
    if get_lock(db, user_id, university_id):
        raise ConflictError("University is already locked")

    lock = LockedUniversity(user_id=user_id, university_id=university_id)
    db.add(lock)
    _commit(db, "lock_university")
    db.refresh(lock)
    return lock

def unlock_university(db: Session, user_id: int, university_id: int):
    lock = get_lock(db, user_id, university_id)
    if not lock:
        raise NotFoundError("University is not locked")
    db.delete(lock)
    _commit(db, "unlock_university")

# Task operations
def get_tasks(db: Session, user_id: int) -> List[Task]:
    """Tasks ordered by due date (undated last), then newest first."""
    return db.query(Task).filter(Task.user_id == user_id).order_by(
        Task.due_date.asc().nulls_last(),
        Task.created_at.desc(),
        Task.id.desc(),
    ).all()

def get_task(db: Session, user_id: int, task_id: int) -> Optional[Task]:
    return db.query(Task).filter(and_(Task.user_id == user_id, Task.id == task_id)).first()

def require_task(db: Session, user_id: int, task_id: int) -> Task:
    task = get_task(db, user_id, task_id)
    if not task:
        raise NotFoundError("Task not found")
    return task

def create_task(
    db: Session,
    user_id: int,
    title: str,
    description: Optional[str] = None,
    university_id: Optional[int] = None,
    due_date: Optional[date] = None,
    priority: Optional[str] = None,
) -> Task:
    """Create a new task."""
    if university_id is not None:
        require_university(db, university_id)

    task = Task(
        user_id=user_id,
        title=title,
        description=description or None,
        university_id=university_id,
        due_date=due_date,
        priority=TaskPriority(priority or TaskPriority.MEDIUM).value,
    )
    db.add(task)
    _commit(db, "create_task")
    db.refresh(task)
    return task

def update_task(db: Session, user_id: int, task_id: int, updates: Dict[str, Any]) -> Task:
    task = require_task(db, user_id, task_id)
    if updates.get("university_id") is not None:
        require_university(db, updates["university_id"])
    for key, value in updates.items():
        if key in {"id", "user_id", "created_at", "updated_at"} or not hasattr(task, key):
            continue
        if key == "priority" and value is not None:
            value = TaskPriority(value).value
        setattr(task, key, value)
    _commit(db, "update_task")
    db.refresh(task)
    return task

def toggle_task_completion(db: Session, user_id: int, task_id: int, completed: bool) -> Task:
    return update_task(db, user_id, task_id, {"completed": completed})

def delete_task(db: Session, user_id: int, task_id: int):
    task = require_task(db, user_id, task_id)
    db.delete(task)
    _commit(db, "delete_task")

def generate_default_tasks(db: Session, user_id: int, university_id: int) -> List[Task]:
    """Create the default application checklist for a locked university."""
    tasks = []
    for task_data in DEFAULT_APPLICATION_TASKS:
        task = Task(user_id=user_id, university_id=university_id, **task_data)
        db.add(task)
        tasks.append(task)
    _commit(db, "generate_default_tasks")
    logger.info(f"[TASKS] Generated {len(tasks)} default tasks for user {user_id}, university {university_id}")
    return tasks

# Chat operations
def get_chat_messages(db: Session, user_id: int, limit: int = 50) -> List[ChatMessage]:
    """The most recent ``limit`` messages in chronological order."""
    recent = db.query(ChatMessage).filter(ChatMessage.user_id == user_id).order_by(
        ChatMessage.id.desc()
    ).limit(limit).all()
    return list(reversed(recent))

def create_chat_message(db: Session, user_id: int, role: str, content: str, metadata: Optional[Dict[str, Any]] = None) -> ChatMessage:
    message = ChatMessage(
        user_id=user_id,
        role=ChatRole(role).value,
        content=content,
        message_metadata=metadata or {},
    )
    db.add(message)
    _commit(db, "create_chat_message")
    db.refresh(message)
    return message
