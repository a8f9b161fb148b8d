"""
Journey stage machine.

A user moves through

    not_started -> onboarding -> exploring -> shortlisting -> committed -> applying

Every move goes through ``advance``: a trigger names the transition, the
current stage must be one the trigger is allowed from, and the trigger's
guard must hold. Transitions never move a user backwards, and firing a
trigger whose target the user already reached (or passed) is a no-op.
Each applied transition is written to ``stage_events``.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Optional

from sqlalchemy.orm import Session

import crud
from errors import StageTransitionError
from models import StageEnum, UserProfile

logger = logging.getLogger(__name__)

STAGE_ORDER = [
    StageEnum.NOT_STARTED,
    StageEnum.ONBOARDING,
    StageEnum.EXPLORING,
    StageEnum.SHORTLISTING,
    StageEnum.COMMITTED,
    StageEnum.APPLYING,
]

# Stages shown on the dashboard progress bar
JOURNEY_STAGES = [
    StageEnum.EXPLORING,
    StageEnum.SHORTLISTING,
    StageEnum.COMMITTED,
    StageEnum.APPLYING,
]

STAGE_INFO = {
    StageEnum.NOT_STARTED: ("Getting Started", "Complete your profile to begin"),
    StageEnum.ONBOARDING: ("Building Your Profile", "Tell us about your goals"),
    StageEnum.EXPLORING: ("Exploring Options", "Discover universities with AI guidance"),
    StageEnum.SHORTLISTING: ("Building Shortlist", "Select your target universities"),
    StageEnum.COMMITTED: ("Committed", "Locked your university choices"),
    StageEnum.APPLYING: ("Applying", "Working on applications"),
}

REGISTERED_TRIGGER = "registered"


class StageTrigger(str, enum.Enum):
    ONBOARDING_STARTED = "onboarding_started"
    ONBOARDING_COMPLETED = "onboarding_completed"
    SHORTLIST_ADDED = "shortlist_added"
    UNIVERSITY_LOCKED = "university_locked"
    APPLICATION_OPENED = "application_opened"


@dataclass(frozen=True)
class Transition:
    trigger: StageTrigger
    sources: FrozenSet[StageEnum]
    target: StageEnum
    guard: Optional[Callable[[Session, UserProfile], bool]] = None
    guard_message: str = ""


def _onboarding_done(db: Session, profile: UserProfile) -> bool:
    return bool(profile.onboarding_completed)


def _has_shortlist(db: Session, profile: UserProfile) -> bool:
    return len(crud.get_shortlisted_universities(db, profile.id)) > 0


def _has_lock(db: Session, profile: UserProfile) -> bool:
    return len(crud.get_locked_universities(db, profile.id)) > 0


TRANSITIONS: Dict[StageTrigger, Transition] = {
    t.trigger: t
    for t in [
        Transition(
            StageTrigger.ONBOARDING_STARTED,
            frozenset({StageEnum.NOT_STARTED}),
            StageEnum.ONBOARDING,
        ),
        Transition(
            StageTrigger.ONBOARDING_COMPLETED,
            frozenset({StageEnum.NOT_STARTED, StageEnum.ONBOARDING}),
            StageEnum.EXPLORING,
            _onboarding_done,
            "Onboarding has not been submitted",
        ),
        Transition(
            StageTrigger.SHORTLIST_ADDED,
            frozenset({StageEnum.EXPLORING}),
            StageEnum.SHORTLISTING,
            _has_shortlist,
            "Shortlist is empty",
        ),
        Transition(
            StageTrigger.UNIVERSITY_LOCKED,
            frozenset({StageEnum.EXPLORING, StageEnum.SHORTLISTING}),
            StageEnum.COMMITTED,
            _has_lock,
            "No locked university",
        ),
        Transition(
            StageTrigger.APPLICATION_OPENED,
            frozenset({StageEnum.COMMITTED}),
            StageEnum.APPLYING,
            _has_lock,
            "No locked university",
        ),
    ]
}


def stage_index(stage) -> int:
    return STAGE_ORDER.index(StageEnum(stage))


def stage_info(stage) -> Dict[str, str]:
    title, description = STAGE_INFO[StageEnum(stage)]
    return {"title": title, "description": description}


def journey_progress(stage) -> int:
    """Dashboard percentage over the post-onboarding stages (0 before exploring)."""
    stage = StageEnum(stage)
    if stage not in JOURNEY_STAGES:
        return 0
    return int((JOURNEY_STAGES.index(stage) + 1) / len(JOURNEY_STAGES) * 100)


def advance(
    db: Session,
    profile: UserProfile,
    trigger: StageTrigger,
    strict: bool = True,
) -> bool:
    """
    Fire ``trigger`` for ``profile``.

    Returns True when the stage changed. Returns False when the user is
    already at or past the target stage. A disallowed source stage or a
    failing guard raises StageTransitionError, unless ``strict`` is False,
    in which case the trigger is skipped and False is returned.
    """
    transition = TRANSITIONS[StageTrigger(trigger)]
    current = StageEnum(profile.current_stage)

    if stage_index(current) >= stage_index(transition.target):
        logger.info(f"[STAGE] user={profile.id} already at {current.value}, {transition.trigger.value} ignored")
        return False

    if current not in transition.sources:
        message = f"Cannot apply '{transition.trigger.value}' from stage '{current.value}'"
        if strict:
            raise StageTransitionError(message)
        logger.info(f"[STAGE] user={profile.id} {message}, skipped")
        return False

    if transition.guard and not transition.guard(db, profile):
        message = f"Cannot apply '{transition.trigger.value}': {transition.guard_message}"
        if strict:
            raise StageTransitionError(message)
        logger.info(f"[STAGE] user={profile.id} {message}, skipped")
        return False

    # Stage write and audit row share one commit
    crud.update_user_stage(db, profile.id, transition.target.value, commit=False)
    crud.create_stage_event(
        db,
        user_id=profile.id,
        from_stage=current.value,
        to_stage=transition.target.value,
        trigger=transition.trigger.value,
    )
    db.refresh(profile)
    logger.info(f"[STAGE] user={profile.id} {current.value} -> {transition.target.value} ({transition.trigger.value})")
    return True
