"""
Simulated AI counsellor.

Replies are picked by keyword matching on the user's message and filled in
from the profile and university rows the caller already loaded. Nothing here
touches the database or an external model.

GPA is printed in its shortest form (3.0 as "3"). The "Clear focus on"
strength is left out when the profile has no preferred fields.
"""

from typing import List, Optional, Sequence, Tuple

from models import StageEnum, University, UserProfile

INTENT_RECOMMEND = "recommend"
INTENT_PROFILE = "profile"
INTENT_BUDGET = "budget"
INTENT_TIMELINE = "timeline"
INTENT_NEXT = "next"
INTENT_DEFAULT = "default"

# Checked in order, first match wins
INTENT_KEYWORDS: List[Tuple[str, Tuple[str, ...]]] = [
    (INTENT_RECOMMEND, ("recommend", "suggest", "university", "universities")),
    (INTENT_PROFILE, ("profile", "chances", "strength")),
    (INTENT_BUDGET, ("budget", "cost", "afford", "expensive")),
    (INTENT_TIMELINE, ("timeline", "when", "deadline")),
    (INTENT_NEXT, ("next", "what should", "help")),
]

STRONG_GPA = 3.5

# Slices of the ranking-ordered list
DREAM_SLICE = slice(0, 2)
TARGET_SLICE = slice(2, 5)
SAFE_SLICE = slice(5, 8)

PROFILE_MISSING_REPLY = "I'm having trouble accessing your profile. Please try again."

NO_MATCHES_REPLY = (
    "I couldn't find universities matching your exact criteria. Let me broaden the search. "
    "Could you tell me more about what's most important to you - location, program, or budget?"
)

TIMELINE_REPLY = (
    "Here's a typical application timeline:\n\n"
    "- **Now**: Research universities and prepare documents\n"
    "- **3-6 months before**: Complete standardized tests\n"
    "- **2-4 months before**: Write essays and get recommendations\n"
    "- **1-2 months before**: Submit applications\n\n"
    "Most universities have deadlines between November and February. "
    "Would you like me to create a personalized task list?"
)

NEXT_STEP_REPLIES = {
    StageEnum.EXPLORING: (
        "Your next step is to explore universities! I recommend:\n"
        "1. Review my university recommendations\n"
        "2. Add 6-10 universities to your shortlist (mix of Dream, Target, and Safe)\n"
        "3. Research each university's specific requirements\n\n"
        "Would you like me to recommend some universities now?"
    ),
    StageEnum.SHORTLISTING: (
        "You're building your shortlist! Make sure to:\n"
        "1. Include a balanced mix of Dream, Target, and Safe schools\n"
        "2. Consider location, program quality, and budget\n"
        "3. Lock at least one university when you're ready to commit\n\n"
        "Need help deciding which universities to add?"
    ),
    StageEnum.COMMITTED: (
        "Great! You've locked your choices. Now:\n"
        "1. Review application requirements for each university\n"
        "2. Start working on your tasks\n"
        "3. Prepare documents like transcripts and recommendations\n\n"
        "Shall I create some tasks to get you started?"
    ),
}

DEFAULT_REPLY = (
    "I'm here to help you with your university applications! I can:\n\n"
    "- Recommend universities based on your profile\n"
    "- Analyze your strengths and weaknesses\n"
    "- Explain admission requirements\n"
    "- Help you build a balanced shortlist\n"
    "- Create application tasks and timelines\n\n"
    "What would you like to know?"
)


def detect_intent(message: str) -> str:
    lowered = message.lower()
    for intent, keywords in INTENT_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return intent
    return INTENT_DEFAULT


def welcome_message(profile: Optional[UserProfile]) -> str:
    name = (profile.full_name if profile else None) or "there"
    return (
        f"Hello {name}! 👋 I'm your AI Counsellor, here to guide you through your university application journey.\n\n"
        "I've reviewed your profile and I'm ready to help you find the perfect universities. "
        "What would you like to know?"
    )


def _budget_range(profile: UserProfile) -> str:
    return f"${profile.budget_min or 0}-{profile.budget_max or 0}"


def _gpa(profile: UserProfile) -> str:
    # Shortest form, 3.0 prints as "3"
    if profile.gpa is None:
        return "N/A"
    return f"{profile.gpa:g}"


def _acceptance(university: University) -> str:
    if university.acceptance_rate is None:
        return "N/A"
    return f"{university.acceptance_rate:g}%"


def _recommendation_reply(profile: UserProfile, universities: Sequence[University]) -> str:
    if not universities:
        return NO_MATCHES_REPLY

    background = profile.field_of_study or "background"
    lines = [
        f"Based on your profile (GPA: {_gpa(profile)}, Budget: {_budget_range(profile)}), "
        "here are my recommendations:",
        "",
        "🌟 **Dream Schools** (Reach):",
    ]
    for uni in universities[DREAM_SLICE]:
        lines.append(
            f"- **{uni.name}** ({uni.country}): Acceptance rate {_acceptance(uni)}. "
            f"This is a reach school but your {background} makes you competitive."
        )

    lines += ["", "🎯 **Target Schools** (Match):"]
    for uni in universities[TARGET_SLICE]:
        lines.append(
            f"- **{uni.name}** ({uni.country}): Acceptance rate {_acceptance(uni)}. "
            "Your profile aligns well with their requirements."
        )

    lines += ["", "✅ **Safe Schools** (Likely):"]
    for uni in universities[SAFE_SLICE]:
        lines.append(
            f"- **{uni.name}** ({uni.country}): Acceptance rate {_acceptance(uni)}. "
            "Strong likelihood of admission."
        )

    lines += ["", "Would you like me to add any of these to your shortlist?"]
    return "\n".join(lines)


def _profile_reply(profile: UserProfile) -> str:
    strong_gpa = bool(profile.gpa and profile.gpa >= STRONG_GPA)
    exams_taken = profile.exams_taken or []
    exams_planned = profile.exams_planned or []
    fields = profile.preferred_fields or []

    lines = ["Let me analyze your profile:", "", "**Strengths:**"]
    if strong_gpa:
        lines.append(f"- Strong GPA of {_gpa(profile)} - this is competitive for most universities")
    if exams_taken:
        lines.append(f"- You've completed {', '.join(exams_taken)} - great preparation!")
    # Omitted when no preferred fields are set
    if fields:
        lines.append(f"- Clear focus on {', '.join(fields)}")

    lines += ["", "**Areas to Strengthen:**"]
    if exams_planned:
        lines.append(f"- Complete your planned exams: {', '.join(exams_planned)}")
    if not strong_gpa:
        lines.append("- Consider ways to improve your academic standing")

    verdict = "strong" if strong_gpa else "developing"
    lines += ["", f"Your profile is {verdict}. Would you like specific advice on improving your application?"]
    return "\n".join(lines)


def _budget_reply(profile: UserProfile) -> str:
    return (
        f"Based on your budget of {_budget_range(profile)} per year, I can help you find affordable options. "
        "Countries like Germany and some European nations offer low or no tuition fees. "
        "Would you like me to show you universities within your budget range?"
    )


def generate_reply(
    message: str,
    profile: Optional[UserProfile],
    universities: Optional[Sequence[University]] = None,
) -> str:
    """
    Build the counsellor's reply to ``message``.

    ``universities`` is only read for recommendation requests and must
    already be filtered for the profile and ordered by ranking.
    """
    if profile is None:
        return PROFILE_MISSING_REPLY

    intent = detect_intent(message)

    if intent == INTENT_RECOMMEND:
        return _recommendation_reply(profile, universities or [])
    if intent == INTENT_PROFILE:
        return _profile_reply(profile)
    if intent == INTENT_BUDGET:
        return _budget_reply(profile)
    if intent == INTENT_TIMELINE:
        return TIMELINE_REPLY
    if intent == INTENT_NEXT:
        stage_reply = NEXT_STEP_REPLIES.get(StageEnum(profile.current_stage))
        if stage_reply:
            return stage_reply

    return DEFAULT_REPLY
