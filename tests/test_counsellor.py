from counsellor import (
    DEFAULT_REPLY,
    NO_MATCHES_REPLY,
    PROFILE_MISSING_REPLY,
    TIMELINE_REPLY,
    detect_intent,
    generate_reply,
    welcome_message,
)
from models import University, UserProfile


def make_profile(**overrides) -> UserProfile:
    data = {
        "id": 1,
        "full_name": "Ada Student",
        "current_stage": "exploring",
        "field_of_study": "Computer Science",
        "gpa": 3.8,
        "budget_min": 20000,
        "budget_max": 45000,
        "preferred_countries": ["USA"],
        "preferred_fields": ["Computer Science"],
        "exams_taken": ["GRE"],
        "exams_planned": ["TOEFL"],
    }
    data.update(overrides)
    return UserProfile(**data)


def make_universities(count: int) -> list:
    return [
        University(id=i, name=f"Uni {i}", country="USA", ranking=i, acceptance_rate=10.0 + i)
        for i in range(1, count + 1)
    ]


def test_detect_intent_follows_keyword_priority() -> None:
    assert detect_intent("Can you RECOMMEND something?") == "recommend"
    assert detect_intent("Which university fits my budget?") == "recommend"
    assert detect_intent("What are my chances?") == "profile"
    assert detect_intent("Can I afford this?") == "budget"
    assert detect_intent("When is the deadline?") == "timeline"
    assert detect_intent("What should I do?") == "next"
    assert detect_intent("hello there") == "default"


def test_missing_profile_reply() -> None:
    assert generate_reply("recommend me", None) == PROFILE_MISSING_REPLY


def test_recommendation_splits_dream_target_safe() -> None:
    reply = generate_reply("please recommend", make_profile(), make_universities(10))

    dream, rest = reply.split("**Target Schools**")
    target, safe = rest.split("**Safe Schools**")

    assert "GPA: 3.8" in reply
    assert "Budget: $20000-45000" in reply
    assert "**Uni 1**" in dream and "**Uni 2**" in dream
    assert "**Uni 3**" in target and "**Uni 5**" in target
    assert "**Uni 6**" in safe and "**Uni 8**" in safe
    assert "**Uni 9**" not in reply
    assert "your Computer Science makes you competitive" in dream
    assert reply.endswith("Would you like me to add any of these to your shortlist?")


def test_recommendation_without_matches_asks_to_broaden() -> None:
    assert generate_reply("suggest some places", make_profile(), []) == NO_MATCHES_REPLY


def test_recommendation_handles_missing_acceptance_rate_and_gpa() -> None:
    universities = [University(id=1, name="Unknown U", country="UK", ranking=None, acceptance_rate=None)]
    reply = generate_reply("recommend", make_profile(gpa=None), universities)

    assert "GPA: N/A" in reply
    assert "Acceptance rate N/A" in reply


def test_profile_analysis_for_strong_profile() -> None:
    reply = generate_reply("how strong is my profile?", make_profile())

    assert "Strong GPA of 3.8" in reply
    assert "You've completed GRE" in reply
    assert "Clear focus on Computer Science" in reply
    assert "Complete your planned exams: TOEFL" in reply
    assert "Your profile is strong." in reply


def test_profile_analysis_for_developing_profile() -> None:
    reply = generate_reply("what are my chances", make_profile(gpa=3.1, exams_taken=[], exams_planned=[]))

    assert "Strong GPA" not in reply
    assert "Consider ways to improve your academic standing" in reply
    assert "Your profile is developing." in reply


def test_budget_reply_uses_range() -> None:
    reply = generate_reply("this is expensive", make_profile(budget_min=None, budget_max=15000))
    assert "Based on your budget of $0-15000 per year" in reply


def test_timeline_reply() -> None:
    assert generate_reply("what is the timeline", make_profile()) == TIMELINE_REPLY


def test_next_steps_depend_on_stage() -> None:
    assert "explore universities" in generate_reply("what next?", make_profile(current_stage="exploring"))
    assert "building your shortlist" in generate_reply("what next?", make_profile(current_stage="shortlisting"))
    assert "locked your choices" in generate_reply("what next?", make_profile(current_stage="committed"))


def test_next_steps_fall_back_to_default_for_other_stages() -> None:
    assert generate_reply("help", make_profile(current_stage="applying")) == DEFAULT_REPLY


def test_welcome_message_uses_name() -> None:
    assert welcome_message(make_profile()).startswith("Hello Ada Student!")
    assert welcome_message(make_profile(full_name=None)).startswith("Hello there!")


def test_whole_number_gpa_prints_without_decimal() -> None:
    recommend = generate_reply("recommend", make_profile(gpa=4.0), make_universities(1))
    assert "GPA: 4," in recommend

    analysis = generate_reply("my profile", make_profile(gpa=4.0))
    assert "Strong GPA of 4 -" in analysis


def test_profile_analysis_skips_focus_without_fields() -> None:
    reply = generate_reply("my profile", make_profile(preferred_fields=[]))
    assert "Clear focus" not in reply
