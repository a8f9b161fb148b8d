from sqlalchemy import Column, Integer, String, Boolean, Float, Date, ForeignKey, DateTime, Text, JSON, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
import enum

Base = declarative_base()

# Enums
class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"

class StageEnum(str, enum.Enum):
    NOT_STARTED = "not_started"
    ONBOARDING = "onboarding"
    EXPLORING = "exploring"
    SHORTLISTING = "shortlisting"
    COMMITTED = "committed"
    APPLYING = "applying"

class CategoryEnum(str, enum.Enum):
    DREAM = "dream"
    TARGET = "target"
    SAFE = "safe"

class TaskPriority(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

class ChatRole(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"

# Models
class UserProfile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)
    full_name = Column(String(255))
    current_stage = Column(String(50), nullable=False, default=StageEnum.NOT_STARTED.value, index=True)
    onboarding_completed = Column(Boolean, nullable=False, default=False)

    # Academic background
    current_education_level = Column(String(100))
    field_of_study = Column(String(255))
    gpa = Column(Float)
    test_scores = Column(JSON, default=dict)

    # Goals and preferences
    target_degree = Column(String(255))
    preferred_countries = Column(JSON, default=list)
    preferred_fields = Column(JSON, default=list)
    budget_min = Column(Integer)
    budget_max = Column(Integer)

    # Exam preparation
    exams_taken = Column(JSON, default=list)
    exams_planned = Column(JSON, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

class University(Base):
    __tablename__ = "universities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    country = Column(String(100), nullable=False, index=True)
    city = Column(String(100))
    ranking = Column(Integer)
    acceptance_rate = Column(Float)
    tuition_fee_min = Column(Integer)
    tuition_fee_max = Column(Integer)
    currency = Column(String(10), default="USD")
    programs = Column(JSON, default=list)
    requirements = Column(JSON, default=dict)
    description = Column(Text)
    website = Column(String(255))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class ShortlistedUniversity(Base):
    __tablename__ = "user_shortlisted_universities"
    __table_args__ = (UniqueConstraint("user_id", "university_id"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    university_id = Column(Integer, ForeignKey("universities.id", ondelete="CASCADE"), nullable=False)
    category = Column(String(20), nullable=False)  # dream | target | safe
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    university = relationship("University", lazy="joined")

class LockedUniversity(Base):
    __tablename__ = "user_locked_universities"
    __table_args__ = (UniqueConstraint("user_id", "university_id"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    university_id = Column(Integer, ForeignKey("universities.id", ondelete="CASCADE"), nullable=False)
    locked_at = Column(DateTime(timezone=True), server_default=func.now())

    university = relationship("University", lazy="joined")

class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    university_id = Column(Integer, ForeignKey("universities.id", ondelete="CASCADE"), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    completed = Column(Boolean, nullable=False, default=False, index=True)
    due_date = Column(Date)
    priority = Column(String(20), default=TaskPriority.MEDIUM.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    university = relationship("University", lazy="joined")

class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), nullable=False)  # user | assistant
    content = Column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    message_metadata = Column("metadata", JSON, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

class StageEvent(Base):
    __tablename__ = "stage_events"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    from_stage = Column(String(50))
    to_stage = Column(String(50), nullable=False)
    trigger = Column(String(50), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
