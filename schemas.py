"""
Pydantic schemas for API requests and responses.
"""

from pydantic import AliasChoices, BaseModel, EmailStr, Field, field_validator
from typing import List, Optional, Dict, Any, Generic, TypeVar
from datetime import date, datetime
from models import StageEnum, CategoryEnum, TaskPriority, UserRole, ChatRole
from stages import StageTrigger

# Generic Wrapper
T = TypeVar('T')

class ApiResponse(BaseModel, Generic[T]):
    status: str = "OK"  # OK | EMPTY | LOCKED | ERROR
    message: Optional[str] = None
    data: T

# User Profile Schemas
class UserCreate(BaseModel):
    email: EmailStr
    full_name: Optional[str] = None

class OnboardingData(BaseModel):
    full_name: str
    current_education_level: Optional[str] = None
    field_of_study: Optional[str] = None
    gpa: Optional[float] = Field(default=None, ge=0, le=4)
    test_scores: Dict[str, float] = {}
    target_degree: Optional[str] = None
    preferred_countries: List[str] = []
    preferred_fields: List[str] = []
    budget_min: Optional[int] = Field(default=None, ge=0)
    budget_max: Optional[int] = Field(default=None, ge=0)
    exams_taken: List[str] = []
    exams_planned: List[str] = []
    final_submit: bool = False  # Flag to mark onboarding as complete

class ProfileUpdate(BaseModel):
    full_name: Optional[str] = None
    current_education_level: Optional[str] = None
    field_of_study: Optional[str] = None
    gpa: Optional[float] = Field(default=None, ge=0, le=4)
    test_scores: Optional[Dict[str, float]] = None
    target_degree: Optional[str] = None
    preferred_countries: Optional[List[str]] = None
    preferred_fields: Optional[List[str]] = None
    budget_min: Optional[int] = Field(default=None, ge=0)
    budget_max: Optional[int] = Field(default=None, ge=0)
    exams_taken: Optional[List[str]] = None
    exams_planned: Optional[List[str]] = None

    # An explicit null clears the list or map instead of storing NULL
    @field_validator("preferred_countries", "preferred_fields", "exams_taken", "exams_planned")
    @classmethod
    def null_list_is_empty(cls, value):
        return [] if value is None else value

    @field_validator("test_scores")
    @classmethod
    def null_scores_are_empty(cls, value):
        return {} if value is None else value

class ProfileResponse(BaseModel):
    id: int
    email: Optional[str] = None
    role: UserRole = UserRole.USER
    full_name: Optional[str] = None
    current_stage: StageEnum = StageEnum.NOT_STARTED
    onboarding_completed: bool = False
    current_education_level: Optional[str] = None
    field_of_study: Optional[str] = None
    gpa: Optional[float] = None
    test_scores: Dict[str, float] = {}
    target_degree: Optional[str] = None
    preferred_countries: List[str] = []
    preferred_fields: List[str] = []
    budget_min: Optional[int] = None
    budget_max: Optional[int] = None
    exams_taken: List[str] = []
    exams_planned: List[str] = []

    class Config:
        from_attributes = True

# Onboarding Schema
class OnboardingResponse(BaseModel):
    onboarding_completed: bool
    current_stage: StageEnum
    user_id: int

# Stage Schemas
class StageInfoResponse(BaseModel):
    stage: StageEnum
    title: str
    description: str
    progress: int = 0

class StageEventResponse(BaseModel):
    id: int
    from_stage: Optional[StageEnum] = None
    to_stage: StageEnum
    trigger: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class StageTransitionRequest(BaseModel):
    trigger: StageTrigger

class StageTransitionResponse(BaseModel):
    changed: bool
    current_stage: StageEnum

# University Schemas
class UniversityBase(BaseModel):
    name: str
    country: str
    city: Optional[str] = None
    ranking: Optional[int] = None
    acceptance_rate: Optional[float] = None
    tuition_fee_min: Optional[int] = None
    tuition_fee_max: Optional[int] = None
    currency: str = "USD"
    programs: List[str] = []
    requirements: Dict[str, Any] = {}
    description: Optional[str] = None
    website: Optional[str] = None

class UniversityCreate(UniversityBase):
    pass

class UniversityUpdate(BaseModel):
    name: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    ranking: Optional[int] = None
    acceptance_rate: Optional[float] = None
    tuition_fee_min: Optional[int] = None
    tuition_fee_max: Optional[int] = None
    currency: Optional[str] = None
    programs: Optional[List[str]] = None
    requirements: Optional[Dict[str, Any]] = None
    description: Optional[str] = None
    website: Optional[str] = None

    @field_validator("name", "country")
    @classmethod
    def required_not_null(cls, value):
        if value is None:
            raise ValueError("must not be null")
        return value

    @field_validator("currency")
    @classmethod
    def null_currency_is_usd(cls, value):
        return "USD" if value is None else value

    @field_validator("programs")
    @classmethod
    def null_programs_are_empty(cls, value):
        return [] if value is None else value

    @field_validator("requirements")
    @classmethod
    def null_requirements_are_empty(cls, value):
        return {} if value is None else value

class UniversityResponse(UniversityBase):
    id: int

    class Config:
        from_attributes = True

class UniversityCard(BaseModel):
    university: UniversityResponse
    shortlisted: bool = False
    locked: bool = False
    category: Optional[CategoryEnum] = None

class BrowseResponse(BaseModel):
    universities: List[UniversityCard] = []
    countries: List[str] = []
    shortlisted_count: int = 0
    locked_count: int = 0

# Shortlist Schemas
class ShortlistRequest(BaseModel):
    university_id: int
    category: CategoryEnum
    notes: Optional[str] = None

class ShortlistCategoryUpdate(BaseModel):
    category: CategoryEnum

class ShortlistedUniversityResponse(BaseModel):
    id: int
    university_id: int
    category: CategoryEnum
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    university: Optional[UniversityResponse] = None

    class Config:
        from_attributes = True

# Lock Schemas
class LockRequest(BaseModel):
    university_id: int

class LockedUniversityResponse(BaseModel):
    id: int
    university_id: int
    locked_at: Optional[datetime] = None
    university: Optional[UniversityResponse] = None

    class Config:
        from_attributes = True

# Task Schemas
class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    university_id: Optional[int] = None
    due_date: Optional[date] = None
    priority: TaskPriority = TaskPriority.MEDIUM

class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    university_id: Optional[int] = None
    due_date: Optional[date] = None
    priority: Optional[TaskPriority] = None
    completed: Optional[bool] = None

    @field_validator("title", "completed")
    @classmethod
    def required_not_null(cls, value):
        if value is None:
            raise ValueError("must not be null")
        return value

class TaskResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    university_id: Optional[int] = None
    completed: bool = False
    due_date: Optional[date] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    university: Optional[UniversityResponse] = None

    class Config:
        from_attributes = True

# Application Schema
class ApplicationOverview(BaseModel):
    locked_universities: List[LockedUniversityResponse] = []
    pending_tasks: List[TaskResponse] = []
    completed_tasks: List[TaskResponse] = []
    progress: int = 0
    tasks_generated: bool = False

# Dashboard Schema
class TaskStats(BaseModel):
    total: int = 0
    completed: int = 0

class DashboardResponse(BaseModel):
    full_name: str = "Student"
    onboarding_required: bool = False
    stage: StageInfoResponse
    shortlisted_count: int = 0
    locked_count: int = 0
    task_stats: TaskStats = Field(default_factory=TaskStats)

# Chat Schemas
class ChatRequest(BaseModel):
    message: str

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("message must not be empty")
        return value

class ChatMessageResponse(BaseModel):
    id: int
    role: ChatRole
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("message_metadata", "metadata"))
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ChatExchangeResponse(BaseModel):
    user_message: ChatMessageResponse
    assistant_message: ChatMessageResponse

# Error Schema
class ErrorResponse(BaseModel):
    status: str = "ERROR"
    error: str
    message: str
