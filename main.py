from fastapi import FastAPI, Depends, Request, Header, Query, Response
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session
from typing import Optional, List
import logging

from config import settings
from models import UserRole
import crud
import schemas
import service
import stages
from database import get_db, verify_tables_exist
from errors import CounsellorError, PermissionDeniedError

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(title="AI Counsellor Backend")

# Ensure database tables exist on startup
@app.on_event("startup")
def startup_event():
    settings.validate()
    verify_tables_exist()

# Global Custom Error Handlers
@app.exception_handler(CounsellorError)
async def counsellor_exception_handler(request: Request, exc: CounsellorError):
    """Render domain errors with their status and code."""
    logger.info(f"[ERROR] {request.method} {request.url.path}: {exc.error} {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "message": exc.message},
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Convert 422 to 400 for frontend compatibility."""
    return JSONResponse(
        status_code=400,
        content={"error": "VALIDATION_ERROR", "message": f"Invalid data format: {str(exc)}"},
    )

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions."""
    logger.exception(f"Global Error: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={"error": "INTERNAL_SERVER_ERROR", "message": "An unexpected error occurred. Please try again."},
    )

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

def require_admin(
    x_user_id: Optional[int] = Header(default=None),
    db: Session = Depends(get_db),
):
    """The hosting platform forwards the signed-in user's id in X-User-Id."""
    if x_user_id is None:
        raise PermissionDeniedError("Missing X-User-Id header")
    profile = crud.get_profile(db, x_user_id)
    if not profile or profile.role != UserRole.ADMIN.value:
        raise PermissionDeniedError("Admin access required")
    return profile

# ============================================
# ENDPOINTS
# ============================================

@app.get("/")
async def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "ai-counsellor-backend"}

# ---------- Profiles ----------

@app.post("/users", response_model=schemas.ProfileResponse, status_code=201)
def register(user: schemas.UserCreate, db: Session = Depends(get_db)):
    logger.info(f"[ENDPOINT] /users called for {user.email}")
    return service.register_user(db, user.email, user.full_name)

@app.get("/users/{user_id}/profile", response_model=schemas.ProfileResponse)
def get_profile(user_id: int, db: Session = Depends(get_db)):
    return crud.require_profile(db, user_id)

@app.patch("/users/{user_id}/profile", response_model=schemas.ProfileResponse)
def update_profile(user_id: int, updates: schemas.ProfileUpdate, db: Session = Depends(get_db)):
    return crud.update_profile(db, user_id, updates.model_dump(exclude_unset=True))

@app.post("/users/{user_id}/onboarding", response_model=schemas.OnboardingResponse)
def onboarding(user_id: int, data: schemas.OnboardingData, db: Session = Depends(get_db)):
    """
    Save onboarding answers.
    If final_submit=true -> mark onboarding complete and start exploring.
    """
    logger.info(f"[ENDPOINT] /onboarding called for user {user_id}")
    profile = service.submit_onboarding(db, user_id, data)
    return schemas.OnboardingResponse(
        onboarding_completed=profile.onboarding_completed,
        current_stage=profile.current_stage,
        user_id=profile.id,
    )

# ---------- Stage ----------

@app.get("/users/{user_id}/stage", response_model=schemas.StageInfoResponse)
def get_stage(user_id: int, db: Session = Depends(get_db)):
    return service.stage_summary(crud.require_profile(db, user_id))

@app.get("/users/{user_id}/stage/history", response_model=List[schemas.StageEventResponse])
def get_stage_history(user_id: int, db: Session = Depends(get_db)):
    crud.require_profile(db, user_id)
    return crud.get_stage_events(db, user_id)

@app.post("/users/{user_id}/stage/transitions", response_model=schemas.StageTransitionResponse)
def fire_stage_trigger(user_id: int, request: schemas.StageTransitionRequest, db: Session = Depends(get_db)):
    profile = crud.require_profile(db, user_id)
    changed = stages.advance(db, profile, request.trigger)
    return schemas.StageTransitionResponse(changed=changed, current_stage=profile.current_stage)

@app.get("/users/{user_id}/dashboard", response_model=schemas.DashboardResponse)
def dashboard(user_id: int, db: Session = Depends(get_db)):
    return service.get_dashboard(db, user_id)

# ---------- Universities ----------

@app.get("/universities", response_model=List[schemas.UniversityResponse])
def list_universities(
    countries: Optional[List[str]] = Query(default=None),
    programs: Optional[List[str]] = Query(default=None),
    budget_max: Optional[int] = None,
    db: Session = Depends(get_db),
):
    return crud.get_universities(db, countries=countries, programs=programs, budget_max=budget_max)

@app.get("/universities/search", response_model=List[schemas.UniversityResponse])
def search_universities(term: str = Query(min_length=1), db: Session = Depends(get_db)):
    return crud.search_universities(db, term, limit=settings.SEARCH_RESULT_LIMIT)

@app.get("/universities/countries", response_model=List[str])
def list_countries(db: Session = Depends(get_db)):
    return crud.list_countries(db)

@app.get("/universities/{university_id}", response_model=schemas.UniversityResponse)
def get_university(university_id: int, db: Session = Depends(get_db)):
    return crud.require_university(db, university_id)

@app.post("/universities", response_model=schemas.UniversityResponse, status_code=201)
def create_university(
    university: schemas.UniversityCreate,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    logger.info(f"[ENDPOINT] admin {admin.id} creating university {university.name}")
    return crud.create_university(db, university.model_dump())

@app.patch("/universities/{university_id}", response_model=schemas.UniversityResponse)
def update_university(
    university_id: int,
    updates: schemas.UniversityUpdate,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    return crud.update_university(db, university_id, updates.model_dump(exclude_unset=True))

@app.delete("/universities/{university_id}", status_code=204)
def delete_university(university_id: int, db: Session = Depends(get_db), admin=Depends(require_admin)):
    crud.delete_university(db, university_id)
    return Response(status_code=204)

@app.get("/users/{user_id}/universities", response_model=schemas.BrowseResponse)
def browse_universities(
    user_id: int,
    search: str = "",
    country: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return service.browse_universities(db, user_id, search=search, country=country)

# ---------- Shortlist ----------

@app.get("/users/{user_id}/shortlist", response_model=List[schemas.ShortlistedUniversityResponse])
def get_shortlist(user_id: int, db: Session = Depends(get_db)):
    crud.require_profile(db, user_id)
    return crud.get_shortlisted_universities(db, user_id)

@app.post("/users/{user_id}/shortlist", response_model=schemas.ShortlistedUniversityResponse, status_code=201)
def add_to_shortlist(user_id: int, request: schemas.ShortlistRequest, db: Session = Depends(get_db)):
    logger.info(f"[ENDPOINT] shortlist add user={user_id} university={request.university_id}")
    return service.shortlist_university(db, user_id, request)

@app.patch("/users/{user_id}/shortlist/{university_id}", response_model=schemas.ShortlistedUniversityResponse)
def update_shortlist_category(
    user_id: int,
    university_id: int,
    request: schemas.ShortlistCategoryUpdate,
    db: Session = Depends(get_db),
):
    return crud.update_shortlist_category(db, user_id, university_id, request.category.value)

@app.delete("/users/{user_id}/shortlist/{university_id}", status_code=204)
def remove_from_shortlist(user_id: int, university_id: int, db: Session = Depends(get_db)):
    crud.remove_from_shortlist(db, user_id, university_id)
    return Response(status_code=204)

# ---------- Locks ----------

@app.get("/users/{user_id}/locked", response_model=List[schemas.LockedUniversityResponse])
def get_locked(user_id: int, db: Session = Depends(get_db)):
    crud.require_profile(db, user_id)
    return crud.get_locked_universities(db, user_id)

@app.post("/users/{user_id}/locked", response_model=schemas.LockedUniversityResponse, status_code=201)
def lock_university(user_id: int, request: schemas.LockRequest, db: Session = Depends(get_db)):
    logger.info(f"[ENDPOINT] lock user={user_id} university={request.university_id}")
    return service.lock_choice(db, user_id, request.university_id)

@app.delete("/users/{user_id}/locked/{university_id}", status_code=204)
def unlock_university(user_id: int, university_id: int, db: Session = Depends(get_db)):
    crud.unlock_university(db, user_id, university_id)
    return Response(status_code=204)

# ---------- Application & tasks ----------

@app.get("/users/{user_id}/application", response_model=schemas.ApiResponse[schemas.ApplicationOverview])
def application(user_id: int, db: Session = Depends(get_db)):
    return service.open_application(db, user_id)

@app.get("/users/{user_id}/tasks", response_model=List[schemas.TaskResponse])
def get_tasks(user_id: int, db: Session = Depends(get_db)):
    crud.require_profile(db, user_id)
    return crud.get_tasks(db, user_id)

@app.post("/users/{user_id}/tasks", response_model=schemas.TaskResponse, status_code=201)
def create_task(user_id: int, task: schemas.TaskCreate, db: Session = Depends(get_db)):
    crud.require_profile(db, user_id)
    return crud.create_task(
        db,
        user_id,
        title=task.title,
        description=task.description,
        university_id=task.university_id,
        due_date=task.due_date,
        priority=task.priority.value,
    )

@app.patch("/users/{user_id}/tasks/{task_id}", response_model=schemas.TaskResponse)
def update_task(user_id: int, task_id: int, updates: schemas.TaskUpdate, db: Session = Depends(get_db)):
    return crud.update_task(db, user_id, task_id, updates.model_dump(exclude_unset=True))

@app.post("/users/{user_id}/tasks/{task_id}/toggle", response_model=schemas.TaskResponse)
def toggle_task(user_id: int, task_id: int, db: Session = Depends(get_db)):
    task = crud.require_task(db, user_id, task_id)
    return crud.toggle_task_completion(db, user_id, task_id, not task.completed)

@app.delete("/users/{user_id}/tasks/{task_id}", status_code=204)
def delete_task(user_id: int, task_id: int, db: Session = Depends(get_db)):
    crud.delete_task(db, user_id, task_id)
    return Response(status_code=204)

# ---------- Counsellor ----------

@app.get("/users/{user_id}/chat", response_model=List[schemas.ChatMessageResponse])
def get_chat(user_id: int, limit: Optional[int] = Query(default=None, ge=1, le=200), db: Session = Depends(get_db)):
    return service.open_chat(db, user_id, limit)

@app.post("/users/{user_id}/chat", response_model=schemas.ChatExchangeResponse)
def send_chat(user_id: int, request: schemas.ChatRequest, db: Session = Depends(get_db)):
    """
    AI counsellor endpoint.
    Replies come from keyword matching over the stored profile, never from an external model.
    """
    logger.info(f"[ENDPOINT] /chat called for user {user_id}")
    return service.send_chat_message(db, user_id, request.message)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
