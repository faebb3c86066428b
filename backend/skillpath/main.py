# Load environment variables FIRST before any other imports
from dotenv import load_dotenv
load_dotenv()

import os
import logging
import sentry_sdk
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from skillpath.database import engine, Base
from skillpath.routers import auth, users, quiz, courses, schedule, mentor
from skillpath.services.openai_service import openai_service
from skillpath.services.scoring import QuizValidationError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize Sentry for error monitoring
sentry_dsn = os.getenv("SENTRY_DSN")
if sentry_dsn:
    sentry_sdk.init(
        dsn=sentry_dsn,
        traces_sample_rate=0.1,  # 10% of transactions for performance monitoring
        environment=os.getenv("ENVIRONMENT", "development"),
    )

# Create database tables
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - runs on startup and shutdown."""
    if os.getenv("OPENAI_API_KEY"):
        logger.info("OpenAI configured; quizzes, courses and mentor replies are generated")
    else:
        logger.warning("OPENAI_API_KEY not set; all generative features will use fallbacks")

    yield  # Application runs here

    logger.info("Shutting down...")


tags_metadata = [
    {"name": "authentication", "description": "Signup and login."},
    {"name": "users", "description": "Profile, onboarding, skills, enrollments and chat history."},
    {"name": "quiz", "description": "Skill assessment quizzes and scoring."},
    {"name": "courses", "description": "Course recommendations, enrollment and progress."},
    {"name": "schedule", "description": "Learning schedule items and AI-planned milestones."},
    {"name": "mentor", "description": "AI learning mentor chat and suggested next actions."},
]

app = FastAPI(
    title="SkillPath API",
    description="""
## SkillPath Learning Platform

Assess your skills, get courses for your level, and learn with an AI mentor.

### Workflow
- **Assessment** - AI-generated quiz per domain (static bank fallback)
- **Skill Classification** - Beginner / Intermediate / Advanced per domain
- **Recommendation** - Mostly free courses that link to specific course pages
    """,
    version="1.0.0",
    lifespan=lifespan,
    openapi_tags=tags_metadata,
)

# SECURITY: Explicitly list allowed origins - no wildcards
ALLOWED_ORIGINS = [
    "http://localhost:5000",  # Vite dev server behind the API
    "http://localhost:5173",  # Vite dev server
    "http://localhost:3000",
]

# Allow additional origins from environment (for preview deploys)
extra_origins = os.getenv("CORS_ALLOWED_ORIGINS", "")
if extra_origins:
    ALLOWED_ORIGINS.extend([o.strip() for o in extra_origins.split(",") if o.strip()])

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With", "Accept"],
)


# ==================== Exception Handlers ====================

def _format_validation_error(error: dict) -> str:
    loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
    field = ".".join(loc)
    message = error.get("msg", "Invalid value")
    return f"{field}: {message}" if field else message


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report the first invalid field as a 400."""
    errors = exc.errors()
    detail = _format_validation_error(errors[0]) if errors else "Invalid request"
    logger.warning(f"Validation error on {request.method} {request.url.path}: {detail}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": detail})


@app.exception_handler(QuizValidationError)
async def quiz_validation_exception_handler(request: Request, exc: QuizValidationError):
    logger.warning(f"Quiz validation error on {request.url.path}: {exc}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """Persistence failures: logged, sent to Sentry, generic 500 to the client."""
    logger.exception(f"Database error on {request.method} {request.url.path}", exc_info=exc)
    sentry_sdk.capture_exception(exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An internal error occurred. Please try again later."},
    )


# Include routers
app.include_router(auth.router)  # Signup & login
app.include_router(users.router)  # Profile, onboarding, skills
app.include_router(quiz.router)  # Skill assessment
app.include_router(courses.router)  # Recommendations & enrollment
app.include_router(schedule.router)  # Learning schedule
app.include_router(mentor.router)  # AI mentor


@app.get("/")
def root():
    return {
        "message": "SkillPath API",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "openai": {
            "configured": bool(os.getenv("OPENAI_API_KEY")),
            "healthy": openai_service.is_healthy(),
            **openai_service.get_status(),
        },
    }
