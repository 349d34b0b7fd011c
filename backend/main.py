"""
Family Calendar Assistant FastAPI Backend

Entry point for the API server that exposes the intent resolver and the
calendar agent to the chat frontend and the email forwarding hook.

Architecture:
- FastAPI handles HTTP routing and request/response validation
- Pydantic schemas ensure type safety
- IntentResolver decides what a message asks for; CalendarAgent persists
- Database provides persistence via SQLite (or PostgreSQL with DATABASE_URL)

Run with:
    uvicorn backend.main:app --reload --port 8000

Or:
    python -m backend.main
"""

import logging
import os
import sys
from pathlib import Path
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Add project root to path for imports
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from backend.routers import chat_router, email_router, events_router
from backend.dependencies import get_database, get_config

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Runs startup and shutdown tasks:
    - Startup: Verify database connection
    - Shutdown: Clean up resources
    """
    try:
        db = get_database()
        config = get_config()
        logger.info(f"Database connected: {db.db_path}")
        logger.info(f"Config loaded from: {config.config_dir}")
    except FileNotFoundError as e:
        logger.error(f"{e}")
        logger.error("Run 'python scripts/init_db.py' to create the database.")
        # Allow app to start but endpoints will fail gracefully

    yield

    logger.info("Shutting down...")


app = FastAPI(
    title="Family Calendar Assistant API",
    description="""
    Chat-driven family calendar assistant.

    ## Features

    - **Chat**: Natural-language requests resolved to edit, search or create-preview actions
    - **Email**: Events extracted from forwarded emails
    - **Events**: Preview confirmation and event management

    ## Natural Language Examples

    - "Schedule soccer practice Tuesday at 4pm"
    - "Can you update my dentist appointment"
    - "Edit Maya's soccer practice"
    - "Reschedule soccer practice to Friday 5pm"
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS for frontend access
# In production, replace with specific origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",  # Vite dev server
        "http://localhost:3000",  # Alternative dev port
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(chat_router)
app.include_router(email_router)
app.include_router(events_router)


@app.get("/")
async def root():
    """API root - returns basic info and available endpoints."""
    return {
        "name": "Family Calendar Assistant API",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "chat": "/chat/process",
            "email": "/email/process",
            "events": "/events",
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    try:
        db = get_database()
        # Quick database check
        db.execute_one("SELECT 1")
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        logger.warning(f"Health check failed: {e}")
        return {"status": "unhealthy", "error": "database unavailable"}


# Allow running directly with: python -m backend.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "backend.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
