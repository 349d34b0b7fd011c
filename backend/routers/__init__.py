"""
API routers for the Family Calendar Assistant backend.

Each router handles a specific concern:
- chat: Natural-language chat messages -> resolved actions
- email: Forwarded emails -> saved events
- events: Preview confirmation and event CRUD
"""

from .chat import router as chat_router
from .email import router as email_router
from .events import router as events_router

__all__ = [
    'chat_router',
    'email_router',
    'events_router',
]
