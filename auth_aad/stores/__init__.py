"""Session and user store contracts with in-memory implementations."""

from .session_store import SessionStore as SessionStore
from .session_store import MemorySessionStore as MemorySessionStore
from .user_store import UserStore as UserStore
from .user_store import MemoryUserStore as MemoryUserStore
