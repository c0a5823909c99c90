from .session import get_db, engine, Base, async_session
from . import models  # noqa: F401

__all__ = ["get_db", "engine", "Base", "async_session", "models"]
