from .me import me_service
from .search import search_service

__all__ = ["me_service", "search_service"]
