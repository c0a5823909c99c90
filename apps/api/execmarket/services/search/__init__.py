"""Search pipeline, facets and profile views."""

from .search import search_service
from .search_logic import run_search, get_profile_view

__all__ = ["search_service", "run_search", "get_profile_view"]
