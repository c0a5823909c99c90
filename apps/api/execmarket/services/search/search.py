"""Search service facade.

Business logic is split across:
- filter codec / compiler: execmarket.services.search.filter_codec, .compiler
- store access: execmarket.services.search.repository
- facets: execmarket.services.search.facets
- search pipeline and profile view: execmarket.services.search.search_logic
- saved searches and history: execmarket.services.search.saved
- disclosure (transform, unlock): execmarket.services.disclosure
"""

from typing import Any, Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from execmarket.domain import Viewer
from execmarket.schemas import (
    ProfileView,
    SavedSearchCreate,
    SavedSearchResponse,
    SavedSearchUpdate,
    SearchHistoryResponse,
    SearchResponse,
)
from execmarket.services.disclosure import UnlockResult, ensure_unlocked

from . import saved
from .search_logic import get_profile_view, run_search


class SearchService:
    """Facade for search operations."""

    @staticmethod
    async def search(db: AsyncSession, viewer: Viewer, raw: Mapping[str, Any] | None) -> SearchResponse:
        return await run_search(db, viewer, raw)

    @staticmethod
    async def get_profile(db: AsyncSession, viewer: Viewer, candidate_id: str) -> ProfileView:
        return await get_profile_view(db, viewer, candidate_id)

    @staticmethod
    async def unlock(db: AsyncSession, viewer: Viewer, candidate_id: str, payment_ref: str) -> UnlockResult:
        return await ensure_unlocked(db, viewer, candidate_id, payment_ref)

    @staticmethod
    async def list_saved_searches(db: AsyncSession, viewer: Viewer) -> list[SavedSearchResponse]:
        return await saved.list_saved_searches(db, viewer)

    @staticmethod
    async def create_saved_search(db: AsyncSession, viewer: Viewer, body: SavedSearchCreate) -> SavedSearchResponse:
        return await saved.create_saved_search(db, viewer, body)

    @staticmethod
    async def update_saved_search(
        db: AsyncSession, viewer: Viewer, saved_id: str, body: SavedSearchUpdate
    ) -> SavedSearchResponse:
        return await saved.update_saved_search(db, viewer, saved_id, body)

    @staticmethod
    async def delete_saved_search(db: AsyncSession, viewer: Viewer, saved_id: str) -> None:
        """Soft delete; NotFoundError when the search is not the viewer company's."""
        await saved.delete_saved_search(db, viewer, saved_id)

    @staticmethod
    async def run_saved_search(db: AsyncSession, viewer: Viewer, saved_id: str, **paging) -> SearchResponse:
        return await saved.run_saved_search(db, viewer, saved_id, **paging)

    @staticmethod
    async def list_search_history(db: AsyncSession, viewer: Viewer, **params) -> SearchHistoryResponse:
        return await saved.get_search_history(db, viewer, **params)

    @staticmethod
    async def clear_search_history(db: AsyncSession, viewer: Viewer, days: int | None = None) -> int:
        return await saved.clear_search_history(db, viewer, days)


search_service = SearchService()
