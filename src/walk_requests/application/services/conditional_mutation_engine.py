"""Atomic predicate-plus-mutation execution against the repository."""

from __future__ import annotations

from walk_requests.domain.entities import WalkRequest
from walk_requests.domain.ports import WalkRequestRepository
from walk_requests.domain.queries import WalkRequestQuery
from walk_requests.domain.updates import WalkRequestUpdate


class ConditionalMutationEngine:
    """Submit guard and mutation together; never read before writing.

    Two callers racing on the same record both submit their guard; the store
    evaluates each guard against the state left by the other, so at most one
    of two mutually exclusive guards can match.
    """

    def __init__(self, repository: WalkRequestRepository) -> None:
        self._repository = repository

    async def apply_one(
        self,
        query: WalkRequestQuery,
        update: WalkRequestUpdate,
    ) -> WalkRequest | None:
        """Modify at most one match; None means nothing matched."""

        query.validate()
        update.validate()
        return await self._repository.update_walk_request_by_query(query, update)

    async def apply_many(self, query: WalkRequestQuery, update: WalkRequestUpdate) -> int:
        """Modify every match and return the affected count."""

        query.validate()
        update.validate()
        return await self._repository.update_walk_requests_by_query(query, update)


__all__ = ["ConditionalMutationEngine"]
