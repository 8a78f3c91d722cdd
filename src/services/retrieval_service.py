"""Candidate retrieval: nearest stored tasks within one scope."""

import logging
from typing import Any

from src.core.config import settings
from src.core.errors import DataError
from src.core.logging import span
from src.core.vector_store import VectorStore
from src.domain.task import HIDDEN_TASK_STATUSES, MaintenanceTask, RetrievedMatch


logger = logging.getLogger(__name__)


def scope_filter(scope_id: str) -> dict[str, Any]:
    """Metadata filter restricting a query to live tasks of one scope."""
    return {
        "scope_id": {"$eq": scope_id},
        "review_status": {"$nin": sorted(status.value for status in HIDDEN_TASK_STATUSES)},
    }


async def retrieve(
    *,
    embedding: list[float] | None,
    scope_id: str,
    store: VectorStore,
    top_k: int | None = None,
    exclude_id: str | None = None,
) -> list[RetrievedMatch]:
    """Return the most similar stored tasks in ``scope_id``, best first.

    Task type is deliberately not part of the filter.

    Raises:
        DataError: If the embedding or scope is missing
    """
    with span("retrieval_service.retrieve"):
        if not embedding:
            msg = "Cannot retrieve candidates without an embedding"
            raise DataError(msg)
        if not scope_id:
            msg = "Cannot retrieve candidates without a scope_id"
            raise DataError(msg)

        k = top_k if top_k is not None else settings.retrieval_top_k
        hits = await store.query(vector=embedding, top_k=k, filter=scope_filter(scope_id))

        matches = []
        for hit in hits:
            if hit.id == exclude_id:
                continue
            task = MaintenanceTask.from_vector(hit.id, hit.values, hit.metadata)
            # Guard against stores that ignore metadata filters
            if task.scope_id != scope_id or task.review_status in HIDDEN_TASK_STATUSES:
                logger.warning(
                    "Dropped out-of-scope candidate",
                    extra={"task_id": hit.id, "scope_id": scope_id, "candidate_scope": task.scope_id},
                )
                continue
            matches.append(RetrievedMatch(task=task, score=hit.score))

        # sorted() is stable, so equal scores keep store order
        matches = sorted(matches, key=lambda m: m.score, reverse=True)

        logger.debug(
            "Retrieved candidates",
            extra={"scope_id": scope_id, "requested": k, "returned": len(matches)},
        )
        return matches
