"""Vector store access for maintenance task embeddings."""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from functools import wraps
from typing import Any, Protocol, TypeVar

from pinecone import Pinecone
from pinecone.exceptions import PineconeException
from pydantic import BaseModel, Field

from src.core.config import Constants, settings
from src.core.errors import StoreError
from src.core.logging import span


logger = logging.getLogger(__name__)

# Type variable for generic retry decorator
T = TypeVar("T")

RETRYABLE_ERRORS = (PineconeException, ConnectionError, TimeoutError)


def with_retry(
    max_retries: int = Constants.STORE_MAX_RETRIES, base_delay: float = Constants.STORE_RETRY_BASE_DELAY
) -> Callable[[Callable[..., Coroutine[Any, Any, T]]], Callable[..., Coroutine[Any, Any, T]]]:
    """Decorator to retry async store calls with exponential backoff.

    Args:
        max_retries: Maximum number of attempts
        base_delay: Base delay in seconds for exponential backoff

    Returns:
        Decorated function that raises StoreError once all attempts fail
    """

    def decorator(func: Callable[..., Coroutine[Any, Any, T]]) -> Callable[..., Coroutine[Any, Any, T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:  # noqa: ANN401
            last_exception: Exception | None = None
            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except RETRYABLE_ERRORS as e:
                    last_exception = e
                    if attempt < max_retries - 1:
                        delay = base_delay * (2**attempt)
                        logger.warning(
                            "Vector store operation failed (attempt %d/%d): %s. Retrying in %.2fs",
                            attempt + 1,
                            max_retries,
                            e,
                            delay,
                        )
                        await asyncio.sleep(delay)
                    else:
                        logger.error(
                            "Vector store operation failed after %d attempts: %s",
                            max_retries,
                            e,
                        )
            msg = f"Vector store unavailable: {last_exception}"
            raise StoreError(msg) from last_exception

        return wrapper

    return decorator


class VectorRecord(BaseModel):
    """A stored vector with its metadata."""

    id: str
    values: list[float] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class VectorMatch(BaseModel):
    """A nearest-neighbour hit returned by a similarity query."""

    id: str
    score: float
    values: list[float] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class VectorStore(Protocol):
    """Operations the engine needs from a vector store."""

    async def query(
        self, *, vector: list[float], top_k: int, filter: dict[str, Any] | None = None
    ) -> list[VectorMatch]: ...

    async def upsert(self, *, records: list[VectorRecord]) -> None: ...

    async def fetch(self, *, ids: list[str]) -> dict[str, VectorRecord]: ...

    async def delete(self, *, ids: list[str]) -> None: ...

    async def list_ids(self, *, prefix: str | None = None) -> list[str]: ...


def clean_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Drop null values, which Pinecone metadata cannot hold."""
    return {key: value for key, value in metadata.items() if value is not None}


class PineconeVectorStore:
    """VectorStore backed by a Pinecone index namespace.

    The Pinecone client is synchronous, so every call runs in a worker thread.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        index_name: str | None = None,
        namespace: str | None = None,
    ) -> None:
        key = api_key or settings.require_credential("pinecone_api_key", "Pinecone")
        self._client = Pinecone(api_key=key)
        self._index_name = index_name or settings.pinecone_index_name
        self._namespace = namespace or settings.pinecone_namespace
        self._index = self._client.Index(self._index_name)
        logger.info(
            "Connected to Pinecone index",
            extra={"index": self._index_name, "namespace": self._namespace},
        )

    @with_retry()
    async def query(
        self, *, vector: list[float], top_k: int, filter: dict[str, Any] | None = None
    ) -> list[VectorMatch]:
        with span("vector_store.query"):
            response = await asyncio.to_thread(
                self._index.query,
                vector=vector,
                top_k=top_k,
                filter=filter,
                namespace=self._namespace,
                include_metadata=True,
                include_values=True,
            )
            return [
                VectorMatch(
                    id=match.id,
                    score=match.score,
                    values=list(match.values) if match.values else None,
                    metadata=dict(match.metadata or {}),
                )
                for match in response.matches
            ]

    @with_retry()
    async def upsert(self, *, records: list[VectorRecord]) -> None:
        if not records:
            return
        with span("vector_store.upsert"):
            vectors = [
                {"id": record.id, "values": record.values, "metadata": clean_metadata(record.metadata)}
                for record in records
            ]
            await asyncio.to_thread(self._index.upsert, vectors=vectors, namespace=self._namespace)
            logger.debug("Upserted vectors", extra={"count": len(vectors)})

    @with_retry()
    async def fetch(self, *, ids: list[str]) -> dict[str, VectorRecord]:
        if not ids:
            return {}
        with span("vector_store.fetch"):
            response = await asyncio.to_thread(self._index.fetch, ids=ids, namespace=self._namespace)
            return {
                vector_id: VectorRecord(
                    id=vector_id,
                    values=list(vector.values or []),
                    metadata=dict(vector.metadata or {}),
                )
                for vector_id, vector in response.vectors.items()
            }

    @with_retry()
    async def delete(self, *, ids: list[str]) -> None:
        if not ids:
            return
        with span("vector_store.delete"):
            await asyncio.to_thread(self._index.delete, ids=ids, namespace=self._namespace)

    @with_retry()
    async def list_ids(self, *, prefix: str | None = None) -> list[str]:
        with span("vector_store.list_ids"):
            ids: list[str] = []
            token: str | None = None
            while True:
                kwargs: dict[str, Any] = {
                    "prefix": prefix,
                    "limit": Constants.LIST_PAGE_SIZE,
                    "namespace": self._namespace,
                }
                if token:
                    kwargs["pagination_token"] = token
                page = await asyncio.to_thread(self._index.list_paginated, **kwargs)
                ids.extend(item.id for item in page.vectors)
                token = page.pagination.next if page.pagination else None
                if not token:
                    break
            logger.info("Listed vector ids", extra={"count": len(ids), "prefix": prefix})
            return ids


async def fetch_all(store: VectorStore, *, prefix: str | None = None) -> list[VectorRecord]:
    """Load every stored vector under ``prefix``, fetching ids in batches."""
    ids = await store.list_ids(prefix=prefix if prefix is not None else settings.task_id_prefix)
    records: list[VectorRecord] = []
    for start in range(0, len(ids), Constants.FETCH_BATCH_SIZE):
        batch = ids[start : start + Constants.FETCH_BATCH_SIZE]
        fetched = await store.fetch(ids=batch)
        records.extend(fetched[vector_id] for vector_id in batch if vector_id in fetched)
    return records


async def update_metadata(store: VectorStore, vector_id: str, patch: dict[str, Any]) -> VectorRecord:
    """Merge ``patch`` into a stored vector's metadata, keeping its embedding.

    Raises:
        StoreError: If the vector does not exist
    """
    with span("vector_store.update_metadata"):
        existing = (await store.fetch(ids=[vector_id])).get(vector_id)
        if existing is None:
            msg = f"Task {vector_id} not found in vector store"
            raise StoreError(msg)

        merged = {**existing.metadata, **patch}
        updated = VectorRecord(id=vector_id, values=existing.values, metadata=clean_metadata(merged))
        await store.upsert(records=[updated])

        logger.info(
            "Updated task metadata",
            extra={"task_id": vector_id, "fields": sorted(patch.keys())},
        )
        return updated
