"""maintenance-dedup - duplicate detection and review for extracted maintenance tasks."""

import asyncio
import logging
import sys

from src.core.config import settings
from src.core.db_client import close_connection, init_db
from src.core.logging import configure_logfire, log_with_context
from src.core.vector_store import PineconeVectorStore
from src.services import execution_service, review_service


logger = logging.getLogger(__name__)


def validate_startup_configuration() -> None:
    """Validate required credentials, failing fast with a clear message.

    Raises:
        SystemExit: If a required credential is missing
    """
    logger.info("startup_validation_begin")
    try:
        settings.require_credential("pinecone_api_key", "Pinecone")
    except ValueError as e:
        logger.error("startup_validation_failed", extra={"error": str(e)})
        print(f"\n❌ Startup validation failed: {e}\n", file=sys.stderr)  # noqa: T201
        sys.exit(1)
    logger.info("startup_validation_complete", extra={"status": "ok"})


async def startup() -> PineconeVectorStore:
    """Configure logging, validate credentials and open the ledger and vector store."""
    # Configure logging first so validation logs are captured
    configure_logfire()
    validate_startup_configuration()

    await init_db()
    logger.info("Review ledger initialized", extra={"db_path": settings.sqlite_db_path})

    return PineconeVectorStore()


async def run_executor() -> execution_service.ExecutionReport:
    """Apply every reviewed, unexecuted decision once and report the outcome."""
    store = await startup()
    try:
        report = await execution_service.execute_pending(store=store)
        stats = await review_service.get_review_stats()
        log_with_context(
            logger,
            "info",
            "Executor run finished",
            executed=report.executed,
            failed=report.failed,
            pending_reviews=stats.get("pending", 0),
        )
        return report
    finally:
        await close_connection()


def main() -> None:
    """Console entry point."""
    report = asyncio.run(run_executor())
    sys.exit(1 if report.failed else 0)


if __name__ == "__main__":
    main()
