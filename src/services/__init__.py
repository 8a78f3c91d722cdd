from src.services import (
    analysis_service,
    classifier_service,
    execution_service,
    frequency_service,
    grouping_service,
    ingestion_service,
    retrieval_service,
    review_service,
    task_type_service,
)


__all__ = [
    "analysis_service",
    "classifier_service",
    "execution_service",
    "frequency_service",
    "grouping_service",
    "ingestion_service",
    "retrieval_service",
    "review_service",
    "task_type_service",
]
