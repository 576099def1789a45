"""Retrieval orchestration and batch execution."""

from pygnss_fetch.processing.retrieval import (
    OutcomeStatus,
    RetrievalOrchestrator,
    RetrievalOutcome,
)
from pygnss_fetch.processing.batch import (
    BatchDriver,
    BatchReport,
    ProductRequest,
    default_product_dir,
    requests_from_settings,
)

__all__ = [
    # Orchestrator
    "OutcomeStatus",
    "RetrievalOrchestrator",
    "RetrievalOutcome",
    # Batch
    "BatchDriver",
    "BatchReport",
    "ProductRequest",
    "default_product_dir",
    "requests_from_settings",
]
