"""Pipeline services: reader, resolvers, batching and the orchestrator."""

from transfer_pipeline.services.batching import BatchAccumulator
from transfer_pipeline.services.lookup import LookupEnricher
from transfer_pipeline.services.orchestrator import TransferOrchestrator
from transfer_pipeline.services.source_reader import PaginatedSourceReader
from transfer_pipeline.services.xref import CrossReferenceResolver

__all__ = [
    "BatchAccumulator",
    "CrossReferenceResolver",
    "LookupEnricher",
    "PaginatedSourceReader",
    "TransferOrchestrator",
]
