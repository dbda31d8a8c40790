"""Run-level control: one orchestrator per run, one processor per batch."""

from dispfix.pipeline.orchestrator import PipelineOrchestrator
from dispfix.pipeline.processor import BatchProcessor, BatchOutcome

__all__ = [
    "PipelineOrchestrator",
    "BatchProcessor",
    "BatchOutcome",
]
