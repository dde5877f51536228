"""Transformation engine: diff model, validator, pipeline and orchestrator."""

from .diff import compute_diff, line_diff, rename_diff, stats, unified_diff, with_context
from .fetcher import FileFetcher, LocalFileFetcher
from .models import (
    Diff,
    MigrationPlan,
    OrchestrationResult,
    Phase,
    RepositoryRef,
    SourceStack,
    Summary,
    Task,
    TaskResult,
    TransformMetadata,
    TransformOptions,
    TransformResult,
)
from .orchestrator import TransformationOrchestrator
from .pipeline import TransformationPipeline
from .progress import LoggingProgressSink, ProgressEmitter, ProgressSink
from .transformers import Transformer, TransformerRegistry
from .validator import Validator, detect_language

__all__ = [
    "Diff",
    "FileFetcher",
    "LocalFileFetcher",
    "LoggingProgressSink",
    "MigrationPlan",
    "OrchestrationResult",
    "Phase",
    "ProgressEmitter",
    "ProgressSink",
    "RepositoryRef",
    "SourceStack",
    "Summary",
    "Task",
    "TaskResult",
    "TransformMetadata",
    "TransformOptions",
    "TransformResult",
    "TransformationOrchestrator",
    "TransformationPipeline",
    "Transformer",
    "TransformerRegistry",
    "Validator",
    "compute_diff",
    "detect_language",
    "line_diff",
    "rename_diff",
    "stats",
    "unified_diff",
    "with_context",
]
