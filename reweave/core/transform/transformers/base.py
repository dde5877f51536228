"""Transformer base class and supporting dataclasses.

A transformer owns the rewrite logic for one or more task categories.
The engine treats it as opaque: it hands over code plus options and gets
a :class:`TransformResult` back. Everything around that call (snapshots,
validation, scoring, ordering, write consolidation) belongs to the
pipeline and orchestrator.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from ..diff import compute_diff
from ..models import Diff, SourceStack, Task, TransformMetadata, TransformOptions, TransformResult

GENERIC_FRAMEWORK = "*"


# ── Dataclasses ──────────────────────────────────────────────────────


@dataclass
class ComplexityMetrics:
    """Structural complexity of the changed code, when a transformer knows it."""

    cyclomatic_complexity: int = 0
    nesting_depth: int = 0
    scope_changes: int = 0


@dataclass
class TransformerMetadata:
    name: str
    version: str
    categories: List[str]
    frameworks: List[str]
    languages: List[str] = field(default_factory=list)
    description: str = ""

    @property
    def is_generic(self) -> bool:
        return GENERIC_FRAMEWORK in self.frameworks


# ── Abstract Base Class ──────────────────────────────────────────────


class Transformer(ABC):
    """Abstract base for transformers.

    Subclasses declare what they handle through the identity properties
    and implement :meth:`transform`. ``"*"`` in ``supported_frameworks``
    means any source framework.
    """

    # ── Identity ─────────────────────────────────────────────────

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier, e.g. ``"dependency-updater"``."""
        ...

    @property
    @abstractmethod
    def supported_categories(self) -> List[str]:
        """Task categories handled, e.g. ``["dependency"]``."""
        ...

    @property
    @abstractmethod
    def supported_frameworks(self) -> List[str]:
        """Source frameworks handled, e.g. ``["react"]`` or ``["*"]``."""
        ...

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def languages(self) -> List[str]:
        return []

    @property
    def description(self) -> str:
        return ""

    @property
    def metadata(self) -> TransformerMetadata:
        return TransformerMetadata(
            name=self.name,
            version=self.version,
            categories=list(self.supported_categories),
            frameworks=list(self.supported_frameworks),
            languages=list(self.languages),
            description=self.description,
        )

    # ── Transform ────────────────────────────────────────────────

    @abstractmethod
    def transform(
        self,
        code: str,
        options: TransformOptions,
        task: Optional[Task] = None,
    ) -> TransformResult:
        """Rewrite ``code``.

        Args:
            code: Current file content ("" for a file that does not exist yet).
            options: Run options; ``options.file_path`` names the target.
            task: The task being executed, consolidated for dependency tasks.

        Returns:
            Result with ``code`` set on success. Extra files go in
            ``metadata.additional_files``, moves in
            ``metadata.rename_conversions``.
        """
        ...

    # ── Routing ──────────────────────────────────────────────────

    def can_handle(self, task: Task, source_stack: SourceStack) -> bool:
        if task.category not in self.supported_categories:
            return False
        if GENERIC_FRAMEWORK in self.supported_frameworks:
            return True
        return any(fw.lower() == source_stack.signature for fw in self.supported_frameworks)

    # ── Scoring ──────────────────────────────────────────────────

    def calculate_risk_score(
        self,
        result: TransformResult,
        complexity: Optional[ComplexityMetrics] = None,
    ) -> int:
        """Risk 0-100 from change size, complexity, problems and confidence.

        Weights: lines changed up to 30, complexity up to 25, errors up to
        20 plus warnings up to 10, inverse confidence up to 25.
        """
        meta = result.metadata
        score = min(30.0, (meta.lines_added + meta.lines_removed) / 100 * 30)

        if complexity is not None:
            score += (
                min(10, complexity.cyclomatic_complexity)
                + min(10, complexity.nesting_depth * 2)
                + min(5, complexity.scope_changes)
            )

        score += min(20, len(result.errors) * 10)
        score += min(10, len(result.warnings) * 2)

        confidence = meta.confidence_score or 50
        score += (100 - confidence) / 100 * 25

        return max(0, min(100, round(score)))

    # ── Helpers for subclasses ───────────────────────────────────

    def create_base_metadata(
        self,
        files_modified: Optional[List[str]] = None,
        confidence_score: int = 50,
    ) -> TransformMetadata:
        return TransformMetadata(
            transformation_type=self.name,
            files_modified=list(files_modified or []),
            confidence_score=confidence_score,
        )

    def generate_diff(self, original: str, transformed: str) -> Diff:
        return compute_diff(original, transformed)
