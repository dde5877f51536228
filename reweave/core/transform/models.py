"""Data contracts for the transformation engine.

Plan inputs, transformer results, diffs, validation outcomes and run
results. Pure data containers; kept as dataclasses (not ORM models) so
they can travel between the orchestrator, the API and the CLI.

Optional fields that distinguish "absent" from "empty" (``additional_files``,
``rename_conversions``) default to ``None``, never to an empty container.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..constants import RISK_LOW
from ..errors import PlanError


# ── Plan inputs ──────────────────────────────────────────────────────


@dataclass
class SourceStack:
    """Technology stack a plan migrates from (or to)."""

    framework: str
    version: str = ""
    language: str = ""
    dependencies: Dict[str, str] = field(default_factory=dict)
    build_tool: Optional[str] = None
    package_manager: Optional[str] = None

    @property
    def signature(self) -> str:
        """Key used for transformer lookups, e.g. ``"react"``."""
        return self.framework.strip().lower()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SourceStack":
        return cls(
            framework=data.get("framework", ""),
            version=data.get("version", ""),
            language=data.get("language", ""),
            dependencies=dict(data.get("dependencies") or {}),
            build_tool=data.get("build_tool"),
            package_manager=data.get("package_manager"),
        )


@dataclass
class Task:
    """Smallest unit of migration work."""

    id: str
    category: str
    name: str = ""
    description: str = ""
    affected_files: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)  # task ids
    risk_level: str = RISK_LOW
    breaking_changes: List[str] = field(default_factory=list)
    type: str = "automated"  # "automated" | "manual" | "review"
    estimated_minutes: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        # Planner output nests category/description under "pattern"
        pattern = data.get("pattern") or {}
        task_id = data.get("id")
        category = data.get("category") or pattern.get("category")
        if not task_id or not category:
            raise PlanError(f"Task requires 'id' and 'category': {data!r}")

        description = data.get("description") or ""
        pattern_description = pattern.get("description") or ""
        if pattern_description and pattern_description not in description:
            description = f"{description}\n{pattern_description}".strip()

        return cls(
            id=str(task_id),
            category=category,
            name=data.get("name", ""),
            description=description,
            affected_files=list(data.get("affected_files") or []),
            dependencies=list(data.get("dependencies") or []),
            risk_level=data.get("risk_level", RISK_LOW),
            breaking_changes=list(data.get("breaking_changes") or []),
            type=data.get("type", "automated"),
            estimated_minutes=int(data.get("estimated_minutes") or 0),
        )


@dataclass
class Phase:
    """Ordered group of tasks."""

    id: str
    name: str
    order: int
    tasks: List[Task] = field(default_factory=list)
    description: str = ""
    risk_level: str = RISK_LOW

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Phase":
        if "id" not in data or "order" not in data:
            raise PlanError(f"Phase requires 'id' and 'order': {data.get('name', data)!r}")
        return cls(
            id=str(data["id"]),
            name=data.get("name", f"Phase {data['order']}"),
            order=int(data["order"]),
            tasks=[Task.from_dict(t) for t in data.get("tasks") or []],
            description=data.get("description", ""),
            risk_level=data.get("risk_level", RISK_LOW),
        )


@dataclass
class MigrationPlan:
    """Immutable input describing the whole migration."""

    id: str
    source_stack: SourceStack
    phases: List[Phase] = field(default_factory=list)
    target_stack: Optional[SourceStack] = None

    def all_tasks(self) -> List[Task]:
        return [task for phase in self.phases for task in phase.tasks]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationPlan":
        """Build a plan from its JSON/YAML form.

        Raises:
            PlanError: If required fields are missing or a task id is
                declared in more than one phase.
        """
        if not isinstance(data, dict):
            raise PlanError("Migration plan must be a mapping")
        if "source_stack" not in data:
            raise PlanError("Migration plan requires 'source_stack'")

        phases = [Phase.from_dict(p) for p in data.get("phases") or []]

        seen: Dict[str, str] = {}
        for phase in phases:
            for task in phase.tasks:
                if task.id in seen:
                    raise PlanError(
                        f"Task {task.id} appears in phases {seen[task.id]} and {phase.id}"
                    )
                seen[task.id] = phase.id

        target = data.get("target_stack")
        return cls(
            id=str(data.get("id", "")),
            source_stack=SourceStack.from_dict(data["source_stack"]),
            phases=phases,
            target_stack=SourceStack.from_dict(target) if target else None,
        )


@dataclass
class RepositoryRef:
    """Identifies the repository a run operates on."""

    owner: str
    name: str
    branch: Optional[str] = None
    path: Optional[str] = None  # local checkout, when fetched from disk

    @property
    def key(self) -> str:
        """Lock key, e.g. ``"acme/shop"``."""
        return f"{self.owner}/{self.name}"


@dataclass
class TransformOptions:
    """Options passed through to transformers and the pipeline.

    ``context_lines`` sets the context of the unified diff the engine
    computes. ``aggressive``, ``skip_tests`` and ``dry_run`` are hints for the
    transformer only; the engine never reads them. A run always returns
    new content in memory and never writes to the repository, so
    ``dry_run`` changes nothing unless a transformer acts on it.

    ``timeout`` bounds the wait for ``Transformer.transform`` inside the
    pipeline. The call cannot be interrupted: on timeout its worker
    thread is abandoned and keeps running until the transformer returns.
    """

    aggressive: bool = False
    skip_tests: bool = False
    preserve_formatting: bool = True
    dry_run: bool = False
    context_lines: int = 3
    timeout: Optional[float] = None
    file_path: Optional[str] = None
    language: Optional[str] = None
    project_path: Optional[str] = None
    use_pipeline: bool = True
    repository_files: Optional[List[Tuple[str, str]]] = None


# ── Diffs ────────────────────────────────────────────────────────────


@dataclass
class DiffLine:
    """One rendered line of a visual diff."""

    type: str  # "added" | "removed" | "unchanged"
    line_number: int
    content: str
    old_line_number: Optional[int] = None
    new_line_number: Optional[int] = None


@dataclass
class CharacterDiff:
    """A run of characters that was added, removed or kept."""

    value: str
    added: bool = False
    removed: bool = False


@dataclass
class Diff:
    """Three representations of the change between two strings."""

    original: str
    transformed: str
    unified: str
    visual: List[DiffLine] = field(default_factory=list)
    character_level: List[CharacterDiff] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DiffStats:
    added: int
    removed: int
    unchanged: int
    total: int


# ── Validation ───────────────────────────────────────────────────────


@dataclass
class ValidationError:
    """A single validation finding."""

    message: str
    severity: str = "error"  # "error" | "warning"
    line: Optional[int] = None
    column: Optional[int] = None
    code: Optional[str] = None
    suggestion: Optional[str] = None


@dataclass
class ValidationResult:
    is_valid: bool = True
    syntax_valid: bool = True
    semantic_valid: bool = True
    errors: List[ValidationError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    build_valid: Optional[bool] = None
    tests_valid: Optional[bool] = None


# ── Transformer results ──────────────────────────────────────────────


@dataclass
class TransformError:
    """Structured error reported by a transformer or the pipeline."""

    message: str
    code: str = "TRANSFORM_ERROR"
    severity: str = "error"
    suggestions: List[str] = field(default_factory=list)
    stage: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None


@dataclass
class RenameConversion:
    """A file that must move to a new path, content unchanged."""

    original_path: str
    new_path: str
    content: str


@dataclass
class FileStructureChange:
    action: str  # "move" | "create" | "rename" | "delete"
    original_path: str
    new_path: Optional[str] = None


@dataclass
class TransformMetadata:
    transformation_type: str = ""
    files_modified: List[str] = field(default_factory=list)
    lines_added: int = 0
    lines_removed: int = 0
    confidence_score: int = 0
    risk_score: int = 0
    requires_manual_review: bool = False
    estimated_time_saved: str = "0 minutes"
    transformations_applied: List[str] = field(default_factory=list)
    additional_files: Optional[Dict[str, str]] = None
    rename_conversions: Optional[List[RenameConversion]] = None
    file_structure_change: Optional[FileStructureChange] = None
    failed_stage: Optional[str] = None
    notes: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)
    duration_ms: int = 0


@dataclass
class TransformResult:
    """What a transformer (or the pipeline around it) produces."""

    success: bool
    code: Optional[str] = None
    diff: Optional[Diff] = None
    metadata: TransformMetadata = field(default_factory=TransformMetadata)
    errors: List[TransformError] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def first_error(self) -> Optional[str]:
        return self.errors[0].message if self.errors else None


# ── Run results ──────────────────────────────────────────────────────


@dataclass
class TaskResult:
    """Outcome of one task against one file (or of a skipped task)."""

    task_id: str
    success: bool
    file_path: Optional[str] = None
    skipped: bool = False
    result: Optional[TransformResult] = None
    error: Optional[str] = None
    duration_ms: int = 0
    linked_path: Optional[str] = None  # other half of a rename pair


@dataclass
class Summary:
    files_changed: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    tasks_completed: int = 0
    tasks_failed: int = 0
    tasks_skipped: int = 0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    manual_review_needed: List[str] = field(default_factory=list)
    estimated_time_saved: str = "0 minutes"
    total_duration: int = 0  # milliseconds

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class OrchestrationResult:
    job_id: str
    success: bool
    transformed_files: Dict[str, str] = field(default_factory=dict)
    results: List[TaskResult] = field(default_factory=list)
    summary: Summary = field(default_factory=Summary)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ── Fetching ─────────────────────────────────────────────────────────


@dataclass
class RepositoryFile:
    path: str
    content: str
    size: int = 0


@dataclass
class FetchResult:
    files: List[RepositoryFile] = field(default_factory=list)
    total_files: int = 0
    total_size: int = 0
    skipped_files: List[str] = field(default_factory=list)
