"""Top-level coordinator for migration-plan execution.

Runs the selected tasks of a plan against one repository snapshot:

1. Fetch every file once into a working map (path -> content).
2. Keep only the selected tasks, grouped by phase, phases by ``order``.
3. Per phase: consolidated dependency updates first (one transformer call
   per manifest), then every other task in declared order.
4. A global pass renames files whose extension cannot hold the markup they
   now contain (``.js`` -> ``.jsx`` by default).
5. Summarize, then keep only the last result per file path.

Task- and file-level failures are recorded and never stop sibling tasks.
Anything that escapes those boundaries (a failed fetch, for instance) is
fatal: an ``error`` progress event is emitted and the exception propagates.

Usage:
    orchestrator = TransformationOrchestrator(registry, LocalFileFetcher())
    result = orchestrator.execute_orchestration(job_id, repo, plan, {"t1", "t2"})
"""

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from ..config import ReweaveSettings, get_settings
from ..constants import CATEGORY_DEPENDENCY
from ..errors import (
    MissingFileError,
    MissingTransformerError,
    RepositoryBusyError,
    TransformationError,
)
from ..locks import RepositoryLock
from . import heuristics
from .diff import compute_diff, rename_diff, stats
from .fetcher import FileFetcher
from .models import (
    FetchResult,
    FileStructureChange,
    MigrationPlan,
    OrchestrationResult,
    Phase,
    RenameConversion,
    RepositoryRef,
    Summary,
    Task,
    TaskResult,
    TransformMetadata,
    TransformOptions,
    TransformResult,
)
from .pipeline import TransformationPipeline
from .progress import ProgressSink
from .transformers import Transformer, TransformerRegistry

logger = logging.getLogger(__name__)

CONSOLIDATED_TASK_ID = "consolidated-dependencies"
MARKUP_RENAME_TYPE = "markup-extension-rename"


@dataclass
class _RunState:
    """Mutable state owned by one ``execute`` call."""

    job_id: str
    plan: MigrationPlan
    options: TransformOptions
    contents: Dict[str, str]
    transformed: Dict[str, str] = field(default_factory=dict)
    results: List[TaskResult] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    last_writer: Dict[str, str] = field(default_factory=dict)
    phase_writers: Dict[str, str] = field(default_factory=dict)
    renamed: Set[str] = field(default_factory=set)
    current_phase: Optional[Phase] = None


@dataclass
class _Checkpoint:
    """Copy of the write state, taken before a result is applied."""

    contents: Dict[str, str]
    transformed: Dict[str, str]
    last_writer: Dict[str, str]
    phase_writers: Dict[str, str]
    renamed: Set[str]
    result_count: int
    warning_count: int

    @classmethod
    def take(cls, state: _RunState) -> "_Checkpoint":
        return cls(
            contents=dict(state.contents),
            transformed=dict(state.transformed),
            last_writer=dict(state.last_writer),
            phase_writers=dict(state.phase_writers),
            renamed=set(state.renamed),
            result_count=len(state.results),
            warning_count=len(state.warnings),
        )

    def restore(self, state: _RunState) -> None:
        state.contents = self.contents
        state.transformed = self.transformed
        state.last_writer = self.last_writer
        state.phase_writers = self.phase_writers
        state.renamed = self.renamed
        del state.results[self.result_count:]
        del state.warnings[self.warning_count:]


class TransformationOrchestrator:
    """Sequences phases and tasks and owns write consolidation."""

    def __init__(
        self,
        registry: TransformerRegistry,
        fetcher: FileFetcher,
        progress: Optional[ProgressSink] = None,
        lock: Optional[RepositoryLock] = None,
        pipeline: Optional[TransformationPipeline] = None,
        settings: Optional[ReweaveSettings] = None,
    ):
        self.registry = registry
        self.fetcher = fetcher
        self.progress = progress
        self.settings = settings or get_settings()
        self.lock = lock or RepositoryLock(ttl_seconds=self.settings.lock_ttl_seconds)
        self.pipeline = pipeline or TransformationPipeline()

    # ── Public surface ───────────────────────────────────────────────

    def execute_orchestration(
        self,
        job_id: str,
        repo: RepositoryRef,
        plan: MigrationPlan,
        selected_task_ids: Iterable[str],
        options: Optional[TransformOptions] = None,
    ) -> OrchestrationResult:
        """Run :meth:`execute` while holding the repository lock.

        Raises:
            RepositoryBusyError: If another run holds the lock for ``repo``.
        """
        if not self.lock.acquire(repo.key):
            raise RepositoryBusyError(repo.key)
        try:
            return self.execute(job_id, repo, plan, selected_task_ids, options)
        finally:
            self.lock.release(repo.key)

    def execute(
        self,
        job_id: str,
        repo: RepositoryRef,
        plan: MigrationPlan,
        selected_task_ids: Iterable[str],
        options: Optional[TransformOptions] = None,
    ) -> OrchestrationResult:
        """Execute the selected tasks of ``plan`` against ``repo``."""
        start_time = time.time()
        options = options or TransformOptions(
            use_pipeline=self.settings.use_pipeline,
            preserve_formatting=self.settings.preserve_formatting,
        )

        try:
            self._emit(job_id, f"Fetching repository files for {repo.key}...")
            fetched = self.fetcher.fetch(repo, repo.branch)
            self._report_fetch(job_id, fetched)

            selected = self._select_tasks(plan, set(selected_task_ids))
            if not selected:
                result = OrchestrationResult(job_id=job_id, success=True)
                self._complete(job_id, "No valid tasks selected", result)
                return result

            phases = self._group_by_phase(plan, selected)
            self._emit(
                job_id,
                f"Found {len(selected)} tasks in {len(phases)} phases",
                {"tasks": len(selected), "phases": len(phases)},
            )

            state = _RunState(
                job_id=job_id,
                plan=plan,
                options=options,
                contents={f.path: f.content for f in fetched.files},
            )

            for phase, tasks in phases:
                self._run_phase(state, phase, tasks)

            self._rename_markup_files(state)

            summary = self.calculate_summary(
                state.results,
                state.transformed,
                int((time.time() - start_time) * 1000),
                extra_warnings=state.warnings,
            )
            result = OrchestrationResult(
                job_id=job_id,
                success=summary.tasks_failed == 0,
                transformed_files=state.transformed,
                results=self.deduplicate_results(state.results),
                summary=summary,
            )
            self._report_summary(job_id, summary)
            self._complete(job_id, "Transformation complete", result)
            return result

        except Exception as e:
            logger.error(f"Job {job_id} failed: {e}", exc_info=True)
            self._error(job_id, f"Transformation failed: {e}", e)
            raise

    # ── Selection and grouping ───────────────────────────────────────

    @staticmethod
    def _select_tasks(plan: MigrationPlan, selected_ids: Set[str]) -> List[Task]:
        tasks = [task for task in plan.all_tasks() if task.id in selected_ids]
        unknown = selected_ids - {task.id for task in tasks}
        if unknown:
            logger.warning(f"Ignoring unknown task ids: {sorted(unknown)}")
        return tasks

    @staticmethod
    def _group_by_phase(plan: MigrationPlan, tasks: List[Task]) -> List[Tuple[Phase, List[Task]]]:
        """Selected tasks under their owning phase, phases in ascending order."""
        wanted = {task.id for task in tasks}
        grouped = []
        for phase in plan.phases:
            phase_tasks = [task for task in phase.tasks if task.id in wanted]
            if phase_tasks:
                grouped.append((phase, phase_tasks))
        # sorted() is stable, so equal orders keep plan order
        return sorted(grouped, key=lambda item: item[0].order)

    # ── Phase execution ──────────────────────────────────────────────

    def _run_phase(self, state: _RunState, phase: Phase, tasks: List[Task]) -> None:
        state.current_phase = phase
        state.phase_writers = {}
        self._emit(state.job_id, phase.name, {"phase_id": phase.id, "order": phase.order})
        if phase.description:
            self._emit(state.job_id, phase.description)

        dependency_tasks = [t for t in tasks if t.category == CATEGORY_DEPENDENCY]
        if dependency_tasks:
            self._run_consolidated_dependencies(state, dependency_tasks)

        for task in tasks:
            if task.category != CATEGORY_DEPENDENCY:
                self._run_task(state, task)

        self._emit(state.job_id, f"{phase.name} complete", {"phase_id": phase.id})

    def _run_task(self, state: _RunState, task: Task) -> None:
        """Run one task over each of its target files."""
        started = time.time()
        self._emit(state.job_id, task.name or task.id, {"task_id": task.id})

        try:
            transformer = self._resolve(task, state.plan)
        except MissingTransformerError as e:
            self._record_skipped(state, task, e, started)
            return
        except Exception as e:
            logger.error(f"Task {task.id} failed before transforming: {e}", exc_info=True)
            state.results.append(TaskResult(
                task_id=task.id, success=False, error=str(e), duration_ms=_elapsed_ms(started)
            ))
            return

        self._emit(state.job_id, f"Using transformer: {transformer.name}", {"task_id": task.id})

        failures = []
        for path in self._target_paths(task):
            if not self._run_file(state, transformer, task, path, started):
                failures.append(path)

        if failures:
            self._emit(state.job_id, f"Task {task.id} completed with errors: {', '.join(failures)}")
        else:
            self._emit(state.job_id, f"Task {task.id} completed successfully")

    def _run_file(
        self,
        state: _RunState,
        transformer: Transformer,
        task: Task,
        path: str,
        started: float,
    ) -> bool:
        """Transform one file for one task. Returns True on success."""
        creatable = task.category in self.settings.creatable_categories
        if path not in state.contents and not creatable:
            error = MissingFileError(path)
            self._emit(state.job_id, str(error), {"task_id": task.id, "file_path": path})
            state.results.append(TaskResult(
                task_id=task.id,
                file_path=path,
                success=False,
                error=str(error),
                duration_ms=_elapsed_ms(started),
            ))
            return False

        original = state.contents.get(path, "")
        verb = "Transforming" if path in state.contents else "Creating"
        self._emit(state.job_id, f"{verb} {path}...", {"task_id": task.id, "file_path": path})

        options = self._options_for(state, task, path)
        try:
            result = self._invoke(transformer, original, options, task)
        except Exception as e:
            logger.error(f"{transformer.name} raised on {path}: {e}", exc_info=True)
            self._emit(state.job_id, f"{path} error: {e}", {"task_id": task.id, "file_path": path})
            state.results.append(TaskResult(
                task_id=task.id,
                file_path=path,
                success=False,
                error=str(e),
                duration_ms=_elapsed_ms(started),
            ))
            return False

        if not result.success or result.code is None:
            error = result.first_error or "Transformation failed"
            self._emit(state.job_id, f"{path} failed: {error}", {"task_id": task.id, "file_path": path})
            state.results.append(TaskResult(
                task_id=task.id,
                file_path=path,
                success=False,
                result=result,
                error=error,
                duration_ms=_elapsed_ms(started),
            ))
            return False

        checkpoint = _Checkpoint.take(state)
        try:
            self._apply_success(state, task, path, original, result, started)
        except Exception as e:
            checkpoint.restore(state)
            error = TransformationError(f"Could not apply output of {transformer.name} to {path}: {e}")
            logger.error(str(error), exc_info=True)
            self._emit(state.job_id, f"{path} error: {error}", {"task_id": task.id, "file_path": path})
            state.results.append(TaskResult(
                task_id=task.id,
                file_path=path,
                success=False,
                result=result,
                error=str(error),
                duration_ms=_elapsed_ms(started),
            ))
            return False
        return True

    def _run_consolidated_dependencies(self, state: _RunState, tasks: List[Task]) -> None:
        """One transformer call per distinct manifest for the phase's dependency tasks."""
        groups: Dict[str, List[Task]] = {}
        repo_paths = list(state.contents)
        for task in tasks:
            manifests = [
                p for p in task.affected_files
                if heuristics.is_manifest(p, self.settings.dependency_manifests)
            ]
            if not manifests:
                manifests = [heuristics.resolve_manifest(
                    [], repo_paths, self.settings.dependency_manifests
                )]
            for manifest in dict.fromkeys(manifests):
                groups.setdefault(manifest, []).append(task)

        for manifest, group in groups.items():
            self._run_dependency_group(state, manifest, group)

    def _run_dependency_group(self, state: _RunState, manifest: str, tasks: List[Task]) -> None:
        started = time.time()
        consolidated = self.consolidate_dependency_tasks(tasks, manifest)
        packages = heuristics.extract_packages(consolidated.description)
        self._emit(
            state.job_id,
            f"Updating {len(packages)} dependencies in {manifest}...",
            {"task_ids": [t.id for t in tasks], "file_path": manifest},
        )

        def record(**kwargs) -> None:
            for task in tasks:
                state.results.append(TaskResult(
                    task_id=task.id, file_path=manifest, duration_ms=_elapsed_ms(started), **kwargs
                ))

        try:
            transformer = self._resolve(consolidated, state.plan)
        except MissingTransformerError as e:
            self._emit(state.job_id, f"No dependency transformer available for {manifest}")
            record(success=False, skipped=True, error=str(e))
            return

        if manifest not in state.contents:
            error = str(MissingFileError(manifest))
            self._emit(state.job_id, error, {"file_path": manifest})
            record(success=False, error=error)
            return

        original = state.contents[manifest]
        options = self._options_for(state, consolidated, manifest)
        try:
            result = self._invoke(transformer, original, options, consolidated)
        except Exception as e:
            logger.error(f"{transformer.name} raised on {manifest}: {e}", exc_info=True)
            self._emit(state.job_id, f"Error: {e}", {"file_path": manifest})
            record(success=False, error=str(e))
            return

        if not result.success or result.code is None:
            error = result.first_error or "Transformation failed"
            self._emit(state.job_id, f"{manifest} failed: {error}", {"file_path": manifest})
            record(success=False, result=result, error=error)
            return

        checkpoint = _Checkpoint.take(state)
        try:
            self._write(state, manifest, result.code, tasks[-1].id)
            self._merge_additional_files(state, result, tasks[-1].id)
        except Exception as e:
            checkpoint.restore(state)
            error = TransformationError(f"Could not apply output of {transformer.name} to {manifest}: {e}")
            logger.error(str(error), exc_info=True)
            self._emit(state.job_id, str(error), {"file_path": manifest})
            record(success=False, result=result, error=str(error))
            return

        for warning in result.warnings:
            self._emit(state.job_id, warning, {"file_path": manifest})
        self._emit(
            state.job_id,
            f"{manifest} updated (+{result.metadata.lines_added} -{result.metadata.lines_removed} lines)",
            {"file_path": manifest},
        )
        # Every task shares one result object; the summary counts it once
        record(success=True, result=result)

    @staticmethod
    def consolidate_dependency_tasks(tasks: List[Task], manifest: str) -> Task:
        """Merge dependency tasks targeting ``manifest`` into one task."""
        packages: List[str] = []
        breaking: List[str] = []
        for task in tasks:
            packages.extend(heuristics.extract_packages(task.description))
            packages.extend(heuristics.extract_packages(task.name))
            breaking.extend(task.breaking_changes)
        packages = list(dict.fromkeys(packages))

        return Task(
            id=CONSOLIDATED_TASK_ID,
            category=CATEGORY_DEPENDENCY,
            name="Update all dependencies",
            description=f"Update packages: {', '.join(packages)}",
            affected_files=[manifest],
            risk_level=heuristics.max_risk_level(t.risk_level for t in tasks),
            breaking_changes=list(dict.fromkeys(breaking)),
            estimated_minutes=sum(t.estimated_minutes for t in tasks),
        )

    # ── Transformer invocation ───────────────────────────────────────

    def _resolve(self, task: Task, plan: MigrationPlan) -> Transformer:
        transformer = self.registry.get_for_task(task, plan.source_stack)
        if transformer is None:
            raise MissingTransformerError(task.id, task.category)
        return transformer

    def _invoke(
        self,
        transformer: Transformer,
        code: str,
        options: TransformOptions,
        task: Task,
    ) -> TransformResult:
        if options.use_pipeline:
            return self.pipeline.execute(code, transformer, options, task)

        result = transformer.transform(code, options, task)
        if result.success and result.code is not None and result.diff is None:
            result.diff = compute_diff(code, result.code, context=options.context_lines)
            if not (result.metadata.lines_added or result.metadata.lines_removed):
                diff_stats = stats(result.diff)
                result.metadata.lines_added = diff_stats.added
                result.metadata.lines_removed = diff_stats.removed
        return result

    def _options_for(self, state: _RunState, task: Task, path: str) -> TransformOptions:
        repository_files = None
        if task.category in self.settings.creatable_categories:
            repository_files = list(state.contents.items())
        return replace(state.options, file_path=path, repository_files=repository_files)

    def _target_paths(self, task: Task) -> List[str]:
        if task.affected_files:
            return list(dict.fromkeys(task.affected_files))
        return list(self.settings.category_default_paths.get(task.category, []))

    # ── Writes ───────────────────────────────────────────────────────

    def _write(self, state: _RunState, path: str, content: str, task_id: str) -> None:
        """Store new content; later writers replace earlier ones."""
        previous = state.phase_writers.get(path)
        if previous is not None and previous != task_id and state.current_phase is not None:
            message = (
                f"{path} rewritten by task {task_id} after task {previous} "
                f"in phase {state.current_phase.id}"
            )
            logger.warning(message)
            state.warnings.append(message)

        state.phase_writers[path] = task_id
        state.last_writer[path] = task_id
        state.contents[path] = content
        state.transformed[path] = content

    def _merge_additional_files(self, state: _RunState, result: TransformResult, task_id: str) -> None:
        for extra_path, extra_content in (result.metadata.additional_files or {}).items():
            self._write(state, extra_path, extra_content, task_id)
            self._emit(state.job_id, f"Generated: {extra_path}", {"task_id": task_id, "file_path": extra_path})

    def _apply_success(
        self,
        state: _RunState,
        task: Task,
        path: str,
        original: str,
        result: TransformResult,
        started: float,
    ) -> None:
        self._write(state, path, result.code, task.id)
        if result.diff is None:
            result.diff = compute_diff(original, result.code, context=state.options.context_lines)
        self._merge_additional_files(state, result, task.id)

        main = TaskResult(
            task_id=task.id,
            file_path=path,
            success=True,
            result=result,
            duration_ms=_elapsed_ms(started),
        )
        state.results.append(main)
        self._emit(
            state.job_id,
            f"{path} transformed (+{result.metadata.lines_added} -{result.metadata.lines_removed} lines)",
            {"task_id": task.id, "file_path": path},
        )

        for conversion in result.metadata.rename_conversions or []:
            if conversion.original_path == path:
                main.linked_path = conversion.new_path
            self._apply_rename(
                state,
                task.id,
                conversion,
                started,
                transformation_type=result.metadata.transformation_type,
                include_old=conversion.original_path != path,
            )

    def _apply_rename(
        self,
        state: _RunState,
        task_id: str,
        conversion: RenameConversion,
        started: float,
        transformation_type: str,
        include_old: bool = True,
    ) -> None:
        """Record a move as two linked results: old path, then new path."""
        old_path, new_path = conversion.original_path, conversion.new_path
        existing = state.contents.get(new_path)
        if existing is not None and existing != conversion.content:
            message = f"{old_path} renamed onto existing {new_path} by task {task_id}; previous content replaced"
            logger.warning(message)
            state.warnings.append(message)
        if old_path not in state.transformed:
            state.transformed[old_path] = state.contents.get(old_path, conversion.content)
        self._write(state, new_path, conversion.content, task_id)
        state.renamed.add(old_path)

        diff = rename_diff(conversion.content, old_path, new_path)
        diff_stats = stats(diff)
        change = FileStructureChange(action="rename", original_path=old_path, new_path=new_path)

        if include_old:
            state.results.append(TaskResult(
                task_id=task_id,
                file_path=old_path,
                success=True,
                result=TransformResult(
                    success=True,
                    code=state.transformed[old_path],
                    diff=diff,
                    metadata=TransformMetadata(
                        transformation_type=transformation_type,
                        files_modified=[old_path, new_path],
                        confidence_score=100,
                        estimated_time_saved=heuristics.format_time_saved(0),
                        file_structure_change=change,
                    ),
                ),
                duration_ms=_elapsed_ms(started),
                linked_path=new_path,
            ))

        state.results.append(TaskResult(
            task_id=task_id,
            file_path=new_path,
            success=True,
            result=TransformResult(
                success=True,
                code=conversion.content,
                diff=diff,
                metadata=TransformMetadata(
                    transformation_type=transformation_type,
                    files_modified=[old_path, new_path],
                    lines_added=diff_stats.added,
                    lines_removed=diff_stats.removed,
                    confidence_score=100,
                    estimated_time_saved=heuristics.format_time_saved(0),
                    file_structure_change=change,
                ),
            ),
            duration_ms=_elapsed_ms(started),
            linked_path=old_path,
        ))
        self._emit(state.job_id, f"Converted: {old_path} -> {new_path}", {"task_id": task_id})

    def _rename_markup_files(self, state: _RunState) -> None:
        """Rename transformed files whose extension cannot hold their markup."""
        self._emit(state.job_id, "Checking transformed files for embedded markup...")
        state.current_phase = None
        candidates = []
        for path, content in state.transformed.items():
            if path in state.renamed:
                continue
            new_path = heuristics.markup_target_path(path, self.settings.markup_extension_map)
            if not new_path or not heuristics.contains_markup(content):
                continue
            if new_path in state.contents:
                message = f"{path} contains markup but {new_path} already exists; not renamed"
                logger.warning(message)
                state.warnings.append(message)
                continue
            candidates.append(RenameConversion(original_path=path, new_path=new_path, content=content))

        started = time.time()
        renamed = 0
        for conversion in candidates:
            task_id = state.last_writer.get(conversion.original_path, MARKUP_RENAME_TYPE)
            checkpoint = _Checkpoint.take(state)
            existing = self._last_success_for(state, conversion.original_path)
            try:
                self._apply_rename(
                    state,
                    task_id,
                    conversion,
                    started,
                    MARKUP_RENAME_TYPE,
                    include_old=existing is None,
                )
            except Exception as e:
                checkpoint.restore(state)
                message = f"Could not rename {conversion.original_path} to {conversion.new_path}: {e}"
                logger.error(message, exc_info=True)
                state.warnings.append(message)
                continue
            if existing is not None:
                existing.linked_path = conversion.new_path
            renamed += 1

        if renamed:
            self._emit(state.job_id, f"Renamed {renamed} files containing markup")

    @staticmethod
    def _last_success_for(state: _RunState, path: str) -> Optional[TaskResult]:
        for task_result in reversed(state.results):
            if task_result.file_path == path and task_result.success:
                return task_result
        return None

    def _record_skipped(self, state: _RunState, task: Task, error: Exception, started: float) -> None:
        self._emit(
            state.job_id,
            "No transformer available - marked for manual review",
            {"task_id": task.id},
        )
        state.results.append(TaskResult(
            task_id=task.id,
            success=False,
            skipped=True,
            error=str(error),
            duration_ms=_elapsed_ms(started),
        ))

    # ── Summary and deduplication ────────────────────────────────────

    @staticmethod
    def calculate_summary(
        results: List[TaskResult],
        transformed_files: Dict[str, str],
        total_duration_ms: int,
        extra_warnings: Optional[List[str]] = None,
    ) -> Summary:
        """Aggregate run metrics over the full, undeduplicated result list."""
        lines_added = lines_removed = minutes = 0
        errors: List[str] = []
        warnings: List[str] = []
        manual_review: List[str] = []
        counted: Set[int] = set()

        for task_result in results:
            label = task_result.file_path or task_result.task_id
            inner = task_result.result
            if inner is not None:
                if id(inner) not in counted:
                    counted.add(id(inner))
                    lines_added += inner.metadata.lines_added
                    lines_removed += inner.metadata.lines_removed
                    minutes += heuristics.parse_time_saved(inner.metadata.estimated_time_saved)
                errors.extend(f"{label}: {e.message}" for e in inner.errors)
                warnings.extend(f"{label}: {w}" for w in inner.warnings)
                if inner.metadata.requires_manual_review and task_result.file_path:
                    manual_review.append(task_result.file_path)
            if task_result.error and (inner is None or not inner.errors):
                errors.append(f"{label}: {task_result.error}")

        warnings.extend(extra_warnings or [])

        return Summary(
            files_changed=len(transformed_files),
            lines_added=lines_added,
            lines_removed=lines_removed,
            tasks_completed=sum(1 for r in results if r.success),
            tasks_failed=sum(1 for r in results if not r.success and not r.skipped),
            tasks_skipped=sum(1 for r in results if r.skipped),
            errors=list(dict.fromkeys(errors)),
            warnings=list(dict.fromkeys(warnings)),
            manual_review_needed=list(dict.fromkeys(manual_review)),
            estimated_time_saved=heuristics.format_time_saved(minutes),
            total_duration=total_duration_ms,
        )

    @staticmethod
    def deduplicate_results(results: List[TaskResult]) -> List[TaskResult]:
        """Keep the last result per file path; path-less results per task id."""
        by_key: Dict[str, TaskResult] = {}
        for task_result in results:
            key = task_result.file_path or f"no-file-{task_result.task_id}"
            by_key.pop(key, None)
            by_key[key] = task_result
        return list(by_key.values())

    # ── Progress ─────────────────────────────────────────────────────

    def _report_fetch(self, job_id: str, fetched: FetchResult) -> None:
        self._emit(
            job_id,
            f"Fetched {fetched.total_files} files ({heuristics.format_bytes(fetched.total_size)})",
            {"total_files": fetched.total_files, "total_size": fetched.total_size},
        )
        if fetched.skipped_files:
            self._emit(
                job_id,
                f"Skipped {len(fetched.skipped_files)} files (too large or excluded)",
                {"skipped_files": fetched.skipped_files},
            )

    def _report_summary(self, job_id: str, summary: Summary) -> None:
        logger.info(
            f"Job {job_id}: {summary.files_changed} files changed, "
            f"+{summary.lines_added}/-{summary.lines_removed} lines, "
            f"{summary.tasks_completed} completed, {summary.tasks_failed} failed, "
            f"{summary.tasks_skipped} skipped in {summary.total_duration}ms"
        )
        self._emit(job_id, "Transformation summary", summary.to_dict())
        if summary.manual_review_needed:
            self._emit(job_id, f"Manual review needed: {len(summary.manual_review_needed)} files")

    def _emit(self, job_id: str, message: str, data: Optional[Dict[str, Any]] = None) -> None:
        if self.progress is None:
            return
        try:
            self.progress.emit(job_id, message, data)
        except Exception as e:
            logger.warning(f"Progress emit failed for job {job_id}: {e}")

    def _complete(self, job_id: str, message: str, result: OrchestrationResult) -> None:
        if self.progress is None:
            return
        try:
            self.progress.complete(job_id, message, result.to_dict())
        except Exception as e:
            logger.warning(f"Progress complete failed for job {job_id}: {e}")

    def _error(self, job_id: str, message: str, exc: BaseException) -> None:
        if self.progress is None:
            return
        try:
            self.progress.error(job_id, message, exc)
        except Exception as e:
            logger.warning(f"Progress error failed for job {job_id}: {e}")


def _elapsed_ms(started: float) -> int:
    return int((time.time() - started) * 1000)
