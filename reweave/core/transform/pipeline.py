"""Five-stage transformation pipeline with snapshot and rollback.

Wraps one transformer call:

    Parse -> Validate -> Transform -> Verify -> Format

The input is captured before the first stage. If any stage fails (or
raises), the working copy is restored from that snapshot and a failure
result tagged with the stage name is returned: no code, confidence 0,
risk 100, manual review required. On success the result carries a diff
between input and output plus confidence and risk scores.

Usage:
    pipeline = TransformationPipeline()
    result = pipeline.execute(code, transformer, options, task)
"""

import concurrent.futures
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..errors import CodeSyntaxError, PipelineStageError, TransformationError
from . import heuristics
from .diff import compute_diff, stats
from .models import (
    Task,
    TransformError,
    TransformMetadata,
    TransformOptions,
    TransformResult,
    ValidationResult,
)
from .transformers.base import Transformer
from .validator import Validator, detect_language

logger = logging.getLogger(__name__)

STAGE_FAILED_CODE = "PIPELINE_STAGE_FAILED"

RETRY_SUGGESTIONS = [
    "Review the error message for details",
    "Check if the code has syntax errors",
    "Try with different transformation options",
]

MANUAL_REVIEW_RISK_THRESHOLD = 70


# ── Stage plumbing ───────────────────────────────────────────────────


@dataclass
class PipelineContext:
    """State shared by the stages of one pipeline run."""

    snapshot: str
    transformer: Transformer
    options: TransformOptions
    task: Optional[Task]
    language: str
    validator: Validator
    transform_result: Optional[TransformResult] = None
    validations: Dict[str, ValidationResult] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)


@dataclass
class StageResult:
    success: bool
    output: str
    error: Optional[str] = None


class PipelineStage(ABC):
    """One step of the pipeline. Receives the current working copy."""

    name: str = ""

    @abstractmethod
    def execute(self, code: str, context: PipelineContext) -> StageResult:
        ...


def _joined(validation: ValidationResult) -> str:
    return ", ".join(e.message for e in validation.errors) or "unknown error"


def _syntax_error(prefix: str, validation: ValidationResult) -> CodeSyntaxError:
    first = validation.errors[0] if validation.errors else None
    return CodeSyntaxError(
        f"{prefix}: {_joined(validation)}",
        line=first.line if first else None,
        column=first.column if first else None,
    )


class ParseStage(PipelineStage):
    """Rejects input that does not parse. Empty input is a new file and passes."""

    name = "Parse"

    def execute(self, code: str, context: PipelineContext) -> StageResult:
        if not code.strip():
            return StageResult(success=True, output=code)

        validation = context.validator.validate_syntax(code, context.language)
        context.validations[self.name] = validation
        if not validation.syntax_valid:
            raise _syntax_error("Syntax validation failed", validation)
        return StageResult(success=True, output=code)


class ValidateStage(PipelineStage):
    """Full validation of the input, including project signals."""

    name = "Validate"

    def execute(self, code: str, context: PipelineContext) -> StageResult:
        if not code.strip():
            validation = ValidationResult()
            if context.options.project_path:
                validation = context.validator.validate_project_signals(context.options.project_path)
        else:
            validation = context.validator.validate_all(
                code, context.language, context.options.project_path
            )
        context.validations[self.name] = validation
        context.warnings.extend(validation.warnings)

        if not validation.is_valid:
            return StageResult(
                success=False,
                output=code,
                error=f"Validation failed: {_joined(validation)}",
            )
        return StageResult(success=True, output=code)


class TransformStage(PipelineStage):
    """Invokes the transformer, honoring ``options.timeout`` when set."""

    name = "Transform"

    def execute(self, code: str, context: PipelineContext) -> StageResult:
        result = self._call(code, context)
        context.transform_result = result

        if not result.success or result.code is None:
            raise TransformationError(result.first_error or "Transformation failed")
        context.warnings.extend(result.warnings)
        return StageResult(success=True, output=result.code)

    @staticmethod
    def _call(code: str, context: PipelineContext) -> TransformResult:
        transformer, options, task = context.transformer, context.options, context.task
        if not options.timeout:
            return transformer.transform(code, options, task)

        # The worker thread cannot be interrupted; on timeout it is abandoned
        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"transform-{transformer.name}"
        )
        try:
            future = executor.submit(transformer.transform, code, options, task)
            try:
                return future.result(timeout=options.timeout)
            except concurrent.futures.TimeoutError:
                logger.warning(
                    f"{transformer.name} still running after {options.timeout}s "
                    f"on {options.file_path or 'input'}; abandoning its worker thread"
                )
                raise PipelineStageError(
                    "Transform", f"Transformer timed out after {options.timeout}s"
                ) from None
        finally:
            executor.shutdown(wait=False)


class VerifyStage(PipelineStage):
    """Re-checks the syntax of the transformer output."""

    name = "Verify"

    def execute(self, code: str, context: PipelineContext) -> StageResult:
        validation = context.validator.validate_syntax(code, context.language)
        context.validations[self.name] = validation
        if not validation.syntax_valid:
            raise _syntax_error("Transformed code has syntax errors", validation)
        return StageResult(success=True, output=code)


class FormatStage(PipelineStage):
    """Formatting hook. Leaves code untouched; no formatter is wired in yet."""

    name = "Format"

    def execute(self, code: str, context: PipelineContext) -> StageResult:
        if not context.options.preserve_formatting:
            logger.debug("Formatting requested but no formatter configured; keeping output as-is")
        return StageResult(success=True, output=code)


# ── Pipeline ─────────────────────────────────────────────────────────


class TransformationPipeline:
    """Runs a transformer through the staged checks."""

    def __init__(self, validator: Optional[Validator] = None):
        self._validator = validator or Validator()
        self._stages: List[PipelineStage] = [
            ParseStage(),
            ValidateStage(),
            TransformStage(),
            VerifyStage(),
            FormatStage(),
        ]

    @property
    def stages(self) -> List[str]:
        return [stage.name for stage in self._stages]

    def add_stage(self, stage: PipelineStage, position: Optional[int] = None) -> None:
        """Insert a stage; by default just before the last (Format) stage."""
        if position is None:
            position = max(0, len(self._stages) - 1)
        self._stages.insert(position, stage)

    def remove_stage(self, name: str) -> bool:
        for index, stage in enumerate(self._stages):
            if stage.name == name:
                del self._stages[index]
                return True
        return False

    def execute(
        self,
        code: str,
        transformer: Transformer,
        options: Optional[TransformOptions] = None,
        task: Optional[Task] = None,
    ) -> TransformResult:
        """Run every stage in order.

        Never raises for stage failures; they come back as a failed result
        with ``metadata.failed_stage`` set.
        """
        options = options or TransformOptions()
        start_time = time.time()
        language = options.language or (
            detect_language(options.file_path) if options.file_path else "plaintext"
        )
        context = PipelineContext(
            snapshot=code,
            transformer=transformer,
            options=options,
            task=task,
            language=language,
            validator=self._validator,
        )

        current = context.snapshot
        for stage in self._stages:
            try:
                outcome = stage.execute(current, context)
                if not outcome.success:
                    raise PipelineStageError(stage.name, outcome.error or f"Stage {stage.name} failed")
            except PipelineStageError as e:
                return self._rollback(context, e.stage, str(e), start_time)
            except CodeSyntaxError as e:
                return self._rollback(context, stage.name, str(e), start_time, line=e.line, column=e.column)
            except TransformationError as e:
                return self._rollback(context, stage.name, str(e), start_time)
            except Exception as e:
                logger.error(f"Pipeline stage {stage.name} raised: {e}", exc_info=True)
                return self._rollback(context, stage.name, f"{stage.name} stage failed: {e}", start_time)

            current = outcome.output

        return self._success(context, current, start_time)

    # ── Results ──────────────────────────────────────────────────────

    def _rollback(
        self,
        context: PipelineContext,
        stage_name: str,
        message: str,
        start_time: float,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ) -> TransformResult:
        """Discard the working copy and report the failing stage."""
        restored = context.snapshot
        logger.warning(
            f"{context.transformer.name}: {stage_name} stage failed for "
            f"{context.options.file_path or 'input'}, rolled back ({len(restored)} chars): {message}"
        )

        metadata = TransformMetadata(
            transformation_type=context.transformer.name,
            confidence_score=0,
            risk_score=100,
            requires_manual_review=True,
            failed_stage=stage_name,
            duration_ms=int((time.time() - start_time) * 1000),
        )
        error = TransformError(
            message=message,
            code=STAGE_FAILED_CODE,
            suggestions=list(RETRY_SUGGESTIONS),
            stage=stage_name,
            line=line,
            column=column,
        )
        return TransformResult(
            success=False,
            code=None,
            metadata=metadata,
            errors=[error],
            warnings=list(context.warnings),
        )

    def _success(self, context: PipelineContext, output: str, start_time: float) -> TransformResult:
        transformer = context.transformer
        produced = context.transform_result or TransformResult(success=True, code=output)
        inner = produced.metadata

        diff = compute_diff(context.snapshot, output, context=context.options.context_lines)
        diff_stats = stats(diff)
        minutes = heuristics.estimate_minutes_saved(diff_stats.total)

        metadata = TransformMetadata(
            transformation_type=inner.transformation_type or transformer.name,
            files_modified=list(inner.files_modified)
            or ([context.options.file_path] if context.options.file_path else []),
            lines_added=diff_stats.added,
            lines_removed=diff_stats.removed,
            estimated_time_saved=heuristics.format_time_saved(minutes),
            transformations_applied=list(inner.transformations_applied) or [transformer.name],
            additional_files=inner.additional_files,
            rename_conversions=inner.rename_conversions,
            file_structure_change=inner.file_structure_change,
            notes=list(inner.notes),
            duration_ms=int((time.time() - start_time) * 1000),
        )
        result = TransformResult(
            success=True,
            code=output,
            diff=diff,
            metadata=metadata,
            errors=list(produced.errors),
            warnings=list(context.warnings),
        )

        metadata.confidence_score = self.calculate_confidence(result, context)
        metadata.risk_score = transformer.calculate_risk_score(result)
        metadata.requires_manual_review = metadata.risk_score > MANUAL_REVIEW_RISK_THRESHOLD

        logger.debug(
            f"{transformer.name}: +{diff_stats.added}/-{diff_stats.removed} "
            f"confidence={metadata.confidence_score} risk={metadata.risk_score}"
        )
        return result

    @staticmethod
    def calculate_confidence(result: TransformResult, context: PipelineContext) -> int:
        """40 for passing every stage, 30 without syntax-class errors,
        20 when Validate and Verify were clean, up to 10 for few warnings."""
        confidence = 40

        has_syntax_errors = any(
            e.code == "SYNTAX_ERROR" or "syntax" in e.message.lower() for e in result.errors
        )
        if not has_syntax_errors:
            confidence += 30

        validated = context.validations.get(ValidateStage.name)
        verified = context.validations.get(VerifyStage.name)
        if (
            (validated is None or validated.is_valid)
            and verified is not None
            and verified.syntax_valid
        ):
            confidence += 20

        confidence += max(0, 10 - min(10, len(result.warnings) * 2))
        return max(0, min(100, confidence))
