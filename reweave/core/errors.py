"""Exception taxonomy for the transformation engine.

Task- and file-level errors are caught by the orchestrator and recorded on
``TaskResult.error``; only ``FetchError`` (and anything escaping every inner
boundary) aborts a whole run.
"""

from typing import Optional


class ReweaveError(Exception):
    """Base class for all engine errors."""


class PlanError(ReweaveError):
    """Migration plan input is malformed."""


class CodeSyntaxError(ReweaveError):
    """Source code failed the pre-transform syntax check."""

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None):
        super().__init__(message)
        self.line = line
        self.column = column


class TransformationError(ReweaveError):
    """A transformer reported failure or raised while transforming."""


class PipelineStageError(ReweaveError):
    """A pipeline stage failed. Always carries the failing stage name."""

    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage


class MissingTransformerError(ReweaveError):
    """No registered transformer can handle a task.

    Soft error: the orchestrator turns it into a skipped result.
    """

    def __init__(self, task_id: str, category: str):
        super().__init__(f"No transformer available for task {task_id} (category '{category}')")
        self.task_id = task_id
        self.category = category


class MissingFileError(ReweaveError):
    """A file a task targets is not present in the repository snapshot."""

    def __init__(self, path: str):
        super().__init__(f"File not found: {path}")
        self.path = path


class FetchError(ReweaveError):
    """Repository contents could not be fetched. Fatal for a run."""


class RepositoryBusyError(ReweaveError):
    """Another operation already holds the lock for this repository."""

    def __init__(self, repository_key: str):
        super().__init__(f"An operation is already in progress for {repository_key}")
        self.repository_key = repository_key
