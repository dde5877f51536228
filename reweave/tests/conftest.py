"""Shared fakes and fixtures for the engine tests."""

import time
from typing import Callable, Dict, List, Optional

import pytest

from reweave.core.config import ReweaveSettings
from reweave.core.errors import FetchError
from reweave.core.transform.fetcher import FileFetcher
from reweave.core.transform.models import (
    FetchResult,
    MigrationPlan,
    Phase,
    RepositoryFile,
    RepositoryRef,
    SourceStack,
    Task,
    TransformError,
    TransformOptions,
    TransformResult,
)
from reweave.core.transform.transformers import Transformer, TransformerRegistry


# ── Fakes ─────────────────────────────────────────────────────────────────


class FakeTransformer(Transformer):
    """Transformer driven entirely by constructor arguments.

    ``rewrite(code, options, task) -> str`` produces the new content.
    Every call is recorded on ``calls`` as ``(code, options, task)``.
    """

    def __init__(
        self,
        name: str = "fake",
        categories=("code-quality",),
        frameworks=("*",),
        rewrite: Optional[Callable] = None,
        fail: Optional[str] = None,
        raises: Optional[Exception] = None,
        additional_files: Optional[Dict[str, str]] = None,
        rename_conversions=None,
        warnings: Optional[List[str]] = None,
        delay: float = 0,
    ):
        self._name = name
        self._categories = list(categories)
        self._frameworks = list(frameworks)
        self._rewrite = rewrite or (lambda code, options, task: code.replace("var ", "const "))
        self._fail = fail
        self._raises = raises
        self._additional_files = additional_files
        self._rename_conversions = rename_conversions
        self._warnings = list(warnings or [])
        self._delay = delay
        self.calls = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def supported_categories(self) -> List[str]:
        return self._categories

    @property
    def supported_frameworks(self) -> List[str]:
        return self._frameworks

    def transform(self, code, options, task=None):
        self.calls.append((code, options, task))
        if self._delay:
            time.sleep(self._delay)
        if self._raises is not None:
            raise self._raises
        if self._fail is not None:
            return TransformResult(success=False, errors=[TransformError(message=self._fail)])

        metadata = self.create_base_metadata(
            files_modified=[options.file_path] if options.file_path else [],
            confidence_score=90,
        )
        metadata.additional_files = self._additional_files
        metadata.rename_conversions = self._rename_conversions
        return TransformResult(
            success=True,
            code=self._rewrite(code, options, task),
            metadata=metadata,
            warnings=list(self._warnings),
        )


class InMemoryFetcher(FileFetcher):
    def __init__(self, files: Dict[str, str], skipped: Optional[List[str]] = None, error: Optional[str] = None):
        self._files = dict(files)
        self._skipped = list(skipped or [])
        self._error = error
        self.calls = 0

    def fetch(self, repo, ref=None):
        self.calls += 1
        if self._error:
            raise FetchError(self._error)
        files = [
            RepositoryFile(path=p, content=c, size=len(c.encode("utf-8")))
            for p, c in self._files.items()
        ]
        return FetchResult(
            files=files,
            total_files=len(files),
            total_size=sum(f.size for f in files),
            skipped_files=list(self._skipped),
        )


class RecordingSink:
    """ProgressSink that keeps every call as ``(kind, job_id, message, data)``."""

    def __init__(self):
        self.events = []

    def emit(self, job_id, message, data=None):
        self.events.append(("progress", job_id, message, data))

    def complete(self, job_id, message, data=None):
        self.events.append(("complete", job_id, message, data))

    def error(self, job_id, message, exc=None):
        self.events.append(("error", job_id, message, exc))

    def messages(self, kind="progress"):
        return [e[2] for e in self.events if e[0] == kind]


# ── Builders ──────────────────────────────────────────────────────────────


def build_plan(*phases, framework="react") -> MigrationPlan:
    """``build_plan([task, ...], [task, ...])`` with phase order = position."""
    return MigrationPlan(
        id="plan-1",
        source_stack=SourceStack(framework=framework, version="17"),
        phases=[
            Phase(id=f"phase-{i}", name=f"Phase {i}", order=i, tasks=list(tasks))
            for i, tasks in enumerate(phases, start=1)
        ],
    )


# ── Fixtures ──────────────────────────────────────────────────────────────


@pytest.fixture
def fake_transformer():
    return FakeTransformer


@pytest.fixture
def in_memory_fetcher():
    return InMemoryFetcher


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def plan_builder():
    return build_plan


@pytest.fixture
def registry():
    return TransformerRegistry()


@pytest.fixture
def settings():
    return ReweaveSettings()


@pytest.fixture
def repo():
    return RepositoryRef(owner="acme", name="shop")


@pytest.fixture
def options():
    return TransformOptions()


@pytest.fixture
def make_task():
    def _make(task_id, category="code-quality", files=None, **kwargs):
        return Task(id=task_id, category=category, affected_files=list(files or []), **kwargs)

    return _make
