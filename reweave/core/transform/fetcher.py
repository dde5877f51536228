"""Repository snapshot fetching.

The orchestrator reads every file once at the start of a run through a
:class:`FileFetcher`. Remote hosts plug in by implementing ``fetch``;
:class:`LocalFileFetcher` snapshots a checkout on disk.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from ..constants import MAX_FILE_SIZE_MB, MAX_FILES, SKIP_DIRECTORIES
from ..errors import FetchError
from .models import FetchResult, RepositoryFile, RepositoryRef

logger = logging.getLogger(__name__)


class FileFetcher(ABC):
    """Source of repository file contents."""

    @abstractmethod
    def fetch(self, repo: RepositoryRef, ref: Optional[str] = None) -> FetchResult:
        """Return the contents of every text file in the repository.

        Raises:
            FetchError: If the repository cannot be read at all.
        """
        ...


class LocalFileFetcher(FileFetcher):
    """Reads a repository from a local directory (read-only, no copy).

    Skips vendored/generated directories, files over the size limit and
    files that are not UTF-8 text.
    """

    def __init__(
        self,
        max_file_size_mb: float = MAX_FILE_SIZE_MB,
        max_files: int = MAX_FILES,
        skip_directories: Optional[Iterable[str]] = None,
    ):
        self._max_file_size_bytes = int(max_file_size_mb * 1024 * 1024)
        self._max_files = max_files
        self._skip_directories = frozenset(skip_directories or SKIP_DIRECTORIES)

    def fetch(self, repo: RepositoryRef, ref: Optional[str] = None) -> FetchResult:
        root_dir = repo.path
        if not root_dir or not os.path.isdir(root_dir):
            raise FetchError(f"Directory does not exist: {root_dir}")
        if ref and ref != repo.branch:
            logger.warning(f"Local fetch of {repo.key} ignores ref '{ref}', reading working tree")

        logger.info(f"Fetching local repository {repo.key} from {root_dir}")
        result = FetchResult()

        for full_path in self._collect_files(root_dir, result.skipped_files):
            rel_path = os.path.relpath(full_path, root_dir).replace(os.sep, "/")
            try:
                with open(full_path, "r", encoding="utf-8") as f:
                    content = f.read()
            except UnicodeDecodeError:
                result.skipped_files.append(rel_path)
                continue
            except OSError as e:
                logger.warning(f"Could not read {rel_path}: {e}")
                result.skipped_files.append(rel_path)
                continue

            size = len(content.encode("utf-8"))
            result.files.append(RepositoryFile(path=rel_path, content=content, size=size))
            result.total_size += size

        result.total_files = len(result.files)
        if result.total_files > self._max_files:
            raise FetchError(
                f"Too many files ({result.total_files}). Maximum is {self._max_files}."
            )

        logger.info(
            f"Fetched {result.total_files} files ({result.total_size} bytes), "
            f"skipped {len(result.skipped_files)}"
        )
        return result

    def _collect_files(self, root_dir: str, skipped: List[str]) -> List[str]:
        """Walk the tree, pruning skipped directories and oversized files."""
        files = []
        for dirpath, dirnames, filenames in os.walk(root_dir):
            dirnames[:] = sorted(d for d in dirnames if d not in self._skip_directories)

            for fname in sorted(filenames):
                full_path = os.path.join(dirpath, fname)
                try:
                    size = os.path.getsize(full_path)
                except OSError:
                    continue
                if size > self._max_file_size_bytes:
                    skipped.append(os.path.relpath(full_path, root_dir).replace(os.sep, "/"))
                    continue
                files.append(full_path)
        return files
