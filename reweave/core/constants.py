"""Shared constants for the transformation engine.

Defaults here are the fallbacks used when ``config/reweave.yaml`` does not
override them.
"""

# =============================================================================
# Task Categories
# =============================================================================

CATEGORY_DEPENDENCY = "dependency"
CATEGORY_BUILD_TOOL = "build-tool"
CATEGORY_DOCUMENTATION = "documentation"
CATEGORY_STRUCTURAL = "structural"
CATEGORY_CODE_QUALITY = "code-quality"

# Categories whose tasks may create files that do not exist yet
CREATABLE_CATEGORIES = [CATEGORY_DOCUMENTATION, CATEGORY_BUILD_TOOL]

# Target paths used when a task declares no affected files
CATEGORY_DEFAULT_PATHS = {
    CATEGORY_DOCUMENTATION: ["README.md"],
}

# =============================================================================
# Risk Levels
# =============================================================================

RISK_LOW = "low"
RISK_MEDIUM = "medium"
RISK_HIGH = "high"

RISK_ORDER = {RISK_LOW: 0, RISK_MEDIUM: 1, RISK_HIGH: 2}

# =============================================================================
# Dependency Manifests
# =============================================================================

# Checked in order when a dependency task names no manifest of its own
DEPENDENCY_MANIFESTS = [
    "package.json",
    "pyproject.toml",
    "requirements.txt",
    "Pipfile",
    "pom.xml",
    "build.gradle",
    "build.gradle.kts",
    "Cargo.toml",
    "go.mod",
    "Gemfile",
    "composer.json",
]

DEFAULT_MANIFEST = "package.json"

# =============================================================================
# Embedded Markup
# =============================================================================

# Extensions that cannot declare embedded markup -> extension that can
MARKUP_EXTENSION_MAP = {
    ".js": ".jsx",
}

# =============================================================================
# Locking
# =============================================================================

LOCK_TTL_SECONDS = 10 * 60

# Finished jobs (progress events and API results) are kept this long
JOB_RETENTION_SECONDS = 60 * 60

# =============================================================================
# Fetching
# =============================================================================

MAX_FILE_SIZE_MB = 1
MAX_FILES = 5000

SKIP_DIRECTORIES = frozenset({
    "__pycache__",
    ".git",
    "venv",
    "env",
    ".venv",
    "node_modules",
    ".tox",
    ".mypy_cache",
    ".pytest_cache",
    ".ruff_cache",
    "dist",
    "build",
    ".eggs",
    ".next",
    "coverage",
    # C# / .NET
    "bin",
    "obj",
})
