"""Multi-layer validation for code before and after transformation.

Layers:
- syntax: tree-sitter grammars (python, javascript/jsx, typescript, tsx,
  java, csharp) plus the ``json`` and ``yaml`` loaders
- semantics: typed languages only; syntax re-check plus a context warning
- project signals: build config and test presence under a project root

Unsupported languages are reported as valid with a warning so they never
block a pipeline.
"""

import json
import logging
import re
import tomllib
from pathlib import Path
from typing import Callable, Dict, List, Optional

import tree_sitter
import tree_sitter_c_sharp
import tree_sitter_java
import tree_sitter_javascript
import tree_sitter_python
import tree_sitter_typescript
import yaml

from .models import ValidationError, ValidationResult

logger = logging.getLogger(__name__)

MAX_SYNTAX_ERRORS = 10

TYPED_LANGUAGES = frozenset({"typescript", "tsx", "java", "csharp"})

_GRAMMARS: Dict[str, Callable[[], object]] = {
    "python": tree_sitter_python.language,
    "javascript": tree_sitter_javascript.language,
    "jsx": tree_sitter_javascript.language,
    "typescript": tree_sitter_typescript.language_typescript,
    "tsx": tree_sitter_typescript.language_tsx,
    "java": tree_sitter_java.language,
    "csharp": tree_sitter_c_sharp.language,
}

_LANGUAGE_ALIASES = {
    "py": "python",
    "js": "javascript",
    "ts": "typescript",
    "c_sharp": "csharp",
    "c#": "csharp",
    "cs": "csharp",
    "yml": "yaml",
}

_EXTENSION_LANGUAGES = {
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "jsx",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".java": "java",
    ".cs": "csharp",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
}

BUILD_CONFIGS = [
    "pyproject.toml",
    "setup.py",
    "setup.cfg",
    "package.json",
    "tsconfig.json",
    "webpack.config.js",
    "vite.config.ts",
    "vite.config.js",
    "next.config.js",
    "rollup.config.js",
    "pom.xml",
    "build.gradle",
    "build.gradle.kts",
]

TEST_DIRECTORIES = ["__tests__", "test", "tests", "spec", "specs"]

TEST_RUNNER_CONFIGS = [
    "pytest.ini",
    "conftest.py",
    "tox.ini",
    "vitest.config.ts",
    "vitest.config.js",
    "jest.config.js",
    "jest.config.ts",
    "playwright.config.ts",
]

_JSON_COMMENT_RE = re.compile(r"/\*[\s\S]*?\*/|//.*")

_parser_cache: Dict[str, tree_sitter.Parser] = {}


def detect_language(path: str) -> str:
    """Language tag for a file path, ``"plaintext"`` when unknown."""
    return _EXTENSION_LANGUAGES.get(Path(path).suffix.lower(), "plaintext")


def normalize_language(language: str) -> str:
    tag = (language or "").strip().lower()
    return _LANGUAGE_ALIASES.get(tag, tag)


def syntax_suggestion(message: str) -> str:
    """Best-effort hint for a parser message."""
    lowered = message.lower()
    if "unexpected" in lowered:
        return "Check for missing or extra brackets, parentheses, or semicolons"
    if "unterminated" in lowered:
        return "Check for unclosed strings, comments, or template literals"
    if "expect" in lowered:
        return "Check for missing syntax elements like commas, colons, or keywords"
    if "invalid" in lowered:
        return "Check for incorrect syntax or unsupported language features"
    if "import" in lowered or "export" in lowered:
        return "Check import/export syntax and module resolution"
    return "Review the code syntax and ensure it follows language standards"


def _get_parser(language: str) -> tree_sitter.Parser:
    parser = _parser_cache.get(language)
    if parser is None:
        parser = tree_sitter.Parser(tree_sitter.Language(_GRAMMARS[language]()))
        _parser_cache[language] = parser
    return parser


def _collect_errors(node, errors: list, max_errors: int = MAX_SYNTAX_ERRORS):
    """Walk a tree-sitter tree and collect ERROR / MISSING nodes."""
    if len(errors) >= max_errors:
        return
    if node.type == "ERROR" or node.is_missing:
        errors.append(node)
    for child in node.children:
        _collect_errors(child, errors, max_errors)


def _describe_node(node) -> str:
    if node.is_missing:
        return f"Expected '{node.type}'"
    text = node.text.decode("utf-8", errors="replace") if node.text else ""
    snippet = text.strip().splitlines()[0][:80] if text.strip() else ""
    if snippet[:1] in ("'", '"', "`"):
        return f"Unterminated string literal: {snippet}"
    if snippet.startswith("/*"):
        return f"Unterminated comment: {snippet}"
    return f"Unexpected token '{snippet}'" if snippet else "Unexpected end of input"


def _syntax_failure(errors: List[ValidationError]) -> ValidationResult:
    return ValidationResult(
        is_valid=False,
        syntax_valid=False,
        semantic_valid=False,
        errors=errors,
    )


class Validator:
    """Stateless validator; one instance may be shared freely."""

    def validate_syntax(self, code: str, language: str) -> ValidationResult:
        tag = normalize_language(language)

        if tag in _GRAMMARS:
            return self._validate_tree_sitter(code, tag)
        if tag == "json":
            return self._validate_json(code)
        if tag == "yaml":
            return self._validate_yaml(code)

        return ValidationResult(warnings=[f"Syntax validation not supported for {language}"])

    def _validate_tree_sitter(self, code: str, language: str) -> ValidationResult:
        tree = _get_parser(language).parse(code.encode("utf-8"))
        if not tree.root_node.has_error:
            return ValidationResult()

        nodes: list = []
        _collect_errors(tree.root_node, nodes)
        errors = []
        for node in nodes:
            message = _describe_node(node)
            errors.append(ValidationError(
                message=message,
                line=node.start_point[0] + 1,
                column=node.start_point[1],
                code="MISSING_NODE" if node.is_missing else "SYNTAX_ERROR",
                suggestion=syntax_suggestion(message),
            ))
        logger.debug(f"{language} syntax check found {len(errors)} error(s)")
        return _syntax_failure(errors)

    def _validate_json(self, code: str) -> ValidationResult:
        try:
            json.loads(code)
        except json.JSONDecodeError as e:
            return _syntax_failure([ValidationError(
                message=e.msg,
                line=e.lineno,
                column=e.colno,
                code="JSON_PARSE_ERROR",
                suggestion="Check for missing commas, quotes, or brackets",
            )])
        return ValidationResult()

    def _validate_yaml(self, code: str) -> ValidationResult:
        try:
            yaml.safe_load(code)
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            message = getattr(e, "problem", None) or str(e)
            return _syntax_failure([ValidationError(
                message=message,
                line=mark.line + 1 if mark else None,
                column=mark.column if mark else None,
                code="YAML_PARSE_ERROR",
                suggestion=syntax_suggestion(message),
            )])
        return ValidationResult()

    def validate_semantics(self, code: str, language: str) -> ValidationResult:
        tag = normalize_language(language)
        if tag not in TYPED_LANGUAGES:
            return ValidationResult(
                warnings=["Semantic validation only supported for typed languages"]
            )

        result = self.validate_syntax(code, tag)
        result.warnings.append(
            "Full semantic validation requires project context - performing syntax validation only"
        )
        return result

    # ── Project signals ──────────────────────────────────────────────

    def validate_build(self, project_path: str) -> ValidationResult:
        """Look for build configuration files under ``project_path``."""
        root = Path(project_path)
        warnings: List[str] = []
        found = []

        for name in BUILD_CONFIGS:
            config = root / name
            if not config.is_file():
                continue
            found.append(name)
            problem = self._check_config(config)
            if problem:
                warnings.append(problem)

        if not found:
            warnings.append("No build configuration files found")
        else:
            logger.debug(f"Build configs under {project_path}: {found}")

        return ValidationResult(warnings=warnings, build_valid=bool(found))

    @staticmethod
    def _check_config(config: Path) -> Optional[str]:
        """Cheap parse of a known config file. Returns a warning or None."""
        try:
            content = config.read_text(encoding="utf-8")
            if config.name == "package.json":
                if not json.loads(content).get("name"):
                    return 'package.json missing required "name" field'
            elif config.name == "tsconfig.json":
                json.loads(_JSON_COMMENT_RE.sub("", content))
            elif config.name == "pyproject.toml":
                tomllib.loads(content)
        except (OSError, ValueError, AttributeError) as e:
            return f"Invalid {config.name}: {e}"
        return None

    def validate_tests(self, project_path: str) -> ValidationResult:
        """Look for test directories or a test runner configuration."""
        root = Path(project_path)
        tests_found = any((root / name).is_dir() for name in TEST_DIRECTORIES)
        runner_found = any((root / name).is_file() for name in TEST_RUNNER_CONFIGS)

        warnings = []
        if not tests_found and not runner_found:
            warnings.append("No test files or test runner configuration found")
        return ValidationResult(warnings=warnings, tests_valid=tests_found or runner_found)

    def validate_project_signals(self, project_path: str) -> ValidationResult:
        """Build and test signals combined. Never raises for a bad path."""
        if not Path(project_path).is_dir():
            return ValidationResult(
                warnings=[f"Project path not found: {project_path}"],
                build_valid=False,
                tests_valid=False,
            )
        return self.combine([self.validate_build(project_path), self.validate_tests(project_path)])

    # ── Composition ──────────────────────────────────────────────────

    def validate_all(
        self,
        code: str,
        language: str,
        project_path: Optional[str] = None,
    ) -> ValidationResult:
        """Syntax, then semantics for typed languages, then project signals.

        Stops after syntax when it fails.
        """
        syntax = self.validate_syntax(code, language)
        if not syntax.syntax_valid:
            return syntax

        results = [syntax]
        if normalize_language(language) in TYPED_LANGUAGES:
            results.append(self.validate_semantics(code, language))
        if project_path:
            results.append(self.validate_project_signals(project_path))
        return self.combine(results)

    @staticmethod
    def combine(results: List[ValidationResult]) -> ValidationResult:
        combined = ValidationResult()
        for result in results:
            combined.errors.extend(result.errors)
            combined.warnings.extend(result.warnings)
            combined.is_valid = combined.is_valid and result.is_valid
            combined.syntax_valid = combined.syntax_valid and result.syntax_valid
            combined.semantic_valid = combined.semantic_valid and result.semantic_valid
            if result.build_valid is not None:
                combined.build_valid = result.build_valid
            if result.tests_valid is not None:
                combined.tests_valid = result.tests_valid
        return combined
