"""Tests for the transformer contract and registry."""

import pytest

from reweave.core.transform.models import (
    SourceStack,
    Task,
    TransformError,
    TransformMetadata,
    TransformResult,
)
from reweave.core.transform.transformers import ComplexityMetrics, TransformerRegistry

REACT = SourceStack(framework="React", version="17")
VUE = SourceStack(framework="vue", version="3")


# ── Registration ──────────────────────────────────────────────────────────


class TestRegistration:

    def test_register_and_lookup(self, registry, fake_transformer):
        transformer = fake_transformer(name="deps", categories=["dependency"])
        registry.register(transformer)

        assert len(registry) == 1
        assert "deps" in registry
        assert registry.get_by_name("deps") is transformer
        assert registry.has_transformer("dependency")
        assert not registry.has_transformer("documentation")

    def test_rejects_nameless(self, registry, fake_transformer):
        with pytest.raises(ValueError, match="must have a name"):
            registry.register(fake_transformer(name=""))

    def test_rejects_no_categories(self, registry, fake_transformer):
        with pytest.raises(ValueError, match="at least one category"):
            registry.register(fake_transformer(categories=[]))

    def test_same_name_replaces(self, registry, fake_transformer):
        first = fake_transformer(name="deps", categories=["dependency"])
        second = fake_transformer(name="deps", categories=["dependency"])
        registry.register(first)
        registry.register(second)
        assert registry.get_all() == [second]

    def test_unregister(self, registry, fake_transformer):
        registry.register(fake_transformer(name="deps", categories=["dependency"]))
        assert registry.unregister("deps") is True
        assert registry.unregister("deps") is False
        assert len(registry) == 0

    def test_stats(self, registry, fake_transformer):
        registry.register(fake_transformer(name="a", categories=["dependency"], frameworks=["react"]))
        registry.register(fake_transformer(name="b", categories=["dependency", "documentation"]))
        stats = registry.get_stats()
        assert stats["total_transformers"] == 2
        assert stats["transformers_by_category"] == {"dependency": 2, "documentation": 1}
        assert stats["frameworks"] == ["react", "*"]

    def test_list_and_clear(self, registry, fake_transformer):
        registry.register(fake_transformer(name="a"))
        listed = registry.list_transformers()
        assert listed[0]["name"] == "a"
        assert listed[0]["version"] == "1.0.0"
        registry.clear()
        assert registry.get_all() == []


# ── Routing ───────────────────────────────────────────────────────────────


class TestRouting:

    def test_framework_specific_before_generic(self, registry, fake_transformer):
        generic = fake_transformer(name="generic", categories=["structural"], frameworks=["*"])
        react = fake_transformer(name="react", categories=["structural"], frameworks=["react"])
        registry.register(generic)
        registry.register(react)

        assert registry.get_by_category("structural", REACT) == [react, generic]
        task = Task(id="t1", category="structural")
        assert registry.get_for_task(task, REACT) is react

    def test_other_framework_falls_back_to_generic(self, registry, fake_transformer):
        generic = fake_transformer(name="generic", categories=["structural"], frameworks=["*"])
        react = fake_transformer(name="react", categories=["structural"], frameworks=["react"])
        registry.register(react)
        registry.register(generic)

        assert registry.get_by_category("structural", VUE) == [generic]
        assert registry.get_for_task(Task(id="t1", category="structural"), VUE) is generic

    def test_without_stack_returns_all_in_order(self, registry, fake_transformer):
        a = fake_transformer(name="a", categories=["structural"], frameworks=["react"])
        b = fake_transformer(name="b", categories=["structural"], frameworks=["*"])
        registry.register(a)
        registry.register(b)
        assert registry.get_by_category("structural") == [a, b]

    def test_no_match(self, registry, fake_transformer):
        registry.register(fake_transformer(name="react", categories=["structural"], frameworks=["react"]))
        assert registry.get_for_task(Task(id="t1", category="structural"), VUE) is None
        assert registry.get_for_task(Task(id="t2", category="documentation"), REACT) is None

    def test_can_handle_is_case_insensitive(self, fake_transformer):
        transformer = fake_transformer(categories=["structural"], frameworks=["REACT"])
        assert transformer.can_handle(Task(id="t", category="structural"), REACT)
        assert not transformer.can_handle(Task(id="t", category="dependency"), REACT)


# ── Risk scoring ──────────────────────────────────────────────────────────


class TestRiskScore:

    def test_small_clean_change(self, fake_transformer):
        result = TransformResult(
            success=True,
            code="x",
            metadata=TransformMetadata(lines_added=5, lines_removed=5, confidence_score=100),
        )
        # 10 lines -> 3 points, full confidence -> 0
        assert fake_transformer().calculate_risk_score(result) == 3

    def test_is_clamped(self, fake_transformer):
        result = TransformResult(
            success=False,
            metadata=TransformMetadata(lines_added=500, lines_removed=500, confidence_score=1),
            errors=[TransformError(message="a"), TransformError(message="b"), TransformError(message="c")],
            warnings=["w"] * 10,
        )
        complexity = ComplexityMetrics(cyclomatic_complexity=50, nesting_depth=10, scope_changes=9)
        assert fake_transformer().calculate_risk_score(result, complexity) == 100

    def test_missing_confidence_counts_as_half(self, fake_transformer):
        result = TransformResult(success=True, code="x", metadata=TransformMetadata())
        assert fake_transformer().calculate_risk_score(result) == 12
