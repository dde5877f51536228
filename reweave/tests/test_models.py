"""Tests for plan parsing and record serialization."""

import pytest

from reweave.core.errors import PlanError
from reweave.core.transform.models import MigrationPlan, OrchestrationResult, Summary, Task


class TestPlanParsing:

    def test_from_dict(self):
        plan = MigrationPlan.from_dict({
            "id": "p1",
            "source_stack": {"framework": "React", "version": "17"},
            "target_stack": {"framework": "react", "version": "18"},
            "phases": [
                {"id": "a", "name": "Deps", "order": 1, "tasks": [
                    {"id": "t1", "category": "dependency", "description": "Update react"},
                ]},
                {"id": "b", "order": 2, "tasks": [
                    {"id": "t2", "category": "documentation"},
                ]},
            ],
        })
        assert plan.source_stack.signature == "react"
        assert plan.target_stack.version == "18"
        assert [t.id for t in plan.all_tasks()] == ["t1", "t2"]
        assert plan.phases[1].name == "Phase 2"

    def test_task_category_from_pattern(self):
        task = Task.from_dict({
            "id": "t1",
            "description": "Move components",
            "pattern": {"category": "structural", "description": "Split by feature"},
        })
        assert task.category == "structural"
        assert task.description == "Move components\nSplit by feature"

    def test_task_requires_category(self):
        with pytest.raises(PlanError):
            Task.from_dict({"id": "t1"})

    def test_missing_source_stack(self):
        with pytest.raises(PlanError, match="source_stack"):
            MigrationPlan.from_dict({"phases": []})

    def test_task_in_two_phases(self):
        with pytest.raises(PlanError, match="appears in phases"):
            MigrationPlan.from_dict({
                "source_stack": {"framework": "vue"},
                "phases": [
                    {"id": "a", "order": 1, "tasks": [{"id": "t1", "category": "structural"}]},
                    {"id": "b", "order": 2, "tasks": [{"id": "t1", "category": "structural"}]},
                ],
            })

    def test_phase_requires_order(self):
        with pytest.raises(PlanError):
            MigrationPlan.from_dict({"source_stack": {"framework": "vue"}, "phases": [{"id": "a"}]})


class TestSerialization:

    def test_summary_shape(self):
        assert set(Summary().to_dict()) == {
            "files_changed",
            "lines_added",
            "lines_removed",
            "tasks_completed",
            "tasks_failed",
            "tasks_skipped",
            "errors",
            "warnings",
            "manual_review_needed",
            "estimated_time_saved",
            "total_duration",
        }

    def test_result_to_dict(self):
        data = OrchestrationResult(job_id="j", success=True, transformed_files={"a": "b"}).to_dict()
        assert data["job_id"] == "j"
        assert data["summary"]["files_changed"] == 0
        assert data["transformed_files"] == {"a": "b"}
