"""Transformer registry.

Dict-based and instance-scoped: each orchestrator (or API app) is handed
the registry it should use, and tests build their own. Lookups go by task
category and source-stack signature, never by runtime type inspection.
"""

import logging
from typing import Any, Dict, List, Optional

from ..models import SourceStack, Task
from .base import Transformer

logger = logging.getLogger(__name__)


class TransformerRegistry:
    """Routes tasks to registered transformers."""

    def __init__(self):
        self._transformers: Dict[str, Transformer] = {}

    def register(self, transformer: Transformer) -> None:
        """Register a transformer instance, replacing one with the same name.

        Raises:
            ValueError: If the transformer has no name or no categories.
        """
        if transformer is None:
            raise ValueError("Cannot register a null transformer")

        meta = transformer.metadata
        if not meta.name:
            raise ValueError("Transformer must have a name")
        if not meta.categories:
            raise ValueError(f"Transformer {meta.name} must support at least one category")

        if meta.name in self._transformers:
            logger.info("Replacing transformer: %s", meta.name)
        self._transformers[meta.name] = transformer
        logger.info(
            "Registered transformer: %s (categories=%s, frameworks=%s)",
            meta.name,
            ",".join(meta.categories),
            ",".join(meta.frameworks),
        )

    def unregister(self, name: str) -> bool:
        """Remove a transformer by name. Returns False if it was not registered."""
        return self._transformers.pop(name, None) is not None

    def get_by_category(
        self,
        category: str,
        source_stack: Optional[SourceStack] = None,
    ) -> List[Transformer]:
        """Transformers for a category, framework-specific before generic.

        Without ``source_stack`` every transformer for the category is
        returned in registration order.
        """
        candidates = [
            t for t in self._transformers.values()
            if category in t.supported_categories
        ]
        if source_stack is None:
            return candidates

        signature = source_stack.signature
        compatible = [
            t for t in candidates
            if t.metadata.is_generic
            or any(fw.lower() == signature for fw in t.supported_frameworks)
        ]
        # Stable sort keeps registration order within each group
        return sorted(compatible, key=lambda t: t.metadata.is_generic)

    def get_for_task(self, task: Task, source_stack: SourceStack) -> Optional[Transformer]:
        """First transformer that can handle ``task``, or ``None``."""
        if task is None or not task.category:
            return None

        for transformer in self.get_by_category(task.category, source_stack):
            if transformer.can_handle(task, source_stack):
                logger.debug("Task %s routed to %s", task.id, transformer.name)
                return transformer

        logger.debug(
            "No transformer for task %s (category=%s, framework=%s)",
            task.id,
            task.category,
            source_stack.framework,
        )
        return None

    def get_by_name(self, name: str) -> Optional[Transformer]:
        return self._transformers.get(name)

    def has_transformer(self, category: str) -> bool:
        return any(category in t.supported_categories for t in self._transformers.values())

    def get_all(self) -> List[Transformer]:
        return list(self._transformers.values())

    def get_stats(self) -> Dict[str, Any]:
        by_category: Dict[str, int] = {}
        frameworks: List[str] = []
        for transformer in self._transformers.values():
            for category in transformer.supported_categories:
                by_category[category] = by_category.get(category, 0) + 1
            for framework in transformer.supported_frameworks:
                if framework not in frameworks:
                    frameworks.append(framework)

        return {
            "total_transformers": len(self._transformers),
            "categories": list(by_category),
            "frameworks": frameworks,
            "transformers_by_category": by_category,
        }

    def list_transformers(self) -> List[Dict[str, Any]]:
        """List all registered transformers with metadata."""
        return [
            {
                "name": meta.name,
                "version": meta.version,
                "categories": meta.categories,
                "frameworks": meta.frameworks,
                "languages": meta.languages,
                "description": meta.description,
            }
            for meta in (t.metadata for t in self._transformers.values())
        ]

    def clear(self) -> None:
        self._transformers.clear()

    def __len__(self) -> int:
        return len(self._transformers)

    def __contains__(self, name: str) -> bool:
        return name in self._transformers
