# Transformer contract and registry.
# Concrete transformers live outside the engine and are registered by the
# embedding application (see ``reweave run --registry``).

from .base import ComplexityMetrics, GENERIC_FRAMEWORK, Transformer, TransformerMetadata
from .registry import TransformerRegistry

__all__ = [
    "ComplexityMetrics",
    "GENERIC_FRAMEWORK",
    "Transformer",
    "TransformerMetadata",
    "TransformerRegistry",
]
