"""Range-based incremental recompilation decisions for a compiler driver."""

__version__ = "0.1.0"
