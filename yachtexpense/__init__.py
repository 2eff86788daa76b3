"""Receipt interpretation and adaptive categorization engine."""

__version__ = "0.1.0"
