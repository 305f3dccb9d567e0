"""modelforge: model-driven source generation orchestrator."""

__version__ = "1.1.0"
