# ========================
# src/ev_adoption/pipeline/errors.py
# ========================

"""
Pipeline Errors

Exception types raised by the pipeline stages. Every error carries a
context dictionary (source, row, column, geography, period, value) so a
failure can be diagnosed without re-running.
"""

from typing import Any, Dict, Optional


class PipelineError(ValueError):
    """Base class for data errors raised by the pipeline."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = dict(context or {})
        super().__init__(self._format())

    def _format(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value!r}" for key, value in self.context.items())
        return f"{self.message} ({details})"


class SchemaError(PipelineError):
    """An expected column is missing or a value does not match its format."""


class ValidationError(PipelineError):
    """A data-quality precondition of the pipeline does not hold."""


class ProjectionError(PipelineError):
    """A saturation projection is undefined for the given inputs."""
