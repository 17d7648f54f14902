from __future__ import annotations


class PipelineError(Exception):
    """Base class for errors raised by code-pipeline."""


class NotFoundError(PipelineError, LookupError):
    """A cache slot was never written for the requested pipeline."""


class TypeConversionError(PipelineError, TypeError):
    """A cache slot holds a value of an unexpected shape."""


class ValidationError(PipelineError, ValueError):
    """Submitted source was rejected by a validator."""


class InfrastructureError(PipelineError, RuntimeError):
    """Folder or source file setup failed before processing started."""
