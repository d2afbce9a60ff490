"""
Error taxonomy and operation results.

Architectural Overview:
=======================
Stores never raise past their own boundary for expected failure modes.
They catch EnviroGISError subclasses and resolve to an OperationResult
that callers must check. Analysis operations raise NoShapeError /
GeometryError directly; the dashboard and HTTP layer translate them.

Kinds:
- validation: caller data failed a closed-set, range or required-field check
- not_found: id-scoped mutation target missing (or not owned by caller)
- geometry: malformed input to a geometry operation
- network: backing-store call failed or returned non-success
- no_shape: analysis invoked without enough drawn shapes
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional


# ═══════════════════════════════════════════════════════════════════════════
# ❌ EXCEPTIONS
# ═══════════════════════════════════════════════════════════════════════════


class EnviroGISError(Exception):
    """Base class for all expected dashboard failures."""

    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(EnviroGISError):
    """Caller-supplied data failed validation. No network call was made."""

    kind = "validation"

    def __init__(self, message: str, errors: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.errors = list(errors) if errors else [message]


class NotFoundError(EnviroGISError):
    """Mutation target does not exist or is not owned by the caller."""

    kind = "not_found"


class GeometryError(EnviroGISError):
    """Input to a geometry operation is not a usable Feature/geometry."""

    kind = "geometry"


class NetworkError(EnviroGISError):
    """Backing-store call failed. Store state is unchanged; safe to retry."""

    kind = "network"

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class StorageError(EnviroGISError):
    """Local durable storage (filter presets) could not be written."""

    kind = "storage"


class NoShapeError(EnviroGISError):
    """Analysis needs more drawn shapes than are available."""

    kind = "no_shape"

    def __init__(self, message: str = "Please draw a shape first", required: int = 1) -> None:
        super().__init__(message)
        self.required = required


# ═══════════════════════════════════════════════════════════════════════════
# 📦 OPERATION RESULT
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a store mutation.

    Attributes:
        ok: True when the operation succeeded
        value: Returned record (persisted model) on success
        error: Short human-readable failure reason
        kind: Error kind ("validation", "not_found", "network", ...)
        errors: Individual validation messages
    """

    ok: bool
    value: Any = None
    error: Optional[str] = None
    kind: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @classmethod
    def success(cls, value: Any = None) -> "OperationResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, exc: EnviroGISError) -> "OperationResult":
        errors = getattr(exc, "errors", None) or [exc.message]
        return cls(ok=False, error=exc.message, kind=exc.kind, errors=list(errors))

    def __bool__(self) -> bool:
        return self.ok
