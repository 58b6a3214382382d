"""Exception hierarchy for the CQRS scaffolder.

Every error carries the artifact kind and target path it concerns (when
known) so the CLI can point the developer at the exact file.  Errors fall
into three groups:

* input errors -- raised before any filesystem I/O,
* structural errors -- raised while building a plan,
* emission errors -- raised while applying a plan; they carry the partial
  ``ApplyReport`` so callers can see what was already written.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from cqrs_scaffold.models import ApplyReport


class ScaffoldError(Exception):
    """Base class for every scaffolding failure."""

    def __init__(
        self,
        message: str,
        kind: Any = None,
        path: str | None = None,
    ) -> None:
        self.kind = kind
        self.path = path
        self.message = message
        super().__init__(self._format(message))

    def _format(self, message: str) -> str:
        context: list[str] = []
        if self.kind is not None:
            context.append(f"kind={getattr(self.kind, 'value', self.kind)}")
        if self.path:
            context.append(f"path={self.path}")
        if context:
            return f"{message} ({', '.join(context)})"
        return message


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------


class ScaffoldInputError(ScaffoldError):
    """Raised when the request itself is invalid.  Nothing is written."""


class InvalidDomainName(ScaffoldInputError):
    """The domain name is not a valid lowercase identifier."""


class UnknownArtifactKind(ScaffoldInputError):
    """No template is registered for the requested artifact kind."""


class MissingRequiredParam(ScaffoldInputError):
    """A template needs a parameter the request does not supply."""

    def __init__(
        self,
        param: str,
        kind: Any = None,
        path: str | None = None,
    ) -> None:
        self.param = param
        super().__init__(f"Missing required parameter '{param}'", kind=kind, path=path)


# ---------------------------------------------------------------------------
# Structural errors
# ---------------------------------------------------------------------------


class DanglingEventReference(ScaffoldError):
    """A handler or saga would import an event class that does not exist."""


# ---------------------------------------------------------------------------
# Emission errors
# ---------------------------------------------------------------------------


class EmissionError(ScaffoldError):
    """Raised while applying a plan.

    Actions applied before the failure are not rolled back; ``report`` lists
    them so the caller can resume.
    """

    def __init__(
        self,
        message: str,
        kind: Any = None,
        path: str | None = None,
        report: ApplyReport | None = None,
    ) -> None:
        self.report = report
        super().__init__(message, kind=kind, path=path)


class WriteConflict(EmissionError):
    """A file planned as new appeared on disk after the plan was built."""


class ConcurrentModification(EmissionError):
    """The domain tree kept changing underneath the generator after a retry."""


class MergeAnchorNotFound(EmissionError):
    """The insertion point of an aggregation file could not be located."""


class WriteFailed(EmissionError):
    """A file of the domain tree could not be read or written."""
