"""Error taxonomy for workflow plan validation and patching.

All errors are recoverable: callers surface them to an end user or hand them
back to the authoring agent as a retryable instruction.

  WorkflowPlanError    — base class; carries op / target_id / index context
  PlanValidationError  — malformed plan, task, variable or operation payload
  NotFoundError        — an operation references an id absent from the plan
  DuplicateError       — a create operation targets an id already present
"""

from __future__ import annotations

from typing import Iterable


class WorkflowPlanError(Exception):
    """Base class for plan errors.

    op:        Patch operation name (e.g. "deleteTask"), when raised by the patch engine.
    target_id: The task / variable id the failure is about, when known.
    index:     Position of the failing operation in the operations list.
    """

    def __init__(
        self,
        message: str,
        *,
        op: str | None = None,
        target_id: str | None = None,
        index: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.op = op
        self.target_id = target_id
        self.index = index

    def to_dict(self) -> dict:
        return {
            "type": type(self).__name__,
            "message": self.message,
            "op": self.op,
            "target_id": self.target_id,
            "index": self.index,
        }


class PlanValidationError(WorkflowPlanError):
    """Raised when a payload fails schema validation.

    issues: list of (dotted_path, message) pairs, one per problem found.
    label:  Prefix naming what was validated ("Workflow plan", "Invalid task data", ...).
    """

    def __init__(
        self,
        label: str,
        issues: Iterable[tuple[str, str]],
        **context,
    ) -> None:
        self.label = label
        self.issues: list[tuple[str, str]] = list(issues)
        super().__init__(format_issues(label, self.issues), **context)

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["issues"] = [{"path": p, "message": m} for p, m in self.issues]
        return d


class NotFoundError(WorkflowPlanError):
    """Raised when updateX / deleteX targets an id that is not in the plan."""


class DuplicateError(WorkflowPlanError):
    """Raised when createX targets an id that already exists in the plan."""


def format_issues(label: str, issues: list[tuple[str, str]]) -> str:
    """Render issues as one human-readable block.

    Example::

        Workflow plan validation failed:
        [tasks.0.toolsets]: Input should be a valid list
    """
    lines = [f"[{path}]: {message}" for path, message in issues]
    return f"{label} validation failed:\n" + "\n".join(lines)
