"""Run lifecycle status and outcome."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .resources import ProvisionedResources


class InvalidTransitionError(ValueError):
    """Raised when a run is moved to a status it cannot reach."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Invalid run transition: {current} -> {target}")


class RunStatus(str, Enum):
    """Run lifecycle status."""

    NOT_STARTED = "not_started"
    GROUP_CREATED = "group_created"
    PROVISIONING = "provisioning"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CLEANING_UP = "cleaning_up"
    DONE = "done"


# Cleanup is reachable from both terminal provisioning states and only from them.
ALLOWED_TRANSITIONS: Dict[RunStatus, frozenset] = {
    RunStatus.NOT_STARTED: frozenset({RunStatus.GROUP_CREATED}),
    RunStatus.GROUP_CREATED: frozenset({RunStatus.PROVISIONING}),
    RunStatus.PROVISIONING: frozenset({RunStatus.SUCCEEDED, RunStatus.FAILED}),
    RunStatus.SUCCEEDED: frozenset({RunStatus.CLEANING_UP}),
    RunStatus.FAILED: frozenset({RunStatus.CLEANING_UP}),
    RunStatus.CLEANING_UP: frozenset({RunStatus.DONE}),
    RunStatus.DONE: frozenset(),
}


class CleanupOutcome(str, Enum):
    """What happened when the run tried to delete its resource group."""

    PENDING = "pending"
    DELETED = "deleted"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class RunResult:
    """Result of a provisioning run."""

    status: RunStatus = RunStatus.NOT_STARTED
    resources: ProvisionedResources = field(default_factory=ProvisionedResources)
    error: Optional[str] = None
    error_details: Optional[Dict[str, Any]] = None
    cleanup: CleanupOutcome = CleanupOutcome.PENDING
    cleanup_error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        """True when provisioning finished without error."""
        return self.error is None and self.status in (
            RunStatus.SUCCEEDED,
            RunStatus.CLEANING_UP,
            RunStatus.DONE,
        )

    def advance(self, target: RunStatus) -> None:
        """
        Move the run to the next status.

        Args:
            target: Status to move to

        Raises:
            InvalidTransitionError: If target is not reachable from the current status
        """
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.status.value, target.value)
        self.status = target

    def record_failure(self, error: BaseException) -> None:
        """Store a provisioning error the same way for every step."""
        self.error = str(error)
        self.error_details = {
            "type": type(error).__name__,
            "message": str(error),
        }
