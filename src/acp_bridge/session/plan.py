"""Execution plans shown to the user while a prompt is worked on.

A plan is an ordered list of steps. Steps only move forward
(pending -> in_progress -> completed | failed), and at most one step is in
progress at a time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from acp_bridge.errors import PlanTransitionError
from acp_bridge.session.complexity import ComplexityAnalysis
from acp_bridge.types import PlanEntry, PlanEntryPriority, PlanEntryStatus


class PlanStepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


_TRANSITIONS: dict[PlanStepStatus, frozenset[PlanStepStatus]] = {
    PlanStepStatus.PENDING: frozenset({PlanStepStatus.IN_PROGRESS}),
    PlanStepStatus.IN_PROGRESS: frozenset({PlanStepStatus.COMPLETED, PlanStepStatus.FAILED}),
    PlanStepStatus.COMPLETED: frozenset(),
    PlanStepStatus.FAILED: frozenset(),
}


@dataclass
class PlanStep:
    title: str
    description: str
    status: PlanStepStatus = PlanStepStatus.PENDING
    error: str | None = None

    def move_to(self, status: PlanStepStatus, error: str | None = None) -> None:
        """Advance this step. Raises PlanTransitionError on an illegal move."""
        if status not in _TRANSITIONS[self.status]:
            raise PlanTransitionError(
                f"Cannot move plan step {self.title!r} from {self.status.value} to {status.value}"
            )
        self.status = status
        if error is not None:
            self.error = error

    def to_entry(self) -> PlanEntry:
        # The wire format has no failed state; report it as pending with the reason
        content = f"{self.title}: {self.description}"
        if self.status is PlanStepStatus.FAILED:
            status = PlanEntryStatus.PENDING
            if self.error:
                content = f"{content} (failed: {self.error})"
        else:
            status = PlanEntryStatus(self.status.value)
        return PlanEntry(content=content, priority=PlanEntryPriority.MEDIUM, status=status)


@dataclass
class ExecutionPlan:
    steps: list[PlanStep] = field(default_factory=list)

    @property
    def current(self) -> PlanStep | None:
        """The in-progress step, if any."""
        return next((s for s in self.steps if s.status is PlanStepStatus.IN_PROGRESS), None)

    def next_pending(self) -> PlanStep | None:
        return next((s for s in self.steps if s.status is PlanStepStatus.PENDING), None)

    def start(self, step: PlanStep) -> None:
        if self.current is not None:
            raise PlanTransitionError("Another plan step is already in progress")
        step.move_to(PlanStepStatus.IN_PROGRESS)

    def advance(self) -> bool:
        """Complete the current step and start the next pending one.

        Returns:
            False when no step was in progress (nothing changed).
        """
        current = self.current
        if current is None:
            return False
        current.move_to(PlanStepStatus.COMPLETED)
        following = self.next_pending()
        if following is not None:
            following.move_to(PlanStepStatus.IN_PROGRESS)
        return True

    def fail_current(self, error: str) -> bool:
        """Mark the current step failed. Returns False when none was in progress."""
        current = self.current
        if current is None:
            return False
        current.move_to(PlanStepStatus.FAILED, error=error)
        return True

    def to_entries(self) -> list[PlanEntry]:
        return [step.to_entry() for step in self.steps]


def build_plan(analysis: ComplexityAnalysis) -> ExecutionPlan:
    """Fixed plan template: three phases for larger requests, one otherwise."""
    if analysis.estimated_steps >= 3:
        steps = [
            PlanStep("Analyze requirements and approach", analysis.summary),
            PlanStep("Execute main implementation", "Process and execute the required changes"),
            PlanStep("Validate and finalize changes", "Verify and complete the implementation"),
        ]
    else:
        steps = [PlanStep(analysis.summary, "Process the request")]

    plan = ExecutionPlan(steps=steps)
    plan.start(steps[0])
    return plan
