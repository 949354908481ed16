"""Workflow definition models.

A workflow is a directed graph of steps. Each step is identified by its
(status, progress) pair and declares the actions that move a project to
another step. These models only describe definitions; they hold no runtime
project state and perform no I/O.

The persisted wire format uses camelCase keys (``stepName``,
``targetStatus``...). Models accept both camelCase and snake_case on input
and dump camelCase with ``to_document()``.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

TERMINAL_STATUSES = frozenset({"Completed", "Canceled"})


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_document(self) -> Dict[str, Any]:
        """Dump to the persisted JSON shape."""
        return self.model_dump(mode="json", by_alias=True)


class TransitionNotification(_CamelModel):
    """Notification template attached to a transition.

    Attributes:
        division: Role(s) to notify. A single role, a list of roles, or None.
        message: Template with ``{placeholder}`` tokens.
    """

    division: Union[str, List[str], None] = None
    message: str = ""

    def recipients(self) -> List[str]:
        """Normalise ``division`` to a list of non-empty role names."""
        if self.division is None:
            return []
        if isinstance(self.division, str):
            return [self.division] if self.division else []
        return [role for role in self.division if role]


class WorkflowStepTransition(_CamelModel):
    """Full replacement state applied to a project by one action."""

    target_status: str
    target_assigned_division: str = ""
    target_next_action_description: Optional[str] = None
    target_progress: int = Field(ge=0, le=100)
    notification: Optional[TransitionNotification] = None

    @property
    def target_key(self) -> tuple[str, int]:
        return (self.target_status, self.target_progress)

    @property
    def is_terminal_target(self) -> bool:
        return self.target_status in TERMINAL_STATUSES


class WorkflowStep(_CamelModel):
    """One node of a workflow graph.

    ``transitions`` is None for terminal steps (Completed / Canceled).
    An empty ``assigned_division`` means nobody is responsible.
    """

    step_name: str
    status: str
    assigned_division: str = ""
    progress: int = Field(ge=0, le=100)
    next_action_description: Optional[str] = None
    transitions: Optional[Dict[str, WorkflowStepTransition]] = None

    @property
    def key(self) -> tuple[str, int]:
        """Identity of the step inside its workflow."""
        return (self.status, self.progress)

    @property
    def is_terminal(self) -> bool:
        return self.transitions is None

    def actions(self) -> List[str]:
        """Declared action names, in definition order."""
        return list(self.transitions or {})


class Workflow(_CamelModel):
    """A named workflow definition.

    Step order is kept for display and for picking the first step; lookups
    never rely on array position.
    """

    id: str
    name: str
    description: str = ""
    protected: bool = False
    steps: List[WorkflowStep] = Field(default_factory=list)

    @field_validator("steps", mode="before")
    @classmethod
    def coerce_missing_steps(cls, value: Any) -> Any:
        """Stored records may carry ``"steps": null``; read it as empty."""
        return [] if value is None else value

    @field_validator("description", mode="before")
    @classmethod
    def coerce_missing_description(cls, value: Any) -> Any:
        return "" if value is None else value

    def step_keys(self) -> List[tuple[str, int]]:
        return [step.key for step in self.steps]

    def statuses(self) -> List[str]:
        """Distinct statuses in step order."""
        seen: Dict[str, None] = {}
        for step in self.steps:
            seen.setdefault(step.status, None)
        return list(seen)


__all__ = [
    "TERMINAL_STATUSES",
    "TransitionNotification",
    "WorkflowStepTransition",
    "WorkflowStep",
    "Workflow",
]
