"""
Turn Plans

A turn is either part of the guided conversation cycle or a business-mode
role-play. Each kind is its own plan type, and `render_directive` handles
every kind explicitly instead of branching on loose string fields.
"""

from dataclasses import dataclass
from typing import Optional, Union

from conversation_tutor.business_modes import BusinessMode, business_directive
from conversation_tutor.curriculum import Curriculum
from conversation_tutor.phase_engine import directive_for
from conversation_tutor.session_state import ConversationSession, Phase


@dataclass(frozen=True)
class NormalPhasePlan:
    """Guided-conversation turn: directive comes from the phase engine."""
    phase: Phase
    topic: Optional[str]
    subtopic: Optional[str]
    directive: str


@dataclass(frozen=True)
class BusinessModePlan:
    """Role-play turn: directive comes from the scenario persona."""
    mode: BusinessMode
    auto_start: bool
    directive: str


TurnPlan = Union[NormalPhasePlan, BusinessModePlan]


def plan_turn(
    curriculum: Curriculum,
    session: ConversationSession,
    mode: Optional[BusinessMode],
    message: str,
    auto_start: bool = False,
) -> TurnPlan:
    """Pick the plan for this turn: the active business mode wins over the phase engine."""
    if mode is not None:
        return BusinessModePlan(
            mode=mode,
            auto_start=auto_start,
            directive=business_directive(mode, auto_start=auto_start),
        )
    return NormalPhasePlan(
        phase=session.phase,
        topic=session.topic,
        subtopic=session.subtopic,
        directive=directive_for(curriculum, session, message),
    )


def render_directive(plan: TurnPlan) -> str:
    """
    Return the directive text of a plan.

    Raises:
        TypeError: If given anything other than a known plan type.
    """
    if isinstance(plan, NormalPhasePlan):
        return plan.directive
    if isinstance(plan, BusinessModePlan):
        return plan.directive
    raise TypeError(f"Unknown turn plan: {type(plan).__name__}")


def uses_business_mode(plan: TurnPlan) -> bool:
    if isinstance(plan, BusinessModePlan):
        return True
    if isinstance(plan, NormalPhasePlan):
        return False
    raise TypeError(f"Unknown turn plan: {type(plan).__name__}")
