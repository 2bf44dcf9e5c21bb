"""
Unit Tests for Turn Plans
"""

import os
import random
import sys

import pytest

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "conversation_tutor", "src"))

from conversation_tutor.business_modes import BusinessMode, business_directive
from conversation_tutor.phase_engine import directive_for
from conversation_tutor.session_manager import SessionStore
from conversation_tutor.turn_plan import (
    BusinessModePlan,
    NormalPhasePlan,
    plan_turn,
    render_directive,
    uses_business_mode,
)


@pytest.fixture
def session(curriculum, clock):
    return SessionStore(curriculum, rng=random.Random(1), clock=clock).get_or_create("k")


def test_no_mode_gives_normal_plan(curriculum, session):
    plan = plan_turn(curriculum, session, None, "hi")

    assert isinstance(plan, NormalPhasePlan)
    assert plan.phase == session.phase
    assert plan.topic == session.topic
    assert render_directive(plan) == directive_for(curriculum, session, "hi")
    assert not uses_business_mode(plan)


def test_mode_wins_over_phase(curriculum, session):
    plan = plan_turn(curriculum, session, BusinessMode.SALES, "hi", auto_start=True)

    assert isinstance(plan, BusinessModePlan)
    assert plan.auto_start
    assert render_directive(plan) == business_directive(BusinessMode.SALES, auto_start=True)
    assert uses_business_mode(plan)


def test_unknown_plan_type_is_rejected():
    with pytest.raises(TypeError):
        render_directive("warmup")
    with pytest.raises(TypeError):
        uses_business_mode(None)
