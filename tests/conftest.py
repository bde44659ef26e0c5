import pytest

from schemas.process_guide import ProcessStep, StepBranch
from services.sample_guides import SampleGuidesService


@pytest.fixture
def make_step():
    """Build a ProcessStep; leave out next_step_id to keep it unset."""
    def _make(step_id, number, **kwargs):
        kwargs.setdefault("title", f"Step {number}")
        kwargs.setdefault("process_id", "p1")
        return ProcessStep(id=step_id, step_number=number, **kwargs)
    return _make


@pytest.fixture
def make_branch():
    def _make(step_id, condition, next_step_id, description="", branch_id=None):
        return StepBranch(
            id=branch_id or f"b-{step_id}-{condition}",
            step_id=step_id,
            condition=condition,
            next_step_id=next_step_id,
            description=description,
        )
    return _make


@pytest.fixture
def admission_guide():
    return SampleGuidesService().get("process-sample-1")
