import pytest
from pydantic import ValidationError

from schemas.process_tree import END_REACHED, PathCursor, WalkthroughState
from services.walkthrough import MAIN_PATH, WalkthroughError, WalkthroughNavigator


def test_advance_reveals_next_then_reaches_end(make_step):
    navigator = WalkthroughNavigator([make_step("s1", 1), make_step("s2", 2, next_step_id=None)], [])
    state = navigator.start()
    assert state.paths[MAIN_PATH].cursor == 0

    state = navigator.advance(state, MAIN_PATH)
    assert state.paths[MAIN_PATH].cursor == 1
    assert [s.id for s in navigator.visible_steps(state, MAIN_PATH)] == ["s1", "s2"]

    state = navigator.advance(state, MAIN_PATH)
    assert state.paths[MAIN_PATH].cursor == END_REACHED
    assert state.paths[MAIN_PATH].end_reached

    again = navigator.advance(state, MAIN_PATH)
    assert again.paths[MAIN_PATH].cursor == END_REACHED


def test_transitions_do_not_touch_previous_state(make_step):
    navigator = WalkthroughNavigator([make_step("s1", 1), make_step("s2", 2)], [])
    state = navigator.start()

    advanced = navigator.advance(state, MAIN_PATH)

    assert state.paths[MAIN_PATH].cursor == 0
    assert advanced.paths[MAIN_PATH].cursor == 1


def test_materialize_stops_at_decision_and_loops(make_step, make_branch):
    steps = [
        make_step("s1", 1),
        make_step("s2", 2, is_decision=True),
        make_step("s3", 3),
        make_step("s4", 4, next_step_id="s3"),
    ]
    navigator = WalkthroughNavigator(steps, [make_branch("s2", "yes", "s3")])

    assert [s.id for s in navigator.materialize("s1")] == ["s1", "s2"]
    assert [s.id for s in navigator.materialize("s3")] == ["s3", "s4"]
    assert navigator.materialize(None) == []
    assert navigator.materialize("missing") == []


def test_missing_target_ends_path(make_step):
    navigator = WalkthroughNavigator([make_step("s1", 1, next_step_id="gone")], [])
    state = navigator.start()

    state = navigator.advance(state, MAIN_PATH)

    assert state.paths[MAIN_PATH].end_reached


def test_fork_opens_both_paths(admission_guide):
    navigator = WalkthroughNavigator(admission_guide.steps, admission_guide.branches)
    state = navigator.advance(navigator.start(), MAIN_PATH)

    decision = navigator.pending_decision(state, MAIN_PATH)
    assert decision.id == "step-sample-1-2"
    # advancing on a decision does nothing, forking moves on
    assert navigator.advance(state, MAIN_PATH) == state

    state = navigator.fork(state, MAIN_PATH, decision.id)

    yes_path = state.paths["main-yes"]
    no_path = state.paths["main-no"]
    assert yes_path.start_step_id == "step-sample-1-3"
    assert yes_path.cursor == 0
    assert yes_path.forked_from == "step-sample-1-2"
    assert yes_path.branch_description == "Student meets eligibility criteria"
    assert no_path.start_step_id is None
    assert no_path.cursor == END_REACHED
    assert navigator.pending_decision(state, MAIN_PATH) is None


def test_nested_forks_follow_loop_back(admission_guide):
    navigator = WalkthroughNavigator(admission_guide.steps, admission_guide.branches)
    state = navigator.advance(navigator.start(), MAIN_PATH)
    state = navigator.fork(state, MAIN_PATH, "step-sample-1-2")
    state = navigator.fork(state, "main-yes", "step-sample-1-3")
    state = navigator.fork(state, "main-yes-no", "step-sample-1-5")

    assert set(state.paths) == {
        "main", "main-yes", "main-no",
        "main-yes-yes", "main-yes-no",
        "main-yes-no-yes", "main-yes-no-no",
    }
    # the retry path starts fresh at Submit Documents
    assert [s.id for s in navigator.visible_steps(state, "main-yes-no-yes")] == ["step-sample-1-3"]

    state = navigator.advance(state, "main-yes-yes")
    assert state.paths["main-yes-yes"].end_reached


def test_fork_keeps_existing_cursors(admission_guide):
    navigator = WalkthroughNavigator(admission_guide.steps, admission_guide.branches)
    state = navigator.advance(navigator.start(), MAIN_PATH)
    state = navigator.fork(state, MAIN_PATH, "step-sample-1-2")
    state = state.with_path("main-yes", state.paths["main-yes"].model_copy(update={"cursor": END_REACHED}))

    refork = navigator.fork(state, MAIN_PATH, "step-sample-1-2")

    assert refork.paths["main-yes"].cursor == END_REACHED


def test_fork_rejects_invalid_requests(admission_guide):
    navigator = WalkthroughNavigator(admission_guide.steps, admission_guide.branches)
    state = navigator.start()

    with pytest.raises(WalkthroughError):
        navigator.fork(state, MAIN_PATH, "step-sample-1-2")  # not revealed yet
    with pytest.raises(WalkthroughError):
        navigator.fork(state, MAIN_PATH, "step-sample-1-1")  # not a decision
    with pytest.raises(WalkthroughError):
        navigator.fork(state, "main-yes", "step-sample-1-2")  # unknown path
    with pytest.raises(WalkthroughError):
        navigator.advance(state, "nowhere")


def test_reset_keeps_only_main(admission_guide):
    navigator = WalkthroughNavigator(admission_guide.steps, admission_guide.branches)
    state = navigator.advance(navigator.start(), MAIN_PATH)
    state = navigator.fork(state, MAIN_PATH, "step-sample-1-2")

    state = navigator.reset(state)

    assert list(state.paths) == [MAIN_PATH]
    assert state.paths[MAIN_PATH].cursor == 0
    assert state.paths[MAIN_PATH].start_step_id == "step-sample-1-1"


def test_empty_process_starts_at_end():
    navigator = WalkthroughNavigator([], [])

    state = navigator.start()

    assert state.paths[MAIN_PATH].end_reached
    assert navigator.visible_steps(state, MAIN_PATH) == []


def test_state_round_trips_through_json(admission_guide):
    navigator = WalkthroughNavigator(admission_guide.steps, admission_guide.branches)
    state = navigator.fork(navigator.advance(navigator.start(), MAIN_PATH), MAIN_PATH, "step-sample-1-2")

    restored = WalkthroughState.model_validate_json(state.model_dump_json())

    assert restored == state
    assert navigator.advance(restored, "main-yes") == navigator.advance(state, "main-yes")


def test_cursor_below_end_sentinel_is_rejected():
    with pytest.raises(ValidationError):
        PathCursor(start_step_id="s1", cursor=-3)
    with pytest.raises(ValidationError):
        WalkthroughState.model_validate({"paths": {MAIN_PATH: {"start_step_id": "s1", "cursor": -2}}})

    assert PathCursor(start_step_id="s1", cursor=END_REACHED).end_reached
