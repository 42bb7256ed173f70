import pytest

from stardeck.domain.deploy import (
    DeploySession,
    DeployStep,
    IllegalTransition,
    SessionClosed,
    Stage,
    StepOutput,
)


def test_stages_cannot_be_skipped():
    session = DeploySession()
    session.advance(Stage.PULL)
    with pytest.raises(IllegalTransition):
        session.advance(Stage.CREATE)


def test_replace_only_follows_received():
    session = DeploySession()
    session.advance(Stage.PULL)
    with pytest.raises(IllegalTransition):
        session.advance(Stage.REPLACE)


def test_event_must_belong_to_current_stage():
    session = DeploySession()
    session.advance(Stage.PULL)
    with pytest.raises(IllegalTransition):
        session.record(DeployStep(Stage.CREATE, "Creating container..."))


def test_error_step_closes_session():
    session = DeploySession()
    session.advance(Stage.PULL)
    session.record(DeployStep(Stage.PULL, "Failed to pull image: boom", error=True))

    assert session.failed
    with pytest.raises(SessionClosed):
        session.record(StepOutput(Stage.FAILED, "late output"))
    with pytest.raises(IllegalTransition):
        session.advance(Stage.VOLUMES)


def test_complete_step_closes_session():
    session = DeploySession()
    for stage in (Stage.PULL, Stage.VOLUMES, Stage.CREATE, Stage.START, Stage.COMPLETE):
        session.advance(stage)
    session.record(DeployStep(Stage.COMPLETE, "Container deployed successfully!", complete=True))

    assert not session.failed
    with pytest.raises(SessionClosed):
        session.record(DeployStep(Stage.COMPLETE, "again", complete=True))


def test_wire_format():
    assert DeployStep(Stage.PULL, "Checking for image...").to_wire() == {
        "step": "pull", "message": "Checking for image...", "error": False,
    }
    assert DeployStep(Stage.CREATE, "Container created", complete=True, container_id="abc").to_wire() == {
        "step": "create", "message": "Container created", "error": False, "complete": True, "container_id": "abc",
    }
    assert StepOutput(Stage.PULL, "7: Pulling fs layer").to_wire() == {
        "step": "pull", "message": "7: Pulling fs layer", "error": False, "output": True,
    }
