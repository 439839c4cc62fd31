from __future__ import annotations

import pytest
from helpers import make_request

from collection_runner.collection import Environment
from collection_runner.errors import SessionStateError
from collection_runner.models import ResultStatus, RunStatus
from collection_runner.session import RunSession, generate_run_id, new_request_result


def _requests(count: int):
    return [make_request(f"r{i}", f"http://api.test/{i}") for i in range(count)]


def test_start_moves_pending_to_running() -> None:
    session = RunSession("Demo")
    assert session.status == RunStatus.PENDING
    assert not session.is_terminal()

    session.start(3)

    assert session.status == RunStatus.RUNNING
    assert session.total_requests == 3
    assert session.current_index == 0
    assert session.start_time is not None
    assert session.progress() == "0/3"


def test_add_result_advances_the_index() -> None:
    requests = _requests(2)
    session = RunSession("Demo")
    session.start(2)

    session.add_result(new_request_result(requests[0], 0))

    assert session.current_index == 1
    assert len(session.results) == 1


@pytest.mark.parametrize("finish", ["complete", "stop", "cancel"])
def test_terminal_states_are_final(finish: str) -> None:
    session = RunSession("Demo")
    session.start(1)
    getattr(session, finish)()

    assert session.is_terminal()
    assert session.end_time is not None
    with pytest.raises(SessionStateError):
        session.complete()
    with pytest.raises(SessionStateError):
        session.cancel()
    with pytest.raises(SessionStateError):
        session.add_result(new_request_result(make_request("x", "http://x"), 0))


def test_cannot_start_twice_or_finish_before_start() -> None:
    session = RunSession("Demo")
    with pytest.raises(SessionStateError):
        session.complete()
    session.start(1)
    with pytest.raises(SessionStateError):
        session.start(1)


def test_cancel_marks_the_unexecuted_requests_skipped() -> None:
    requests = _requests(4)
    session = RunSession("Demo")
    session.start(4)
    session.add_result(new_request_result(requests[0], 0))

    session.cancel(requests)

    assert session.status == RunStatus.CANCELLED
    assert [r.status for r in session.results[1:]] == [ResultStatus.SKIPPED] * 3
    assert [r.index for r in session.results] == [0, 1, 2, 3]
    assert [r.request.name for r in session.results[1:]] == ["r1", "r2", "r3"]


def test_results_cannot_outgrow_total_requests() -> None:
    requests = _requests(1)
    session = RunSession("Demo")
    session.start(1)
    session.add_result(new_request_result(requests[0], 0))

    with pytest.raises(SessionStateError):
        session.add_result(new_request_result(requests[0], 1))


def test_session_env_is_a_copy_of_the_environment() -> None:
    env = Environment(name="dev", variables={"base": "http://api.test"})
    session = RunSession("Demo", environment=env)

    session.set_session_env_variable("base", "http://other.test")
    session.set_session_env_variable("token", "abc")

    assert env.variables["base"].value == "http://api.test"
    assert "token" not in env.variables
    assert session.env_variables() == {"base": "http://other.test", "token": "abc"}
    assert session.environment_name == "dev"


def test_setting_an_inactive_variable_reactivates_it() -> None:
    env = Environment.model_validate({"variables": {"token": {"value": "old", "active": False}}})
    session = RunSession("Demo", environment=env)
    assert session.env_variables() == {}

    session.set_session_env_variable("token", "new")
    assert session.env_variables() == {"token": "new"}

    session.unset_session_env_variable("token")
    session.unset_session_env_variable("never-set")
    assert session.env_variables() == {}


def test_run_id_is_sanitized() -> None:
    run_id = generate_run_id("My API: v2 (staging)")

    assert run_id.startswith("run_")
    assert run_id.endswith("_my_api_v2_staging")
