"""
Unit tests for Cmi5Session.

The session runs against FakeTransport (tests/conftest.py), which records
every statement instead of talking to an LRS.
"""

from dataclasses import replace
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from cmi5_runtime.core.constants import Cmi5Verbs
from cmi5_runtime.core.errors import ConfigurationError, InvalidStateError, MasteryNotMetError, TransportError
from cmi5_runtime.core.launch import LaunchMode, SessionState
from cmi5_runtime.integrations.lrs_client import LrsClient
from cmi5_runtime.session import Cmi5Session, SessionStatus
from cmi5_runtime.statements.builder import SendOptions
from cmi5_runtime.statements.defined import MoveOnOptions, objective_activity
from cmi5_runtime.statements.interactions import NumericRange


def launch_data(launch_mode="Normal", mastery_score=None):
    data = {"contextTemplate": {}, "launchMode": launch_mode, "moveOn": "CompletedAndPassed"}
    if mastery_score is not None:
        data["masteryScore"] = mastery_score
    return data


async def started_session(make_transport, launch_parameters, **launch_data_kwargs):
    transport = make_transport(launch_data=launch_data(**launch_data_kwargs))
    session = Cmi5Session(launch_parameters, transport=transport)
    await session.initialize()
    transport.sent.clear()
    return session, transport


class TestInitialize:
    """Tests for Cmi5Session.initialize()."""

    @pytest.mark.asyncio
    async def test_fresh_launch(self, launch_parameters, fake_transport):
        session = Cmi5Session(launch_parameters, transport=fake_transport)

        ids = await session.initialize()

        assert ids == ["lrs-1"]
        assert session.status is SessionStatus.INITIALIZED
        assert fake_transport.fetch_calls == [launch_parameters.fetch]
        assert fake_transport.authorized_with == fake_transport.auth_token
        assert fake_transport.state_requests == [(
            launch_parameters.actor,
            launch_parameters.activity_id,
            "LMS.LaunchData",
            launch_parameters.registration,
        )]
        assert fake_transport.profile_requests == [(launch_parameters.actor, "cmi5LearnerPreferences")]
        assert fake_transport.sent_verbs == ["initialized"]
        assert session.launch_data.launch_mode is LaunchMode.NORMAL
        assert session.is_authenticated
        assert session.auth_token == fake_transport.auth_token

    @pytest.mark.asyncio
    async def test_accessors_empty_before_initialize(self, launch_parameters, fake_transport):
        session = Cmi5Session(launch_parameters, transport=fake_transport)

        assert session.launch_data is None
        assert session.initialized_date is None
        assert session.auth_token is None
        assert session.is_authenticated is False
        assert session.session_state is None

    @pytest.mark.asyncio
    async def test_resume_skips_fetch_and_initialized(self, launch_parameters, fake_transport):
        initialized_date = datetime.now(UTC) - timedelta(minutes=10)
        session = Cmi5Session(launch_parameters, transport=fake_transport)

        ids = await session.initialize(SessionState(auth_token="persisted", initialized_date=initialized_date))

        assert ids == []
        assert fake_transport.fetch_calls == []
        assert fake_transport.sent == []
        assert fake_transport.authorized_with == "persisted"
        assert session.initialized_date == initialized_date
        assert session.session_state == SessionState(auth_token="persisted", initialized_date=initialized_date)

    @pytest.mark.asyncio
    async def test_resumed_duration_uses_persisted_date(self, launch_parameters, fake_transport):
        session = Cmi5Session(launch_parameters, transport=fake_transport)
        await session.initialize(SessionState(
            auth_token="persisted",
            initialized_date=datetime.now(UTC) - timedelta(seconds=125),
        ))

        await session.complete()

        assert fake_transport.sent[0].result["duration"] == "PT2M5S"

    @pytest.mark.asyncio
    async def test_learner_preferences_failure_defaults(self, make_transport, launch_parameters):
        transport = make_transport(learner_preferences=TransportError("404", status_code=404))
        session = Cmi5Session(launch_parameters, transport=transport)

        await session.initialize()

        assert session.learner_preferences.language_preference is None
        assert session.learner_preferences.audio_preference is None

    @pytest.mark.asyncio
    async def test_learner_preferences_loaded(self, make_transport, launch_parameters):
        transport = make_transport(learner_preferences={"languagePreference": "fr-FR", "audioPreference": "on"})
        session = Cmi5Session(launch_parameters, transport=transport)

        await session.initialize()

        assert session.learner_preferences.language_preference == "fr-FR"
        assert session.learner_preferences.audio_preference == "on"

    @pytest.mark.asyncio
    async def test_launch_token_skips_fetch(self, launch_parameters, fake_transport):
        params = replace(launch_parameters, auth_token="bGF1bmNoOnRva2Vu")
        session = Cmi5Session(params, transport=fake_transport)

        await session.initialize()

        assert fake_transport.fetch_calls == []
        assert fake_transport.authorized_with == "bGF1bmNoOnRva2Vu"
        assert session.auth_token == "bGF1bmNoOnRva2Vu"
        assert fake_transport.sent_verbs == ["initialized"]

    @pytest.mark.asyncio
    async def test_malformed_launch_data(self, make_transport, launch_parameters):
        transport = make_transport(launch_data={"contextTemplate": {}, "launchMode": "Normal"})
        session = Cmi5Session(launch_parameters, transport=transport)

        with pytest.raises(ConfigurationError) as exc_info:
            await session.initialize()

        assert exc_info.value.field == "moveOn"
        assert "LMS.LaunchData" in str(exc_info.value)
        assert session.status is SessionStatus.UNINITIALIZED
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_failed_launch_data_fetch_leaves_session_unauthenticated(self, make_transport, launch_parameters):
        transport = make_transport(launch_data=TransportError("state unavailable", status_code=503))
        session = Cmi5Session(launch_parameters, transport=transport)

        with pytest.raises(TransportError):
            await session.initialize()

        assert session.is_authenticated is False
        assert session.auth_token is None
        assert session.launch_data is None
        assert session.status is SessionStatus.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_initialize_twice_rejected(self, launch_parameters, fake_transport):
        session = Cmi5Session(launch_parameters, transport=fake_transport)
        await session.initialize()

        with pytest.raises(InvalidStateError):
            await session.initialize()


class TestLaunchModeGating:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode", ["Browse", "Review", None])
    @pytest.mark.parametrize("operation,verb", [("complete", "COMPLETED"), ("pass_", "PASSED"), ("fail", "FAILED")])
    async def test_rejected_before_any_send(self, make_transport, launch_parameters, mode, operation, verb):
        session, transport = await started_session(make_transport, launch_parameters, launch_mode=mode)

        with pytest.raises(InvalidStateError) as exc_info:
            await getattr(session, operation)()

        assert str(exc_info.value) == f"Can only send {verb} when launchMode is 'Normal'"
        assert transport.sent == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation", ["complete", "pass_", "fail"])
    async def test_allowed_in_normal_mode(self, make_transport, launch_parameters, operation):
        session, transport = await started_session(make_transport, launch_parameters)

        ids = await getattr(session, operation)()

        assert ids == ["lrs-2"]
        assert len(transport.sent) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode", ["Browse", "Review"])
    async def test_progress_and_terminate_in_any_mode(self, make_transport, launch_parameters, mode):
        session, transport = await started_session(make_transport, launch_parameters, launch_mode=mode)

        await session.progress(50)
        await session.interaction_true_false("test-1", "q-1", True)
        await session.terminate()

        assert transport.sent_verbs == ["progressed", "answered", "terminated"]

    @pytest.mark.asyncio
    async def test_move_on_rejected_outside_normal(self, make_transport, launch_parameters):
        session, transport = await started_session(make_transport, launch_parameters, launch_mode="Review")

        with pytest.raises(InvalidStateError, match="Can only send FAILED when launchMode is 'Normal'"):
            await session.move_on(MoveOnOptions(score=0.9))

        assert transport.sent == []


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_operations_before_initialize(self, launch_parameters, fake_transport):
        session = Cmi5Session(launch_parameters, transport=fake_transport)

        with pytest.raises(InvalidStateError, match="before initialize"):
            await session.progress(10)
        with pytest.raises(InvalidStateError, match="before initialize"):
            await session.terminate()

    @pytest.mark.asyncio
    async def test_no_statements_after_terminate(self, make_transport, launch_parameters):
        session, transport = await started_session(make_transport, launch_parameters)
        await session.terminate()

        assert session.status is SessionStatus.TERMINATED
        with pytest.raises(InvalidStateError, match="after terminate"):
            await session.complete()
        with pytest.raises(InvalidStateError, match="after terminate"):
            await session.interaction_other("t", "q", "x")
        assert transport.sent_verbs == ["terminated"]

    @pytest.mark.asyncio
    async def test_failed_terminate_can_be_retried(self, make_transport, launch_parameters):
        session, transport = await started_session(make_transport, launch_parameters)
        transport.fail_on_send = {0}

        with pytest.raises(TransportError):
            await session.terminate()

        assert session.status is SessionStatus.INITIALIZED
        transport.fail_on_send = set()
        await session.terminate()
        assert session.status is SessionStatus.TERMINATED

    @pytest.mark.asyncio
    async def test_failed_initialized_send_can_be_retried(self, launch_parameters, fake_transport):
        session = Cmi5Session(launch_parameters, transport=fake_transport)
        fake_transport.fail_on_send = {0}

        with pytest.raises(TransportError):
            await session.initialize()

        assert session.status is SessionStatus.UNINITIALIZED
        assert session.is_authenticated is False
        assert session.session_state is None

        fake_transport.fail_on_send = set()
        ids = await session.initialize()

        assert ids == ["lrs-1"]
        assert fake_transport.sent_verbs == ["initialized"]
        assert session.status is SessionStatus.INITIALIZED


class TestClose:
    @pytest.mark.asyncio
    async def test_closes_lrs_client_it_created(self, launch_parameters, monkeypatch):
        closed = []

        async def mock_aclose(client):
            closed.append(client)

        monkeypatch.setattr(httpx.AsyncClient, "aclose", mock_aclose)

        async with Cmi5Session(launch_parameters) as session:
            assert isinstance(session.transport, LrsClient)

        assert closed == [session.transport.client]

    @pytest.mark.asyncio
    async def test_injected_transport_left_open(self, launch_parameters, monkeypatch):
        closed = []

        async def mock_aclose(client):
            closed.append(client)

        monkeypatch.setattr(httpx.AsyncClient, "aclose", mock_aclose)
        lrs = LrsClient(launch_parameters.endpoint)

        async with Cmi5Session(launch_parameters, transport=lrs):
            pass

        assert closed == []


class TestPassAndFail:
    @pytest.mark.asyncio
    async def test_mastery_gate(self, make_transport, launch_parameters):
        session, transport = await started_session(make_transport, launch_parameters, mastery_score=0.5)

        with pytest.raises(MasteryNotMetError):
            await session.pass_(0.4)
        with pytest.raises(MasteryNotMetError):
            await session.pass_()
        await session.pass_(0.5)

        assert transport.sent_verbs == ["passed"]
        assert transport.sent[0].result["score"] == {"scaled": 0.5}

    @pytest.mark.asyncio
    async def test_pass_objective_and_options(self, make_transport, launch_parameters):
        session, transport = await started_session(make_transport, launch_parameters)
        objective = objective_activity("https://example.com/objectives/1")
        seen = []

        def transform(statement):
            seen.append(statement.id)
            return statement

        await session.pass_(0.8, objective=objective, options=SendOptions(transform=transform))

        assert transport.sent[0].context["contextActivities"]["parent"] == [objective]
        assert seen == [transport.sent[0].id]

    @pytest.mark.asyncio
    async def test_fail_with_score(self, make_transport, launch_parameters):
        session, transport = await started_session(make_transport, launch_parameters, mastery_score=0.8)

        await session.fail(0.2)

        assert transport.sent[0].verb == Cmi5Verbs.FAILED
        assert transport.sent[0].result["score"] == {"scaled": 0.2}


class TestMoveOn:
    @pytest.mark.asyncio
    async def test_passed_sequence(self, make_transport, launch_parameters):
        session, transport = await started_session(make_transport, launch_parameters, mastery_score=0.7)

        ids = await session.move_on(MoveOnOptions(score=0.9))

        assert transport.sent_verbs == ["passed", "completed", "terminated"]
        assert ids == ["lrs-2", "lrs-3", "lrs-4"]
        assert len({statement.id for statement in transport.sent}) == 3
        assert session.status is SessionStatus.TERMINATED

    @pytest.mark.asyncio
    async def test_failed_sequence(self, make_transport, launch_parameters):
        session, transport = await started_session(make_transport, launch_parameters, mastery_score=0.7)

        ids = await session.move_on(MoveOnOptions(score=0.5))

        assert transport.sent_verbs == ["failed", "completed", "terminated"]
        assert ids == ["lrs-2", "lrs-3", "lrs-4"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("score,first_verb", [(0.9, "passed"), (0.5, "failed")])
    async def test_disable_send_terminated(self, make_transport, launch_parameters, score, first_verb):
        session, transport = await started_session(make_transport, launch_parameters, mastery_score=0.7)

        ids = await session.move_on(MoveOnOptions(score=score, disable_send_terminated=True))

        assert transport.sent_verbs == [first_verb, "completed"]
        assert ids == ["lrs-2", "lrs-3"]
        assert session.status is SessionStatus.INITIALIZED

    @pytest.mark.asyncio
    async def test_score_without_mastery_goes_on_completed(self, make_transport, launch_parameters):
        session, transport = await started_session(make_transport, launch_parameters)
        order = []

        def transform(statement):
            order.append(("caller", statement.result.get("score")))
            return statement

        await session.move_on(MoveOnOptions(score=0.6, transform=transform))

        assert transport.sent_verbs == ["completed", "terminated"]
        assert transport.sent[0].result["score"] == {"scaled": 0.6}
        assert order == [("caller", {"scaled": 0.6})]

    @pytest.mark.asyncio
    async def test_rejected_send_halts_sequence(self, make_transport, launch_parameters):
        session, transport = await started_session(make_transport, launch_parameters, mastery_score=0.7)
        transport.fail_on_send = {1}

        with pytest.raises(TransportError):
            await session.move_on(MoveOnOptions(score=0.9))

        assert transport.sent_verbs == ["passed"]
        assert session.status is SessionStatus.INITIALIZED


class TestAllowedStatements:
    @pytest.mark.asyncio
    async def test_progress(self, make_transport, launch_parameters):
        session, transport = await started_session(make_transport, launch_parameters)

        await session.progress(75)

        assert transport.sent[0].result["extensions"] == {
            "https://w3id.org/xapi/cmi5/result/extensions/progress": 75
        }

    @pytest.mark.asyncio
    async def test_interaction_entry_points(self, make_transport, launch_parameters):
        session, transport = await started_session(make_transport, launch_parameters)

        await session.interaction_choice("t", "q1", ["a", "c"], ["a", "c"], choices=[{"id": "a"}, {"id": "c"}])
        await session.interaction_fill_in("t", "q2", ["x"])
        await session.interaction_long_fill_in("t", "q3", ["long answer"])
        await session.interaction_likert("t", "q4", "agree", scale=[{"id": "agree"}])
        await session.interaction_matching("t", "q5", {"a": "1", "b": "2"}, source=[{"id": "a"}], target=[{"id": "1"}])
        await session.interaction_performance("t", "q6", {"step1": 5}, {"step1": NumericRange(4, 6)}, steps=[{"id": "step1"}])
        await session.interaction_sequencing("t", "q7", ["b", "a"], ["a", "b"])
        await session.interaction_numeric("t", "q8", 3.5, {"exact": 3.5})
        await session.interaction_other("t", "q9", "raw", "raw")

        types = [statement.object["definition"]["interactionType"] for statement in transport.sent]
        assert types == [
            "choice", "fill-in", "long-fill-in", "likert", "matching",
            "performance", "sequencing", "numeric", "other",
        ]
        assert transport.sent[4].result["response"] == "a[.]1[,]b[.]2"
        assert transport.sent[5].object["definition"]["correctResponsesPattern"] == ["step1[.]4:6"]
        assert transport.sent[0].object["definition"]["choices"] == [{"id": "a"}, {"id": "c"}]

    @pytest.mark.asyncio
    async def test_generic_interaction(self, make_transport, launch_parameters):
        session, transport = await started_session(make_transport, launch_parameters)

        await session.interaction("t", "q", "custom", {"type": "http://example.com/custom"}, success=True)

        assert transport.sent[0].result == {"response": "custom", "success": True}
        assert transport.sent[0].object["id"].endswith("/test/t/question/q")

    @pytest.mark.asyncio
    async def test_send_statement_escape_hatch(self, make_transport, launch_parameters):
        session, transport = await started_session(make_transport, launch_parameters)

        await session.send_statement(
            {
                "verb": {"id": "http://adlnet.gov/expapi/verbs/experienced", "display": {"en-US": "experienced"}},
                "object": {"objectType": "Activity", "id": "https://example.com/page/3"},
                "context": {"registration": "ignored"},
            },
            SendOptions(transform=lambda s: s),
        )

        sent = transport.sent[0]
        assert sent.verb["id"] == "http://adlnet.gov/expapi/verbs/experienced"
        assert sent.context["registration"] == launch_parameters.registration
        assert sent.actor == launch_parameters.actor
