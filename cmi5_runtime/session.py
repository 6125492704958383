"""
cmi5 Session: the AU-side state machine.

    Uninitialized --initialize()--> Initialized[launchMode] --terminate()--> Terminated

The host creates one Cmi5Session per launch and passes it wherever
statements are recorded; there is no process-wide default session.
Statement construction is synchronous; the transport send is the only
await point, and at most one send per session is outstanding.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from enum import Enum
from typing import Any

from loguru import logger
from pydantic import ValidationError

from cmi5_runtime.core.constants import (
    LAUNCH_DATA_STATE_ID,
    LEARNER_PREFERENCES_PROFILE_ID,
    Cmi5Verbs,
)
from cmi5_runtime.core.durations import Period, as_utc, utc_now
from cmi5_runtime.core.errors import ConfigurationError, InvalidStateError
from cmi5_runtime.core.launch import (
    LaunchContext,
    LaunchData,
    LaunchParameters,
    LearnerPreferences,
    SessionState,
)
from cmi5_runtime.core.transport import Transport
from cmi5_runtime.statements import interactions
from cmi5_runtime.statements.builder import SendOptions, Statement, allowed_statement
from cmi5_runtime.statements.defined import (
    MoveOnOptions,
    ScoreInput,
    completed_statement,
    failed_statement,
    initialized_statement,
    iter_move_on,
    passed_statement,
    progressed_statement,
    terminated_statement,
)
from cmi5_runtime.statements.interactions import (
    InteractionComponent,
    InteractionEncoding,
    LanguageMap,
    NumericCriteria,
)


class SessionStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    TERMINATED = "terminated"


class Cmi5Session:
    """
    One launched attempt of an assignable unit.

    Launch data, learner preferences, the auth token and the
    initialization date are only meaningful after initialize(); before
    that the accessors return None.
    """

    def __init__(self, launch_parameters: LaunchParameters, transport: Transport | None = None):
        """
        Args:
            launch_parameters: Validated launch parameters
            transport: Transport to the LMS/LRS; defaults to an LrsClient
                for launch_parameters.endpoint
        """
        self._owned_client = None
        if transport is None:
            from cmi5_runtime.integrations.lrs_client import LrsClient

            transport = self._owned_client = LrsClient(launch_parameters.endpoint)
        self.launch_parameters = launch_parameters
        self.transport = transport
        self.status = SessionStatus.UNINITIALIZED
        self._launch_data: LaunchData | None = None
        self._learner_preferences: LearnerPreferences | None = None
        self._initialized_date: datetime | None = None
        self._auth_token: str | None = None

    async def __aenter__(self) -> Cmi5Session:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the LRS client this session created; an injected transport is left to its owner."""
        if self._owned_client is not None:
            await self._owned_client.close()

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def launch_data(self) -> LaunchData | None:
        return self._launch_data

    @property
    def learner_preferences(self) -> LearnerPreferences | None:
        return self._learner_preferences

    @property
    def initialized_date(self) -> datetime | None:
        return self._initialized_date

    @property
    def auth_token(self) -> str | None:
        return self._auth_token

    @property
    def is_authenticated(self) -> bool:
        return self._auth_token is not None

    @property
    def context(self) -> LaunchContext:
        if self._launch_data is None or self._initialized_date is None:
            raise InvalidStateError("Launch context is not available before initialize()")
        return LaunchContext(
            initialized_date=self._initialized_date,
            launch_parameters=self.launch_parameters,
            launch_data=self._launch_data,
        )

    @property
    def session_state(self) -> SessionState | None:
        """State the host should persist to resume this session after a reload."""
        if self._auth_token is None or self._initialized_date is None:
            return None
        return SessionState(auth_token=self._auth_token, initialized_date=self._initialized_date)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self, session_state: SessionState | None = None) -> list[str]:
        """
        Authenticate, load launch data and learner preferences, and send Initialized.

        Args:
            session_state: Persisted state from an earlier page load. When
                given, its token and initialization date are reused and no
                Initialized statement is sent.

        Returns:
            Ids of the Initialized statement (empty when resuming)

        Raises:
            ConfigurationError: If the LMS.LaunchData document is malformed
            TransportError: If a request fails; the session stays
                uninitialized and initialize() may be called again
        """
        if self.status != SessionStatus.UNINITIALIZED:
            raise InvalidStateError("Session has already been initialized")

        params = self.launch_parameters
        if session_state is not None:
            auth_token = session_state.auth_token
        else:
            auth_token = params.auth_token or await self.transport.fetch_auth_token(params.fetch)
        self.transport.authorize(auth_token)

        state = await self.transport.get_state(
            params.actor,
            params.activity_id,
            LAUNCH_DATA_STATE_ID,
            params.registration,
        )
        launch_data = self._parse_launch_data(state)
        learner_preferences = await self._fetch_learner_preferences()

        if session_state is not None:
            initialized_date = as_utc(session_state.initialized_date)
            statement_ids: list[str] = []
        else:
            initialized_date = utc_now()
            ctx = LaunchContext(
                initialized_date=initialized_date,
                launch_parameters=params,
                launch_data=launch_data,
            )
            statement_ids = await self._send(initialized_statement(ctx))

        self._auth_token = auth_token
        self._launch_data = launch_data
        self._learner_preferences = learner_preferences
        self._initialized_date = initialized_date
        self.status = SessionStatus.INITIALIZED
        if session_state is not None:
            logger.info(f"Resumed cmi5 session for registration {params.registration}")
        else:
            logger.info(
                f"Initialized cmi5 session for registration {params.registration} "
                f"(launchMode={launch_data.launch_mode})"
            )
        return statement_ids

    @staticmethod
    def _parse_launch_data(state: Any) -> LaunchData:
        try:
            return LaunchData.model_validate(state)
        except ValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(part) for part in error["loc"]) or LAUNCH_DATA_STATE_ID
            logger.error(f"Invalid {LAUNCH_DATA_STATE_ID} document: {e}")
            raise ConfigurationError(
                field,
                f"Invalid {LAUNCH_DATA_STATE_ID} document, `{field}`: {error['msg']}",
            ) from e

    async def _fetch_learner_preferences(self) -> LearnerPreferences:
        # The only tolerated failure: missing or unreadable preferences mean "none".
        try:
            profile = await self.transport.get_agent_profile(
                self.launch_parameters.actor,
                LEARNER_PREFERENCES_PROFILE_ID,
            )
            return LearnerPreferences.model_validate(profile or {})
        except Exception as e:
            logger.warning(f"Learner preferences unavailable, using defaults: {e}")
            return LearnerPreferences()

    def _require_active(self, operation: str) -> LaunchContext:
        if self.status == SessionStatus.UNINITIALIZED:
            raise InvalidStateError(f"Cannot {operation} before initialize()")
        if self.status == SessionStatus.TERMINATED:
            raise InvalidStateError(f"Cannot {operation} after terminate()")
        return self.context

    async def _send(self, statement: Statement, options: SendOptions | None = None) -> list[str]:
        if options is not None:
            statement = options.apply(statement)
        logger.debug(f"Sending {statement.verb.get('display', {}).get('en-US', statement.verb_id)} statement {statement.id}")
        return await self.transport.send_statement(statement)

    # =========================================================================
    # cmi5 defined statements
    # =========================================================================

    async def complete(self, options: SendOptions | None = None) -> list[str]:
        ctx = self._require_active("complete")
        return await self._send(completed_statement(ctx), options)

    async def pass_(
        self,
        score: ScoreInput | None = None,
        *,
        objective: Mapping[str, Any] | None = None,
        options: SendOptions | None = None,
    ) -> list[str]:
        """
        Send Passed.

        Args:
            score: Structured score or bare scaled number
            objective: Objective activity recorded as the parent context activity
            options: Send options (transform)

        Raises:
            InvalidStateError: Outside Initialized[Normal]
            MasteryNotMetError: Score below the launch mastery score
        """
        ctx = self._require_active("pass")
        return await self._send(passed_statement(ctx, score, objective=objective), options)

    async def fail(self, score: ScoreInput | None = None, options: SendOptions | None = None) -> list[str]:
        ctx = self._require_active("fail")
        return await self._send(failed_statement(ctx, score), options)

    async def terminate(self) -> list[str]:
        """Send Terminated; the session accepts no further statements once it is stored."""
        ctx = self._require_active("terminate")
        ids = await self._send(terminated_statement(ctx))
        self.status = SessionStatus.TERMINATED
        logger.info(f"Terminated cmi5 session for registration {self.launch_parameters.registration}")
        return ids

    async def move_on(self, options: MoveOnOptions | None = None) -> list[str]:
        """
        Run the end-of-attempt sequence: Passed/Failed, Completed, Terminated.

        Statements are sent one at a time; a failed send stops the sequence
        and propagates.

        Returns:
            Statement ids in emission order
        """
        ctx = self._require_active("moveOn")
        statement_ids: list[str] = []
        for statement, send_options in iter_move_on(ctx, options):
            statement_ids.extend(await self._send(statement, send_options))
            if statement.verb_id == Cmi5Verbs.TERMINATED["id"]:
                self.status = SessionStatus.TERMINATED
        return statement_ids

    # =========================================================================
    # cmi5 allowed statements
    # =========================================================================

    async def progress(self, percent: int | float) -> list[str]:
        ctx = self._require_active("progress")
        return await self._send(progressed_statement(ctx, percent))

    async def send_statement(self, statement: Mapping[str, Any], options: SendOptions | None = None) -> list[str]:
        """
        Send arbitrary statement content as a cmi5 allowed statement.

        The session still owns id, actor, timestamp and context.registration.
        """
        ctx = self._require_active("send a statement")
        return await self._send(allowed_statement(ctx, statement), options)

    async def interaction(
        self,
        test_id: str,
        question_id: str,
        response: str,
        definition: Mapping[str, Any],
        success: bool | None = None,
        duration: Period | None = None,
        objective: Mapping[str, Any] | None = None,
    ) -> list[str]:
        ctx = self._require_active("record an interaction")
        return await self._send(interactions.interaction_statement(
            ctx, test_id, question_id, response, definition,
            success=success, duration=duration, objective=objective,
        ))

    async def _answer(self, test_id: str, question_id: str, encoding: InteractionEncoding, **kwargs: Any) -> list[str]:
        ctx = self._require_active("record an interaction")
        return await self._send(
            interactions.encoded_interaction_statement(ctx, test_id, question_id, encoding, **kwargs)
        )

    async def interaction_true_false(
        self,
        test_id: str,
        question_id: str,
        answer: bool,
        correct_answer: bool | None = None,
        *,
        name: LanguageMap | None = None,
        description: LanguageMap | None = None,
        success: bool | None = None,
        duration: Period | None = None,
        objective: Mapping[str, Any] | None = None,
    ) -> list[str]:
        return await self._answer(
            test_id, question_id, interactions.encode_true_false(answer, correct_answer),
            name=name, description=description, success=success, duration=duration, objective=objective,
        )

    async def interaction_choice(
        self,
        test_id: str,
        question_id: str,
        answer_ids: Sequence[str],
        correct_answer_ids: Sequence[str] | None = None,
        *,
        choices: Sequence[InteractionComponent] | None = None,
        name: LanguageMap | None = None,
        description: LanguageMap | None = None,
        success: bool | None = None,
        duration: Period | None = None,
        objective: Mapping[str, Any] | None = None,
    ) -> list[str]:
        return await self._answer(
            test_id, question_id, interactions.encode_choice(answer_ids, correct_answer_ids),
            choices=choices,
            name=name, description=description, success=success, duration=duration, objective=objective,
        )

    async def interaction_fill_in(
        self,
        test_id: str,
        question_id: str,
        answers: Sequence[str],
        correct_answers: Sequence[str] | None = None,
        *,
        name: LanguageMap | None = None,
        description: LanguageMap | None = None,
        success: bool | None = None,
        duration: Period | None = None,
        objective: Mapping[str, Any] | None = None,
    ) -> list[str]:
        return await self._answer(
            test_id, question_id, interactions.encode_fill_in(answers, correct_answers),
            name=name, description=description, success=success, duration=duration, objective=objective,
        )

    async def interaction_long_fill_in(
        self,
        test_id: str,
        question_id: str,
        answers: Sequence[str],
        correct_answers: Sequence[str] | None = None,
        *,
        name: LanguageMap | None = None,
        description: LanguageMap | None = None,
        success: bool | None = None,
        duration: Period | None = None,
        objective: Mapping[str, Any] | None = None,
    ) -> list[str]:
        return await self._answer(
            test_id, question_id, interactions.encode_long_fill_in(answers, correct_answers),
            name=name, description=description, success=success, duration=duration, objective=objective,
        )

    async def interaction_likert(
        self,
        test_id: str,
        question_id: str,
        answer_id: str,
        correct_answer_id: str | None = None,
        *,
        scale: Sequence[InteractionComponent] | None = None,
        name: LanguageMap | None = None,
        description: LanguageMap | None = None,
        success: bool | None = None,
        duration: Period | None = None,
        objective: Mapping[str, Any] | None = None,
    ) -> list[str]:
        return await self._answer(
            test_id, question_id, interactions.encode_likert(answer_id, correct_answer_id),
            scale=scale,
            name=name, description=description, success=success, duration=duration, objective=objective,
        )

    async def interaction_matching(
        self,
        test_id: str,
        question_id: str,
        answers: Mapping[str, str],
        correct_answers: Mapping[str, str] | None = None,
        *,
        source: Sequence[InteractionComponent] | None = None,
        target: Sequence[InteractionComponent] | None = None,
        name: LanguageMap | None = None,
        description: LanguageMap | None = None,
        success: bool | None = None,
        duration: Period | None = None,
        objective: Mapping[str, Any] | None = None,
    ) -> list[str]:
        return await self._answer(
            test_id, question_id, interactions.encode_matching(answers, correct_answers),
            source=source, target=target,
            name=name, description=description, success=success, duration=duration, objective=objective,
        )

    async def interaction_performance(
        self,
        test_id: str,
        question_id: str,
        answers: Mapping[str, str | float],
        correct_answers: Mapping[str, NumericCriteria | Mapping[str, float]] | None = None,
        *,
        steps: Sequence[InteractionComponent] | None = None,
        name: LanguageMap | None = None,
        description: LanguageMap | None = None,
        success: bool | None = None,
        duration: Period | None = None,
        objective: Mapping[str, Any] | None = None,
    ) -> list[str]:
        return await self._answer(
            test_id, question_id, interactions.encode_performance(answers, correct_answers),
            steps=steps,
            name=name, description=description, success=success, duration=duration, objective=objective,
        )

    async def interaction_sequencing(
        self,
        test_id: str,
        question_id: str,
        answer_ids: Sequence[str],
        correct_answer_ids: Sequence[str] | None = None,
        *,
        choices: Sequence[InteractionComponent] | None = None,
        name: LanguageMap | None = None,
        description: LanguageMap | None = None,
        success: bool | None = None,
        duration: Period | None = None,
        objective: Mapping[str, Any] | None = None,
    ) -> list[str]:
        return await self._answer(
            test_id, question_id, interactions.encode_sequencing(answer_ids, correct_answer_ids),
            choices=choices,
            name=name, description=description, success=success, duration=duration, objective=objective,
        )

    async def interaction_numeric(
        self,
        test_id: str,
        question_id: str,
        answer: float,
        correct_answer: NumericCriteria | Mapping[str, float] | None = None,
        *,
        name: LanguageMap | None = None,
        description: LanguageMap | None = None,
        success: bool | None = None,
        duration: Period | None = None,
        objective: Mapping[str, Any] | None = None,
    ) -> list[str]:
        return await self._answer(
            test_id, question_id, interactions.encode_numeric(answer, correct_answer),
            name=name, description=description, success=success, duration=duration, objective=objective,
        )

    async def interaction_other(
        self,
        test_id: str,
        question_id: str,
        answer: str,
        correct_answer: str | None = None,
        *,
        name: LanguageMap | None = None,
        description: LanguageMap | None = None,
        success: bool | None = None,
        duration: Period | None = None,
        objective: Mapping[str, Any] | None = None,
    ) -> list[str]:
        return await self._answer(
            test_id, question_id, interactions.encode_other(answer, correct_answer),
            name=name, description=description, success=success, duration=duration, objective=objective,
        )
