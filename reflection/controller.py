# reflection/controller.py

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from reflection.conversation import ConversationStore, Turn
from reflection.decision import Decision, decide
from reflection.errors import InvalidInput, InvalidState, RecoverableError

logger = logging.getLogger(__name__)

MAX_TURNS = 6


class ReflectionState(str, Enum):
    IDLE = "idle"
    AWAITING_QUESTION = "awaiting_question"
    AWAITING_ANSWER = "awaiting_answer"
    AWAITING_VERDICT = "awaiting_verdict"
    TERMINAL = "terminal"


AWAITING_STATES = {
    ReflectionState.AWAITING_QUESTION,
    ReflectionState.AWAITING_ANSWER,
    ReflectionState.AWAITING_VERDICT,
}


@dataclass(frozen=True)
class TurnResult:
    """
    What the presentation layer should show after an action:
    a question (AWAITING_ANSWER) or a decision (TERMINAL).
    """
    state: ReflectionState
    question: Optional[str] = None
    decision: Optional[Decision] = None


class TurnController:
    """
    Drives one reflective interrogation at a time.

    The scorer is anything with score(task, history) -> ScorerResponse.
    Accepted tasks are appended to task_list.

    A missing question in the scorer reply is the only terminal signal;
    the local turn count only decides which kind of request we are
    waiting on.
    """

    def __init__(self, scorer, task_list, max_turns: int = MAX_TURNS):
        self.scorer = scorer
        self.task_list = task_list
        self.max_turns = max_turns

        self._store = ConversationStore()
        self._state = ReflectionState.IDLE
        self._task_text: Optional[str] = None
        self._question: Optional[str] = None
        self.last_decision: Optional[Decision] = None

    # -------------------------------------------------
    # Read-only view
    # -------------------------------------------------

    @property
    def state(self) -> ReflectionState:
        return self._state

    @property
    def task_text(self) -> Optional[str]:
        return self._task_text

    @property
    def current_question(self) -> Optional[str]:
        return self._question

    @property
    def history(self) -> list[Turn]:
        return self._store.turns

    @property
    def turn_number(self) -> int:
        return len(self._store) + 1

    @property
    def is_active(self) -> bool:
        return self._state in AWAITING_STATES

    # -------------------------------------------------
    # Transitions
    # -------------------------------------------------

    def start(self, task_text: str) -> TurnResult:
        text = (task_text or "").strip()
        if not text:
            raise InvalidInput("Please enter a task!")

        if self.is_active:
            raise InvalidState(f"A reflection for \"{self._task_text}\" is already in progress")

        self._store.reset()
        self._task_text = text
        self._question = None
        self.last_decision = None
        self._state = ReflectionState.AWAITING_QUESTION

        logger.info(f"Starting reflection for task: {text}")
        return self.request_next()

    def request_next(self) -> TurnResult:
        """
        Ask the scorer for the next question, or for the verdict once the
        turn budget is used up. Also the retry entry point after a failure.
        """
        if self._state not in (ReflectionState.AWAITING_QUESTION, ReflectionState.AWAITING_VERDICT):
            raise InvalidState(f"Cannot request a question while {self._state.value}")

        if len(self._store) < self.max_turns - 1:
            self._state = ReflectionState.AWAITING_QUESTION
        else:
            self._state = ReflectionState.AWAITING_VERDICT

        response = self.scorer.score(self._task_text, self._store.to_payload())
        return self._handle_response(response)

    def submit_answer(self, answer: str) -> TurnResult:
        answer = (answer or "").strip()
        if not answer:
            raise InvalidInput("Please provide an answer to reflect!")

        if self._state != ReflectionState.AWAITING_ANSWER:
            raise InvalidState(f"No question is waiting for an answer ({self._state.value})")

        question = self._question
        self._store.append(question, answer)
        self._state = ReflectionState.AWAITING_QUESTION

        try:
            return self.request_next()
        except RecoverableError:
            # put the session back exactly where the user left it
            self._store.pop_last()
            self._question = question
            self._state = ReflectionState.AWAITING_ANSWER
            raise

    def abort(self) -> bool:
        if not self.is_active:
            return False

        logger.info(f"Reflection aborted for task: {self._task_text}")
        self._teardown()
        self._state = ReflectionState.IDLE
        return True

    # -------------------------------------------------
    # Internals
    # -------------------------------------------------

    def _handle_response(self, response) -> TurnResult:
        if response.is_terminal:
            return self._finish(response.likelihood_score)

        if self._state == ReflectionState.AWAITING_VERDICT:
            logger.warning(
                f"Scorer asked another question after {len(self._store)} turns; continuing"
            )

        # intermediate scores are not used for the decision
        self._question = response.question
        self._state = ReflectionState.AWAITING_ANSWER
        return TurnResult(state=self._state, question=self._question)

    def _finish(self, score: int) -> TurnResult:
        task_text = self._task_text
        decision = decide(score, task_text)

        logger.info(f"Final likelihood score for \"{task_text}\": {score} (accepted={decision.accept})")

        if decision.accept:
            self.task_list.append(task_text)

        self._teardown()
        self.last_decision = decision
        self._state = ReflectionState.TERMINAL
        return TurnResult(state=self._state, decision=decision)

    def _teardown(self):
        self._store.reset()
        self._task_text = None
        self._question = None
