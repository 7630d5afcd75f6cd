# reflection/scoring.py

import logging
from dataclasses import dataclass
from typing import Optional

import requests

from reflection.errors import (
    MalformedResponse,
    RemoteError,
    TransportFailure,
)

logger = logging.getLogger(__name__)

MIN_SCORE = 1
MAX_SCORE = 10
DEFAULT_SCORE = 5


@dataclass(frozen=True)
class ScorerResponse:
    """
    Decoded scorer reply.
    question is None exactly on the terminal (verdict) turn.
    """
    question: Optional[str]
    likelihood_score: int

    @property
    def is_terminal(self) -> bool:
        return self.question is None


def build_request(task: str, history: list[dict]) -> dict:
    return {"task": task, "conversationHistory": history}


def parse_likelihood_score(raw) -> int:
    """
    Strict score parsing. Raises MalformedResponse on anything
    that is not an integer in [1, 10].
    """
    if isinstance(raw, bool) or raw is None:
        raise MalformedResponse(f"likelihood_score is not a number: {raw!r}")

    if isinstance(raw, int):
        score = raw
    elif isinstance(raw, float) and raw.is_integer():
        score = int(raw)
    elif isinstance(raw, str):
        try:
            score = int(raw.strip())
        except ValueError as e:
            raise MalformedResponse(f"likelihood_score is not a number: {raw!r}") from e
    else:
        raise MalformedResponse(f"likelihood_score is not a number: {raw!r}")

    if score < MIN_SCORE or score > MAX_SCORE:
        raise MalformedResponse(f"likelihood_score out of range: {score}")

    return score


def normalize_likelihood_score(raw) -> int:
    try:
        return parse_likelihood_score(raw)
    except MalformedResponse as e:
        logger.warning(f"Invalid likelihood_score, defaulting to {DEFAULT_SCORE}: {e}")
        return DEFAULT_SCORE


def decode_scorer_response(body) -> ScorerResponse:
    """
    Decode a scorer body at the transport boundary.

    - body must be a JSON object
    - question must be a non-empty string, or null on the terminal turn
    - a bad or missing score is normalized to the neutral default
    """
    if not isinstance(body, dict):
        raise TransportFailure("Malformed scorer body: expected a JSON object")

    question = body.get("question")
    if question is not None:
        if not isinstance(question, str) or not question.strip():
            raise TransportFailure("Malformed scorer body: question must be text or null")
        question = question.strip()

    score = normalize_likelihood_score(body.get("likelihood_score"))
    return ScorerResponse(question=question, likelihood_score=score)


class HttpScorerClient:
    """
    Calls a remote scorer endpoint (see POST /generate-reflective-question).
    """

    def __init__(self, url: str, timeout: float = 30.0):
        self.url = url
        self.timeout = timeout

    def score(self, task: str, history: list[dict]) -> ScorerResponse:
        try:
            response = requests.post(
                self.url,
                json=build_request(task, history),
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            logger.warning(f"Scorer timed out after {self.timeout}s: {e}")
            raise TransportFailure("Timed out waiting for the next question.") from e
        except requests.RequestException as e:
            logger.warning(f"Scorer request failed: {e}")
            raise TransportFailure(f"Could not reach the scorer: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.ok:
            if isinstance(body, dict) and body.get("error"):
                logger.warning(f"Scorer reported an upstream error: {body['error']}")
                raise RemoteError(str(body["error"]))
            raise TransportFailure(f"HTTP error! status: {response.status_code}")

        if body is None:
            raise TransportFailure("Malformed scorer body: not JSON")

        return decode_scorer_response(body)


class LocalScorerClient:
    """
    In-process scorer: runs the interrogation engine directly instead of
    going over HTTP. generate_fn(task, history) returns the same dict the
    HTTP endpoint would send.
    """

    def __init__(self, generate_fn):
        self.generate_fn = generate_fn

    def score(self, task: str, history: list[dict]) -> ScorerResponse:
        try:
            body = self.generate_fn(task, history)
        except RemoteError:
            raise
        except MalformedResponse as e:
            raise RemoteError(f"Model returned an unreadable reply: {e}") from e
        return decode_scorer_response(body)
