"""Test doubles shared across test modules."""

from reflection.scoring import ScorerResponse


class ScriptedScorer:
    """
    Scorer fake: replays a list of replies in order.
    A reply that is an exception instance is raised instead of returned.
    """

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls = []

    def add(self, *replies):
        self.replies.extend(replies)

    def score(self, task, history):
        self.calls.append({"task": task, "history": list(history)})
        if not self.replies:
            raise AssertionError("ScriptedScorer ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def question(text="Why bother?", score=5):
    return ScorerResponse(question=text, likelihood_score=score)


def verdict(score):
    return ScorerResponse(question=None, likelihood_score=score)
