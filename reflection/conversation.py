# reflection/conversation.py

from dataclasses import dataclass


@dataclass(frozen=True)
class Turn:
    question: str
    answer: str

    def to_dict(self) -> dict:
        return {"question": self.question, "answer": self.answer}


class ConversationStore:
    """
    Append-only log of question/answer turns for the task under review.
    Reset at the start of every task.
    """

    def __init__(self):
        self._turns: list[Turn] = []

    def __len__(self):
        return len(self._turns)

    def __iter__(self):
        return iter(list(self._turns))

    def append(self, question: str, answer: str) -> Turn:
        turn = Turn(question=question, answer=answer)
        self._turns.append(turn)
        return turn

    def pop_last(self) -> Turn:
        # only used to undo an append whose follow-up request failed
        return self._turns.pop()

    def reset(self):
        self._turns = []

    @property
    def turns(self) -> list[Turn]:
        return list(self._turns)

    def to_payload(self) -> list[dict]:
        return [t.to_dict() for t in self._turns]
