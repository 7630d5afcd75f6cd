# reflection/decision.py

from dataclasses import dataclass

DEMOTIVATION_THRESHOLD = 4


@dataclass(frozen=True)
class Decision:
    accept: bool
    score: int
    message: str


def decide(score: int, task_text: str) -> Decision:
    """
    Map the final likelihood score to accept / reject.

    A score equal to the threshold is a reject. No side effects:
    adding the task on accept is the caller's job.
    """
    if score > DEMOTIVATION_THRESHOLD:
        message = (
            f"Despite your best efforts to question it (Final Score: {score}), "
            f"\"{task_text}\" seems like it might actually happen. "
            "Task added. Good luck."
        )
        return Decision(accept=True, score=score, message=message)

    message = (
        f"Based on your profound reflections (Final Score: {score}), "
        f"the universe has decided \"{task_text}\" is NOT worth your precious time. "
        "Task not added. You're welcome."
    )
    return Decision(accept=False, score=score, message=message)
