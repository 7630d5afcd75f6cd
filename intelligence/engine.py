# intelligence/engine.py

import json
import logging

from intelligence.templates import load_prompt_template
from reflection.controller import MAX_TURNS
from reflection.errors import InvalidInput, MalformedResponse
from reflection.scoring import DEFAULT_SCORE, normalize_likelihood_score

logger = logging.getLogger(__name__)

# number of answered turns after which the model gives its verdict
FINAL_ASSESSMENT_AFTER = MAX_TURNS - 1
MAX_UNWANTED_QUESTIONS = 6

CHALLENGE_LAST_ANSWER = """
If the user's LAST answer was: "{last_answer}" (to question: "{last_question}"), and it seemed positive, confident, or overly optimistic about the task, your NEXT question should sarcastically challenge that enthusiasm. Introduce an absurdly pessimistic counter-point, a drawback they are conveniently forgetting, or mock their misplaced confidence.
"""

FIRST_TURN_SCORING = (
    f"For the first question, set likelihood_score to {DEFAULT_SCORE} (neutral), "
    "as there is no previous answer to evaluate. Output only the JSON."
)

NEXT_TURN_SCORING = (
    "Last question: \"{last_question}\" Last answer: \"{last_answer}\". "
    "Based on this last answer, provide a likelihood_score (1-10) in the JSON. Output only the JSON."
)


def validate_history(raw) -> list[dict]:
    """
    Accepts the conversationHistory field of a request body.
    Returns a clean list of {question, answer} dicts.
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise InvalidInput("conversationHistory must be a list")

    history = []
    for item in raw:
        if not isinstance(item, dict):
            raise InvalidInput("conversationHistory items must be objects")
        question = item.get("question")
        answer = item.get("answer")
        if not isinstance(question, str) or not isinstance(answer, str):
            raise InvalidInput("conversationHistory items need text question and answer")
        history.append({"question": question, "answer": answer})
    return history


def is_final_turn(history: list[dict]) -> bool:
    return len(history) >= FINAL_ASSESSMENT_AFTER


def _format_history(history):
    return "\n".join(f"Q: {t['question']}\nA: {t['answer']}" for t in history)


def build_reflective_prompt(task: str, history: list[dict]) -> str:
    last_question = history[-1]["question"] if history else "N/A"
    last_answer = history[-1]["answer"] if history else "N/A"

    if is_final_turn(history):
        return load_prompt_template("final_assessment").format(
            task=task,
            history=_format_history(history),
            last_question=last_question,
            last_answer=last_answer,
        )

    if history:
        challenge = CHALLENGE_LAST_ANSWER.format(
            last_answer=last_answer, last_question=last_question
        )
        scoring = NEXT_TURN_SCORING.format(
            last_answer=last_answer, last_question=last_question
        )
    else:
        challenge = ""
        scoring = FIRST_TURN_SCORING

    return load_prompt_template("reflective_question").format(
        challenge=challenge,
        task=task,
        scoring=scoring,
    )


def _load_json_object(text):
    if not text:
        raise MalformedResponse("Model returned an empty reply")
    try:
        parsed = json.loads(text)
    except ValueError as e:
        raise MalformedResponse(f"Model reply is not JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise MalformedResponse("Model reply is not a JSON object")
    return parsed


def decode_model_reply(text: str, *, final: bool) -> dict:
    """
    Turn raw model output into the scorer wire shape.

    - final turn: question is always null
    - other turns: question must be non-empty text
    - score falls back to neutral when unusable
    """
    parsed = _load_json_object(text)

    if final:
        question = None
    else:
        question = parsed.get("question")
        if not isinstance(question, str) or not question.strip():
            raise MalformedResponse("Model reply has no question")
        question = question.strip()

    return {
        "question": question,
        "likelihood_score": normalize_likelihood_score(parsed.get("likelihood_score")),
    }


def generate_reflective_turn(*, task: str, history: list[dict], llm_call_fn) -> dict:
    """
    One scorer turn.

    - task: the task the user wants to add
    - history: prior {question, answer} turns
    - llm_call_fn: function(prompt) -> text (JSON expected)
    """
    final = is_final_turn(history)
    prompt = build_reflective_prompt(task, history)

    text = llm_call_fn(prompt)
    logger.debug(f"Raw LLM response text: {text}")

    return decode_model_reply(text, final=final)


def generate_unwanted_question(*, question_number: int, llm_call_fn) -> dict:
    if question_number >= MAX_UNWANTED_QUESTIONS:
        return {"question": None}

    prompt = load_prompt_template("unwanted_question").format(
        number=question_number + 1,
        total=MAX_UNWANTED_QUESTIONS,
    )
    parsed = _load_json_object(llm_call_fn(prompt))

    question = parsed.get("question")
    if not isinstance(question, str) or not question.strip():
        raise MalformedResponse("Model reply has no question")
    return {"question": question.strip()}
