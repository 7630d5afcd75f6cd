from flask import Flask, render_template, request, jsonify, session
from dotenv import load_dotenv
import logging
import os
import threading
import uuid
from pathlib import Path
from google import genai

from intelligence.engine import (
    generate_reflective_turn,
    generate_unwanted_question,
    validate_history,
)
from reflection.controller import MAX_TURNS, ReflectionState
from reflection.errors import (
    InvalidInput,
    InvalidState,
    MalformedResponse,
    OutOfRange,
    RecoverableError,
    RemoteError,
)
from reflection.scoring import DEFAULT_SCORE, HttpScorerClient, LocalScorerClient
from session.context import SessionContext


# -------------------------------------------------
# Setup
# -------------------------------------------------

load_dotenv()
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

GEMINI_MODEL = os.getenv("GEMINI_MODEL", "models/gemini-2.5-flash")

# when set, the task app talks to a remote scorer instead of calling Gemini itself
SCORER_URL = os.getenv("SCORER_URL")
SCORER_TIMEOUT_SECONDS = float(os.getenv("SCORER_TIMEOUT_SECONDS", "30"))

ROOT_DIR = Path(__file__).resolve().parent

app = Flask(
    __name__,
    template_folder=str(ROOT_DIR / "templates"),
)
app.secret_key = os.getenv("FLASK_SECRET_KEY", "dev-secret")

SESSION_CONTEXTS = {}
_SESSION_CONTEXTS_LOCK = threading.Lock()

_client = None


# -------------------------------------------------
# Helpers: LLM + session context
# -------------------------------------------------

def get_client():
    global _client
    if _client is None:
        if not os.getenv("GEMINI_API_KEY"):
            logger.warning("GEMINI_API_KEY is not set. Gemini calls will fail.")
        _client = genai.Client(api_key=os.getenv("GEMINI_API_KEY"))
    return _client


def call_llm_json(prompt: str) -> str:
    """
    Single Gemini call that asks for a JSON reply.
    Any failure on the Gemini side becomes a RemoteError.
    """
    try:
        response = get_client().models.generate_content(
            model=GEMINI_MODEL,
            contents=prompt,
            config={
                "temperature": 0.9,
                "max_output_tokens": 300,
                "response_mime_type": "application/json",
            },
        )
        return (response.text or "").strip()

    except Exception as e:
        logger.error(f"Gemini call failed: {e}")
        raise RemoteError(f"LLM API Error: {e}. Please try again.") from e


def local_generate(task, history):
    return generate_reflective_turn(task=task, history=history, llm_call_fn=call_llm_json)


def build_scorer():
    if SCORER_URL:
        return HttpScorerClient(SCORER_URL, timeout=SCORER_TIMEOUT_SECONDS)
    return LocalScorerClient(local_generate)


def get_session_context():
    if "session_id" not in session:
        session["session_id"] = str(uuid.uuid4())

    sid = session["session_id"]
    # contexts live for the life of the process; tasks are not persisted
    with _SESSION_CONTEXTS_LOCK:
        if sid not in SESSION_CONTEXTS:
            SESSION_CONTEXTS[sid] = SessionContext(scorer=build_scorer())
        return SESSION_CONTEXTS[sid]


# -------------------------------------------------
# Helpers: rendering
# -------------------------------------------------

def render_task_list(ctx, status=200):
    return jsonify({"tasks": ctx.task_list.to_payload()}), status


def render_question(ctx):
    controller = ctx.controller
    return jsonify({
        "status": "question",
        "question": controller.current_question,
        "turn": controller.turn_number,
        "max_turns": MAX_TURNS,
    })


def render_verdict(ctx, decision):
    return jsonify({
        "status": "verdict",
        "accepted": decision.accept,
        "score": decision.score,
        "message": decision.message,
        "tasks": ctx.task_list.to_payload(),
    })


def render_error(ctx, message, status, retryable=False):
    return jsonify({
        "status": "error",
        "error": message,
        "retryable": retryable,
        "state": ctx.controller.state.value,
    }), status


def render_result(ctx, result):
    if result.state == ReflectionState.TERMINAL:
        return render_verdict(ctx, result.decision)
    return render_question(ctx)


def run_in_session(action, render=render_result):
    """
    Run action(ctx) under the session lock and map errors to responses.
    A second request for the same session while one is running gets 409.
    """
    ctx = get_session_context()

    if not ctx.lock.acquire(blocking=False):
        return render_error(ctx, "Still thinking about the last answer.", 409, retryable=True)

    try:
        return render(ctx, action(ctx))
    except InvalidInput as e:
        return render_error(ctx, str(e), 400)
    except OutOfRange as e:
        return render_error(ctx, str(e), 404)
    except InvalidState as e:
        return render_error(ctx, str(e), 409)
    except RecoverableError as e:
        logger.warning(f"Reflection call failed, waiting for retry: {e}")
        return render_error(
            ctx,
            f"Could not generate a question. Please try again. ({e})",
            502,
            retryable=True,
        )
    finally:
        ctx.lock.release()


def _json_payload():
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else None


def _text_field(name):
    value = (_json_payload() or {}).get(name)
    return value if isinstance(value, str) else ""


def _tasks_only(ctx, _result):
    return render_task_list(ctx)


# -------------------------------------------------
# Routes: scorer (question / verdict provider)
# -------------------------------------------------

@app.route("/generate-reflective-question", methods=["POST"])
def generate_reflective_question():
    payload = _json_payload()
    if payload is None:
        return jsonify({"error": "Task is required."}), 400

    task = payload.get("task")
    if not isinstance(task, str) or not task.strip():
        return jsonify({"error": "Task is required."}), 400

    try:
        history = validate_history(payload.get("conversationHistory"))
    except InvalidInput as e:
        return jsonify({"error": str(e)}), 400

    try:
        body = generate_reflective_turn(
            task=task.strip(),
            history=history,
            llm_call_fn=call_llm_json,
        )
    except (RemoteError, MalformedResponse) as e:
        logger.error(f"Error generating question from LLM: {e}")
        return jsonify({
            "question": None,
            "likelihood_score": DEFAULT_SCORE,
            "error": f"{e} (Check backend logs for details)",
        }), 502

    return jsonify(body)


@app.route("/generate-unwanted-question", methods=["POST"])
def generate_unwanted_question_route():
    payload = _json_payload()
    if payload is None:
        return jsonify({"error": "Expected a JSON object"}), 400
    number = payload.get("currentQuestionNumber", 0)

    if isinstance(number, bool) or not isinstance(number, int) or number < 0:
        return jsonify({"error": "currentQuestionNumber must be a non-negative integer"}), 400

    try:
        body = generate_unwanted_question(question_number=number, llm_call_fn=call_llm_json)
    except (RemoteError, MalformedResponse) as e:
        logger.error(f"Error generating unwanted question from LLM: {e}")
        return jsonify({"error": "Failed to generate unwanted question. Check backend logs."}), 500

    return jsonify(body)


# -------------------------------------------------
# Routes: task app
# -------------------------------------------------

@app.route("/")
def index():
    return render_template("index.html")


@app.route("/api/tasks", methods=["GET"])
def get_tasks():
    return render_task_list(get_session_context())


@app.route("/api/tasks", methods=["POST"])
def submit_task():
    text = _text_field("text")
    return run_in_session(lambda ctx: ctx.controller.start(text))


@app.route("/api/tasks/<int:index>/toggle", methods=["POST"])
def toggle_task(index):
    return run_in_session(lambda ctx: ctx.task_list.toggle(index), render=_tasks_only)


@app.route("/api/tasks/<int:index>", methods=["DELETE"])
def remove_task(index):
    return run_in_session(lambda ctx: ctx.task_list.remove(index), render=_tasks_only)


@app.route("/api/tasks/id/<task_id>/toggle", methods=["POST"])
def toggle_task_by_id(task_id):
    return run_in_session(lambda ctx: ctx.task_list.toggle_by_id(task_id), render=_tasks_only)


@app.route("/api/tasks/id/<task_id>", methods=["DELETE"])
def remove_task_by_id(task_id):
    return run_in_session(lambda ctx: ctx.task_list.remove_by_id(task_id), render=_tasks_only)


@app.route("/api/reflection", methods=["GET"])
def get_reflection():
    controller = get_session_context().controller
    return jsonify({
        "state": controller.state.value,
        "task": controller.task_text,
        "question": controller.current_question,
        "turn": controller.turn_number,
        "history": [t.to_dict() for t in controller.history],
    })


@app.route("/api/reflection/answer", methods=["POST"])
def submit_answer():
    answer = _text_field("answer")
    return run_in_session(lambda ctx: ctx.controller.submit_answer(answer))


@app.route("/api/reflection/retry", methods=["POST"])
def retry_reflection():
    return run_in_session(lambda ctx: ctx.controller.request_next())


@app.route("/api/reflection/abort", methods=["POST"])
def abort_reflection():
    def _render(ctx, aborted):
        return jsonify({"status": "aborted" if aborted else "idle", "state": ctx.controller.state.value})

    return run_in_session(lambda ctx: ctx.controller.abort(), render=_render)


if __name__ == "__main__":
    app.run(debug=True, port=int(os.getenv("PORT", "3000")))
