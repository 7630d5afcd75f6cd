import pytest
import requests

from reflection.errors import MalformedResponse, RemoteError, TransportFailure
from reflection.scoring import (
    DEFAULT_SCORE,
    HttpScorerClient,
    LocalScorerClient,
    decode_scorer_response,
    parse_likelihood_score,
)


class FakeResponse:
    def __init__(self, status_code=200, body=None, text_only=False):
        self.status_code = status_code
        self._body = body
        self._text_only = text_only

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._text_only:
            raise ValueError("not json")
        return self._body


# -------------------------------------------------
# decode
# -------------------------------------------------

def test_decode_intermediate_turn():
    response = decode_scorer_response({"question": " Why? ", "likelihood_score": 7})
    assert response.question == "Why?"
    assert response.likelihood_score == 7
    assert response.is_terminal is False


def test_decode_terminal_turn():
    response = decode_scorer_response({"question": None, "likelihood_score": 7})
    assert response.is_terminal is True
    assert response.likelihood_score == 7


def test_missing_question_key_is_terminal():
    assert decode_scorer_response({"likelihood_score": 2}).is_terminal is True


@pytest.mark.parametrize("raw", [11, 0, -3, "abc", None, True, 4.5, [], "12", "²", "٣٣", ""])
def test_bad_scores_are_normalized(raw):
    response = decode_scorer_response({"question": "Sure?", "likelihood_score": raw})
    assert response.likelihood_score == DEFAULT_SCORE
    assert response.question == "Sure?"


def test_missing_score_is_normalized():
    assert decode_scorer_response({"question": None}).likelihood_score == DEFAULT_SCORE


@pytest.mark.parametrize("raw, expected", [(1, 1), (10, 10), ("7", 7), (" 3 ", 3), (6.0, 6)])
def test_parse_accepts_integral_values(raw, expected):
    assert parse_likelihood_score(raw) == expected


def test_parse_raises_malformed_response():
    with pytest.raises(MalformedResponse):
        parse_likelihood_score(11)


@pytest.mark.parametrize("body", [None, [], "text", {"question": 5}, {"question": "   "}])
def test_unreadable_bodies_are_transport_failures(body):
    with pytest.raises(TransportFailure):
        decode_scorer_response(body)


# -------------------------------------------------
# HTTP client
# -------------------------------------------------

def test_http_client_posts_task_and_history(monkeypatch):
    sent = {}

    def fake_post(url, json=None, timeout=None):
        sent.update(url=url, json=json, timeout=timeout)
        return FakeResponse(body={"question": "Why?", "likelihood_score": 5})

    monkeypatch.setattr(requests, "post", fake_post)

    client = HttpScorerClient("http://scorer/generate-reflective-question", timeout=3)
    response = client.score("jog", [{"question": "q", "answer": "a"}])

    assert response.question == "Why?"
    assert sent == {
        "url": "http://scorer/generate-reflective-question",
        "json": {"task": "jog", "conversationHistory": [{"question": "q", "answer": "a"}]},
        "timeout": 3,
    }


def test_http_client_maps_timeout(monkeypatch):
    def fake_post(*args, **kwargs):
        raise requests.Timeout("slow")

    monkeypatch.setattr(requests, "post", fake_post)

    with pytest.raises(TransportFailure, match="Timed out"):
        HttpScorerClient("http://scorer").score("jog", [])


def test_http_client_maps_connection_errors(monkeypatch):
    def fake_post(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "post", fake_post)

    with pytest.raises(TransportFailure):
        HttpScorerClient("http://scorer").score("jog", [])


def test_http_client_maps_upstream_error(monkeypatch):
    monkeypatch.setattr(
        requests,
        "post",
        lambda *a, **k: FakeResponse(502, {"question": None, "likelihood_score": 5, "error": "LLM API Error"}),
    )

    with pytest.raises(RemoteError, match="LLM API Error"):
        HttpScorerClient("http://scorer").score("jog", [])


def test_http_client_error_status_never_reads_body_as_verdict(monkeypatch):
    monkeypatch.setattr(
        requests,
        "post",
        lambda *a, **k: FakeResponse(503, {"question": None, "likelihood_score": 9}),
    )

    with pytest.raises(TransportFailure, match="503"):
        HttpScorerClient("http://scorer").score("jog", [])


def test_http_client_rejects_non_json(monkeypatch):
    monkeypatch.setattr(requests, "post", lambda *a, **k: FakeResponse(200, text_only=True))

    with pytest.raises(TransportFailure):
        HttpScorerClient("http://scorer").score("jog", [])


# -------------------------------------------------
# local client
# -------------------------------------------------

def test_local_client_decodes_engine_output():
    client = LocalScorerClient(lambda task, history: {"question": None, "likelihood_score": "8"})
    assert client.score("jog", []).likelihood_score == 8


def test_local_client_turns_unreadable_model_reply_into_remote_error():
    def generate(task, history):
        raise MalformedResponse("not json")

    with pytest.raises(RemoteError):
        LocalScorerClient(generate).score("jog", [])


@pytest.mark.parametrize("raw", ["²", "x7", "7.5"])
def test_parse_rejects_non_integer_strings_as_malformed(raw):
    with pytest.raises(MalformedResponse):
        parse_likelihood_score(raw)
