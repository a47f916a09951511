import json

import pytest

from learnflow.normalizer import (
    ResponseNormalizer,
    clamp_percentage,
    coerce_number,
    first_text,
    flatten,
)
from learnflow.results import Failure, FailureKind, ResultStatus, Success
from learnflow.tasks import TaskKind


@pytest.fixture
def normalizer() -> ResponseNormalizer:
    return ResponseNormalizer()


def test_career_options_array_wrapped_output(normalizer):
    raw = [{"output": [{"ID": "1", "career": "X", "description": "Y"}]}]

    outcome = normalizer.parse(TaskKind.CAREER_OPTIONS, raw)

    assert isinstance(outcome, Success)
    assert outcome.value == [{"ID": "1", "career": "X", "description": "Y"}]


def test_career_options_bare_list_and_envelope(normalizer):
    bare = [
        {"id": 7, "title": "Marine Biologist", "description": "Oceans"},
        {"career": "Pilot"},
        "not an option",
    ]
    outcome = normalizer.parse(TaskKind.CAREER_OPTIONS, bare)
    assert outcome.value == [
        {"ID": "7", "career": "Marine Biologist", "description": "Oceans"},
        {"ID": "2", "career": "Pilot", "description": ""},
    ]

    enveloped = {"data": {"careerOptions": [{"ID": "3", "career": "Chef", "description": "Food"}]}}
    assert normalizer.parse(TaskKind.CAREER_OPTIONS, enveloped).value == [
        {"ID": "3", "career": "Chef", "description": "Food"}
    ]


@pytest.mark.parametrize(
    "raw",
    [
        {"score": "72%", "summary": "Solid work"},
        [{"score": 72, "summary": "Solid work"}],
        {"data": {"score": 72.0, "summary": "Solid work"}},
        {"json": {"analysis": {"score": "72", "summary": "Solid work"}}},
    ],
)
def test_score_analysis_shapes(normalizer, raw):
    outcome = normalizer.parse(TaskKind.SCORE_ANALYSIS, raw)

    assert outcome == Success({"score": 72, "summary": "Solid work"})


def test_score_analysis_clamps_and_defaults_summary(normalizer):
    outcome = normalizer.parse(TaskKind.SCORE_ANALYSIS, {"percentage": 140})

    assert outcome.value == {"score": 100, "summary": "Assessment completed successfully!"}


def test_learning_path_nested_under_data(normalizer):
    raw = {
        "data": {
            "learningPath": {
                "name": "Robotics",
                "milestones": [
                    {"name": "Basics", "estimatedTime": "90", "modules": ["m1", "m2"]},
                    {"name": "Builds"},
                ],
            }
        }
    }

    payload = normalizer.parse(TaskKind.LEARNING_PATH, raw).value

    assert payload["name"] == "Robotics"
    assert [m["status"] for m in payload["milestones"]] == ["available", "locked"]
    assert payload["milestones"][0]["estimatedTime"] == 90
    assert payload["milestones"][1]["estimatedTime"] == 120
    assert payload["totalDuration"] == 210
    assert payload["totalXpPoints"] == 200


def test_learning_path_without_milestones_is_a_mismatch(normalizer):
    outcome = normalizer.parse(TaskKind.LEARNING_PATH, {"learningPath": {"milestones": []}})

    assert isinstance(outcome, Failure)
    assert outcome.kind is FailureKind.SHAPE_MISMATCH


def test_chat_answer_prefers_candidate_fields(normalizer):
    assert normalizer.parse(TaskKind.CHAT_ANSWER, {"output": "Hi!"}).value == {"response": "Hi!"}
    assert normalizer.parse(TaskKind.CHAT_ANSWER, [{"json": {"reply": {"message": "Nested"}}}]).value == {
        "response": "Nested"
    }


def test_chat_answer_loose_text_last_resort(normalizer):
    raw = [{"foo": "short", "bar": "This is a long free text answer from the engine"}]

    assert normalizer.parse(TaskKind.CHAT_ANSWER, raw).value == {
        "response": "This is a long free text answer from the engine"
    }


def test_chat_answer_never_echoes_upstream_error(normalizer):
    result = normalizer.normalize(
        TaskKind.CHAT_ANSWER,
        "S1",
        "",
        {"error": "Invalid JSON response from the n8n workflow"},
        {"query": "hello", "studentData": {"name": "Ada"}},
    )

    assert result.status is ResultStatus.FALLBACK
    assert result.payload["response"].startswith("Hello Ada!")


def test_transcript_from_segments(normalizer):
    raw = {"transcriptData": {"segments": [{"text": "Hello"}, {"text": "world"}], "language": "fr"}}

    payload = normalizer.parse(TaskKind.CONTENT_TRANSCRIPT, raw).value

    assert payload["transcript"] == "Hello world"
    assert payload["totalSegments"] == 2
    assert payload["language"] == "fr"
    assert payload["available"] is True


def test_module_assessment_evaluation_envelope(normalizer):
    raw = {"evaluation": {"percentage": "85", "feedback": "Nice", "correctAnswers": 17, "totalQuestions": 20}}

    payload = normalizer.parse(TaskKind.MODULE_ASSESSMENT, raw).value

    assert payload["percentage"] == 85
    assert payload["passed"] is True
    assert payload["correctAnswers"] == 17


def test_unrecognized_shape_falls_back_deterministically(normalizer):
    raw = {"unexpected": ["shape"]}

    first = normalizer.normalize(TaskKind.SCORE_ANALYSIS, "S2", "", raw)
    second = normalizer.normalize(TaskKind.SCORE_ANALYSIS, "S2", "", raw)

    assert first.status is ResultStatus.FALLBACK
    assert first.payload == {"score": 0, "summary": "Assessment completed successfully!"}
    assert json.dumps(first.payload, sort_keys=True) == json.dumps(second.payload, sort_keys=True)
    assert first.raw_payload == raw
    assert "shape_mismatch" in first.error


@pytest.mark.parametrize("kind", list(TaskKind))
def test_every_fallback_is_repeatable(normalizer, kind):
    request = {
        "studentProfile": {"skills": ["Math", "Art"], "interests": ["Space"], "careerGoals": ["Astronaut"]},
        "answers": {"q1": "correct", "q2": "wrong"},
        "attemptNumber": 2,
        "query": "how is my progress?",
        "studentData": {"name": "Ada"},
    }

    payloads = [
        json.dumps(normalizer.fallback(kind, "S9", "param", dict(request)).payload, sort_keys=True)
        for _ in range(3)
    ]

    assert len(set(payloads)) == 1


def test_fallback_payload_is_a_fresh_copy(normalizer):
    first = normalizer.fallback(TaskKind.CAREER_OPTIONS, "S1", "")
    first.payload[0]["career"] = "mutated"

    second = normalizer.fallback(TaskKind.CAREER_OPTIONS, "S1", "")

    assert second.payload[0]["career"] == "Creative Explorer"


def test_first_text_exact_keys_beat_nested():
    assert first_text({"meta": {"output": "nested"}, "answer": "top"}) == "top"
    assert first_text({"meta": {"output": "nested"}}) == "nested"
    assert first_text({"output": "   ", "text": "fallthrough"}) == "fallthrough"
    assert first_text({"count": 3}) is None


def test_flatten_uses_dotted_keys():
    assert flatten({"a": {"b": {"c": 1}}, "d": [1, 2]}) == {"a.b.c": 1, "d": [1, 2]}


@pytest.mark.parametrize(
    "value, expected",
    [("85%", 85), ("12.5", 12.5), (" 7 ", 7), ("abc", 0), (None, 0), (True, 0), (float("nan"), 0), ([1], 0)],
)
def test_coerce_number(value, expected):
    assert coerce_number(value) == expected


def test_clamp_percentage():
    assert clamp_percentage(150) == 100
    assert clamp_percentage("-3") == 0
    assert clamp_percentage("55.5%") == 55.5
