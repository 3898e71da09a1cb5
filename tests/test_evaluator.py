"""Tests for the adaptive memory evaluator."""

import pytest

from recallbot.errors import DeserializationError
from recallbot.memory.evaluator import evaluate_candidates, similarity_stats
from recallbot.memory.models import Message, RecalledMemory, Role, encode_fragment


def _memory(score: float, label: str) -> RecalledMemory:
    fragment = [
        Message(role=Role.USER, content=f"{label} question"),
        Message(role=Role.ASSISTANT, content=f"{label} answer"),
    ]
    return RecalledMemory(fragment=encode_fragment(fragment), similarity_score=score)


def _labels(messages: list[Message]) -> list[str]:
    return [m.content.split()[0] for m in messages if m.role is Role.USER]


# -- similarity_stats ----------------------------------------------------------


def test_stats_only_count_scores_above_floor() -> None:
    memories = [_memory(s, "m") for s in (0.90, 0.80, 0.76, 0.70)]
    mean, stddev = similarity_stats(memories, 0.75)
    assert mean == pytest.approx(0.82)
    assert stddev == pytest.approx(0.0589, abs=1e-4)


def test_stats_none_above_floor() -> None:
    assert similarity_stats([_memory(0.5, "m")], 0.75) is None


# -- evaluate_candidates -------------------------------------------------------


def test_dominant_match_suppresses_weaker_ones() -> None:
    memories = [
        _memory(0.90, "first"),
        _memory(0.80, "second"),
        _memory(0.76, "third"),
        _memory(0.70, "fourth"),
    ]
    result = evaluate_candidates(memories, floor=0.75)

    assert _labels(result.messages) == ["first"]
    assert result.accepted == 1
    assert result.mean + result.stddev == pytest.approx(0.879, abs=1e-3)


def test_no_candidates_above_floor_yields_nothing() -> None:
    result = evaluate_candidates([_memory(0.6, "a"), _memory(0.5, "b")], floor=0.75)
    assert result.messages == []
    assert result.accepted == 0


def test_empty_input_yields_nothing() -> None:
    result = evaluate_candidates([], floor=0.75)
    assert result.messages == []
    assert result.errors == []


def test_threshold_never_decreases() -> None:
    scores = (0.97, 0.95, 0.93, 0.90, 0.85, 0.80, 0.78, 0.60)
    result = evaluate_candidates([_memory(s, "m") for s in scores], floor=0.75)

    assert len(result.thresholds) == len(scores)
    assert result.thresholds[0] >= 0.75
    assert all(a <= b for a, b in zip(result.thresholds, result.thresholds[1:], strict=False))


def test_without_dominant_match_all_above_floor_pass() -> None:
    memories = [_memory(0.95, "a"), _memory(0.90, "b"), _memory(0.76, "c")]
    result = evaluate_candidates(memories, floor=0.75)

    # mean + stddev is just above 0.95, so the threshold never moves
    assert _labels(result.messages) == ["a", "b", "c"]
    assert set(result.thresholds) == {0.75}


def test_single_candidate_is_accepted() -> None:
    result = evaluate_candidates([_memory(0.8, "only")], floor=0.75)
    assert _labels(result.messages) == ["only"]
    assert result.stddev == 0.0


def test_messages_keep_fragment_order() -> None:
    result = evaluate_candidates([_memory(0.9, "solo")], floor=0.75)
    assert [m.role for m in result.messages] == [Role.USER, Role.ASSISTANT]
    assert [m.content for m in result.messages] == ["solo question", "solo answer"]


def test_malformed_fragment_is_skipped() -> None:
    broken = RecalledMemory(fragment="{not json", similarity_score=0.8)
    memories = [broken, _memory(0.8, "valid")]

    result = evaluate_candidates(memories, floor=0.75)

    assert _labels(result.messages) == ["valid"]
    assert result.accepted == 2
    assert len(result.errors) == 1
    assert isinstance(result.errors[0], DeserializationError)
    assert result.errors[0].fragment == "{not json"


def test_wrong_shape_fragment_is_skipped() -> None:
    odd = RecalledMemory(fragment='[{"role": "robot", "content": "x"}]', similarity_score=0.8)
    result = evaluate_candidates([odd, _memory(0.8, "ok")], floor=0.75)
    assert _labels(result.messages) == ["ok"]
    assert len(result.errors) == 1


def test_floor_defaults_to_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("recallbot.config.settings.memory_similarity_floor", 0.5)
    result = evaluate_candidates([_memory(0.6, "low")])
    assert _labels(result.messages) == ["low"]
