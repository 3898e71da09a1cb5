"""Adaptive filtering of recalled memories.

Candidates arrive best-first. Only those at or above a static similarity
floor count towards the mean and standard deviation. While walking the list,
any candidate scoring at least one standard deviation above that mean raises
the admission threshold to ``mean + stddev`` for everything after it, so one
dominant match keeps weaker, merely adequate ones out of the context. The
threshold never goes back down, which makes the result depend on order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from recallbot.config import settings
from recallbot.errors import DeserializationError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from recallbot.memory.models import Message, RecalledMemory

logger = logging.getLogger(__name__)


@dataclass
class Evaluation:
    """Outcome of one evaluation pass.

    Attributes:
        messages: Messages from every accepted fragment, in acceptance order.
        accepted: Number of candidates that passed the threshold.
        errors: One entry per accepted fragment that failed to decode.
        thresholds: Working threshold after each candidate was considered.
        mean: Mean similarity of candidates above the floor.
        stddev: Population standard deviation of the same candidates.
    """

    messages: list[Message] = field(default_factory=list)
    accepted: int = 0
    errors: list[DeserializationError] = field(default_factory=list)
    thresholds: list[float] = field(default_factory=list)
    mean: float = 0.0
    stddev: float = 0.0


def similarity_stats(memories: Sequence[RecalledMemory], floor: float) -> tuple[float, float] | None:
    """Mean and population stddev of scores >= *floor*, or None if there are none."""
    scores = np.array(
        [m.similarity_score for m in memories if m.similarity_score >= floor],
        dtype=np.float64,
    )
    if scores.size == 0:
        return None
    return float(scores.mean()), float(scores.std())


def evaluate_candidates(
    memories: Sequence[RecalledMemory],
    floor: float | None = None,
) -> Evaluation:
    """Filter ranked memories and flatten the survivors into messages."""
    threshold = settings.memory_similarity_floor if floor is None else floor
    result = Evaluation()

    stats = similarity_stats(memories, threshold)
    if stats is None:
        return result
    result.mean, result.stddev = stats
    strong = result.mean + result.stddev

    for memory in memories:
        if memory.similarity_score < threshold:
            result.thresholds.append(threshold)
            continue

        if memory.similarity_score >= strong:
            threshold = strong
        result.thresholds.append(threshold)
        result.accepted += 1

        try:
            result.messages.extend(memory.messages())
        except DeserializationError as exc:
            logger.warning(
                "Skipping unreadable memory (similarity %.3f): %s",
                memory.similarity_score,
                exc,
            )
            result.errors.append(exc)

    if result.accepted:
        logger.debug(
            "Accepted %d of %d memories (mean=%.3f stddev=%.3f)",
            result.accepted,
            len(memories),
            result.mean,
            result.stddev,
        )
    return result
