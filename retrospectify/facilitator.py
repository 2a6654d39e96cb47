"""Rotation of the retrospective facilitator (scrum master)."""

import logging
import random
from collections.abc import Iterable

from .models import Participant

logger = logging.getLogger(__name__)


def eligible_facilitators(
    participants: Iterable[Participant],
    current_facilitator: Participant | None,
) -> list[Participant]:
    """
    Narrow the participants down to who may facilitate next.

    The current facilitator is excluded only when someone else is available.

    Args:
        participants: Everyone who took part in the retrospective
        current_facilitator: Who ran this retrospective, if anyone

    Returns:
        Candidates sorted by id
    """
    pool = sorted(set(participants), key=lambda p: p.id)
    if current_facilitator is None:
        return pool

    others = [p for p in pool if p != current_facilitator]
    if others:
        return others
    return pool


def select_next_facilitator(
    participants: Iterable[Participant],
    current_facilitator: Participant | None,
    rng: random.Random | None = None,
) -> Participant | None:
    """
    Pick the next facilitator uniformly at random from the eligible pool.

    Args:
        participants: Everyone who took part in the retrospective
        current_facilitator: Who ran this retrospective, if anyone
        rng: Optional random source (defaults to the module-level generator)

    Returns:
        The chosen participant, the current facilitator when they were the
        only participant, or None when nobody took part
    """
    candidates = eligible_facilitators(participants, current_facilitator)
    if not candidates:
        return None

    chooser = rng if rng is not None else random
    chosen = chooser.choice(candidates)
    logger.debug(
        "Selected next facilitator %s from %d candidate(s)", chosen.id, len(candidates)
    )
    return chosen
