"""Retrospective report assembly.

Collects everyone who took part, nominates the next facilitator, sorts the
board into its four columns and hands the result to a narrator that writes
the HTML summary. The narrator is injected so the assembly logic can be
exercised with deterministic stubs.
"""

import logging
import random
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from .facilitator import select_next_facilitator
from .models import Category, Participant, PollResponse, RetroItem, RetroReport
from .telemetry import is_telemetry_enabled, trace_span

logger = logging.getLogger(__name__)


class ReportValidationError(ValueError):
    """Raised when the report request is missing the team identity."""


class ReportGenerationError(RuntimeError):
    """Raised when the narrator fails or produces nothing."""


@dataclass
class NarrationPayload:
    """Everything the narrator needs to write the summary."""

    team_id: str
    team_name: str
    current_date: str
    current_facilitator: Participant | None
    next_facilitator: Participant | None
    went_well: list[RetroItem] = field(default_factory=list)
    improve: list[RetroItem] = field(default_factory=list)
    discuss: list[RetroItem] = field(default_factory=list)
    action: list[RetroItem] = field(default_factory=list)
    poll_responses: list[PollResponse] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "team_id": self.team_id,
            "team_name": self.team_name,
            "current_date": self.current_date,
            "current_facilitator": (
                self.current_facilitator.to_dict() if self.current_facilitator else None
            ),
            "next_facilitator": (
                self.next_facilitator.to_dict() if self.next_facilitator else None
            ),
            "went_well": [i.to_dict() for i in self.went_well],
            "improve": [i.to_dict() for i in self.improve],
            "discuss": [i.to_dict() for i in self.discuss],
            "action": [i.to_dict() for i in self.action],
            "poll_responses": [p.to_dict() for p in self.poll_responses],
        }


Narrator = Callable[[NarrationPayload], Awaitable[str]]


def format_report_date(day: date) -> str:
    """Format a date as 'October 19, 2026'."""
    return f"{day:%B} {day.day}, {day.year}"


def collect_participants(
    poll_responses: Iterable[PollResponse],
    retro_items: Iterable[RetroItem],
) -> set[Participant]:
    """
    Gather everyone who voted, posted an item, or replied to one.

    Args:
        poll_responses: Poll responses for this retrospective
        retro_items: Top-level retro items (with nested replies)

    Returns:
        Distinct participants
    """
    participants = {response.author for response in poll_responses}
    for item in retro_items:
        participants.add(item.author)
        participants.update(reply.author for reply in item.replies)
    return participants


def partition_items(
    retro_items: Iterable[RetroItem],
) -> dict[Category, list[RetroItem]]:
    """
    Split items into the four board columns.

    Items without a category are left out of every column.

    Args:
        retro_items: Items to sort

    Returns:
        Mapping of every category to its items, in input order
    """
    columns: dict[Category, list[RetroItem]] = {category: [] for category in Category}
    for item in retro_items:
        if item.category is None:
            logger.debug("Dropping uncategorized retro item %s", item.id)
            continue
        columns[item.category].append(item)
    return columns


async def assemble_report(
    team_id: str,
    team_name: str,
    poll_responses: list[PollResponse],
    retro_items: list[RetroItem],
    current_facilitator: Participant | None,
    narrate: Narrator,
    rng: random.Random | None = None,
    today: date | None = None,
) -> RetroReport:
    """
    Build the retrospective report for one team.

    Args:
        team_id: Team identifier
        team_name: Team display name
        poll_responses: Sentiment poll responses
        retro_items: Board items, replies nested inside
        current_facilitator: Who ran this retrospective, if anyone
        narrate: Async callable turning the payload into an HTML summary
        rng: Optional random source for the facilitator draw
        today: Report date (defaults to today)

    Returns:
        The narrator's summary paired with the selected next facilitator

    Raises:
        ReportValidationError: team_id or team_name is empty
        ReportGenerationError: the narrator raised or returned nothing
    """
    if not team_id or not team_id.strip() or not team_name or not team_name.strip():
        raise ReportValidationError("Team name and ID are required.")

    with trace_span(
        "retro.assemble_report",
        team_id=team_id,
        poll_count=len(poll_responses),
        item_count=len(retro_items),
    ) as span:
        participants = collect_participants(poll_responses, retro_items)
        next_facilitator = select_next_facilitator(participants, current_facilitator, rng=rng)
        columns = partition_items(retro_items)

        payload = NarrationPayload(
            team_id=team_id,
            team_name=team_name,
            current_date=format_report_date(today or date.today()),
            current_facilitator=current_facilitator,
            next_facilitator=next_facilitator,
            went_well=columns[Category.WENT_WELL],
            improve=columns[Category.IMPROVE],
            discuss=columns[Category.DISCUSS],
            action=columns[Category.ACTION],
            poll_responses=list(poll_responses),
        )

        try:
            summary = await narrate(payload)
        except Exception as e:
            logger.error("Report narration failed for team %s: %s", team_id, e)
            raise ReportGenerationError(f"Failed to generate report: {e}") from e

        if not summary or not summary.strip():
            logger.error("Report narration returned no text for team %s", team_id)
            raise ReportGenerationError("Failed to generate report: narrator returned no text")

        if is_telemetry_enabled():
            span.set_attributes({
                "retro.participant_count": len(participants),
                "retro.summary_length": len(summary),
            })

    logger.info(
        "Generated report for team %s with %d participant(s)", team_id, len(participants)
    )
    return RetroReport(summary_html=summary, next_facilitator=next_facilitator)
