"""Tests for retrospectify.report."""

import random
from datetime import date
from unittest.mock import AsyncMock

import pytest

from retrospectify.models import Category, Participant, PollResponse, Reply, RetroItem
from retrospectify.report import (
    NarrationPayload,
    ReportGenerationError,
    ReportValidationError,
    assemble_report,
    collect_participants,
    format_report_date,
    partition_items,
)

ALICE = Participant(id="alice", name="Alice", email="alice@example.com")
BOB = Participant(id="bob", name="Bob", email="bob@example.com")
CAROL = Participant(id="carol", name="Carol", email="carol@example.com")

POLLS = [
    PollResponse(id="p1", author=ALICE, rating=4, justification="Good sprint"),
    PollResponse(id="p2", author=BOB, rating=2, justification="Too many meetings"),
]

ITEMS = [
    RetroItem(id="i1", author=ALICE, content="Shipped on time", category=Category.WENT_WELL),
    RetroItem(
        id="i2",
        author=BOB,
        content="Flaky tests",
        category=Category.IMPROVE,
        replies=[Reply(id="r1", author=CAROL, content="Agreed")],
    ),
    RetroItem(id="i3", author=ALICE, content="Pairing?", category=Category.DISCUSS),
    RetroItem(id="i4", author=BOB, content="Fix CI", category=Category.ACTION),
    RetroItem(id="i5", author=BOB, content="Orphan", category=None),
]


def _narrator(text="<h1>Report</h1>"):
    return AsyncMock(return_value=text)


class TestFormatReportDate:
    def test_long_month_format(self):
        assert format_report_date(date(2026, 10, 5)) == "October 5, 2026"


class TestCollectParticipants:
    """Tests for collect_participants."""

    def test_includes_poll_item_and_reply_authors(self):
        assert collect_participants(POLLS, ITEMS) == {ALICE, BOB, CAROL}

    def test_distinct_by_id(self):
        renamed = Participant(id="alice", name="Someone else")
        polls = [PollResponse(id="p", author=renamed, rating=3)]
        assert len(collect_participants(polls, ITEMS[:1])) == 1

    def test_empty(self):
        assert collect_participants([], []) == set()


class TestPartitionItems:
    """Tests for partition_items."""

    def test_items_land_in_their_column(self):
        columns = partition_items(ITEMS)
        assert [i.id for i in columns[Category.WENT_WELL]] == ["i1"]
        assert [i.id for i in columns[Category.IMPROVE]] == ["i2"]
        assert [i.id for i in columns[Category.DISCUSS]] == ["i3"]
        assert [i.id for i in columns[Category.ACTION]] == ["i4"]

    def test_uncategorized_items_are_dropped(self):
        columns = partition_items(ITEMS)
        all_ids = {i.id for items in columns.values() for i in items}
        assert "i5" not in all_ids

    def test_empty_input_gives_four_empty_columns(self):
        columns = partition_items([])
        assert set(columns) == set(Category)
        assert all(items == [] for items in columns.values())


class TestAssembleReport:
    """Tests for assemble_report."""

    @pytest.mark.asyncio
    async def test_returns_narration_and_selected_facilitator(self):
        narrate = _narrator("<h1>Summary</h1>")
        report = await assemble_report("t1", "Team", POLLS, ITEMS, ALICE, narrate)

        assert report.summary_html == "<h1>Summary</h1>"
        assert report.next_facilitator in {BOB, CAROL}
        narrate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_payload_contents(self):
        narrate = _narrator()
        report = await assemble_report(
            "t1", "Team", POLLS, ITEMS, ALICE, narrate, today=date(2026, 1, 2)
        )

        payload: NarrationPayload = narrate.call_args.args[0]
        assert payload.team_id == "t1"
        assert payload.team_name == "Team"
        assert payload.current_date == "January 2, 2026"
        assert payload.current_facilitator == ALICE
        assert payload.next_facilitator == report.next_facilitator
        assert [i.id for i in payload.went_well] == ["i1"]
        assert payload.improve[0].replies[0].content == "Agreed"
        assert [i.id for i in payload.discuss] == ["i3"]
        assert [i.id for i in payload.action] == ["i4"]
        assert payload.poll_responses == POLLS

    @pytest.mark.asyncio
    async def test_next_facilitator_comes_from_selector_not_text(self):
        narrate = _narrator("<p>Next Scrum Master: Alice</p>")
        report = await assemble_report("t1", "Team", POLLS, ITEMS, ALICE, narrate)
        assert report.next_facilitator != ALICE

    @pytest.mark.asyncio
    async def test_empty_items_still_narrates_once(self):
        narrate = _narrator()
        report = await assemble_report("t1", "Team", [], [], None, narrate)

        payload = narrate.call_args.args[0]
        assert payload.went_well == []
        assert payload.improve == []
        assert payload.discuss == []
        assert payload.action == []
        assert narrate.await_count == 1
        assert report.next_facilitator is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("team_id,team_name", [("", "Team"), ("t1", ""), ("  ", "Team")])
    async def test_missing_team_identity_fails_before_narration(self, team_id, team_name):
        narrate = _narrator()
        with pytest.raises(ReportValidationError):
            await assemble_report(team_id, team_name, POLLS, ITEMS, None, narrate)
        assert narrate.await_count == 0

    @pytest.mark.asyncio
    async def test_narrator_exception_becomes_generation_error(self):
        cause = RuntimeError("model unavailable")
        narrate = AsyncMock(side_effect=cause)

        with pytest.raises(ReportGenerationError) as exc_info:
            await assemble_report("t1", "Team", POLLS, ITEMS, None, narrate)

        assert exc_info.value.__cause__ is cause
        assert "model unavailable" in str(exc_info.value)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", None])
    async def test_empty_narration_is_an_error(self, text):
        with pytest.raises(ReportGenerationError):
            await assemble_report("t1", "Team", POLLS, ITEMS, None, _narrator(text))

    @pytest.mark.asyncio
    async def test_inputs_not_mutated(self):
        items = [RetroItem.from_dict(i.to_dict()) for i in ITEMS]
        before = [i.to_dict() for i in items]

        await assemble_report("t1", "Team", POLLS, items, ALICE, _narrator())

        assert [i.to_dict() for i in items] == before

    @pytest.mark.asyncio
    async def test_repeated_runs_same_summary_and_same_pool(self):
        async def pure_narrator(payload):
            return f"<h1>{payload.team_name}</h1><p>{len(payload.poll_responses)}</p>"

        first = await assemble_report("t1", "Team", POLLS, ITEMS, ALICE, pure_narrator)
        second = await assemble_report("t1", "Team", POLLS, ITEMS, ALICE, pure_narrator)

        assert first.summary_html == second.summary_html
        assert {first.next_facilitator, second.next_facilitator} <= {BOB, CAROL}

    @pytest.mark.asyncio
    async def test_seeded_rng_fixes_the_pick(self):
        first = await assemble_report(
            "t1", "Team", POLLS, ITEMS, None, _narrator(), rng=random.Random(3)
        )
        second = await assemble_report(
            "t1", "Team", POLLS, ITEMS, None, _narrator(), rng=random.Random(3)
        )
        assert first.next_facilitator == second.next_facilitator
