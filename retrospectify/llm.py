"""OpenRouter-backed narrator, classifier and completer."""

import json
import logging
import re

from .config import get_classifier_model, get_report_model
from .models import Categorization, Category, Participant, RetroItem
from .openrouter import query_model
from .report import NarrationPayload

logger = logging.getLogger(__name__)

_CODE_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n?|\n?```\s*$")

CLASSIFIER_PROMPT = """You sort team retrospective poll feedback into one of three categories.

Rating: {rating} out of 5
Justification: "{justification}"

Rules:
- Rating 4-5 with positive or neutral text: "went-well"
- Rating 1-2 with negative text: "improve"
- Rating 3, mixed feelings, or text that raises a question: "discuss"
- Rating and text contradict each other: prefer "discuss" or "improve" based on the sentiment of the text
- Text mixing positive and negative points: "discuss"

Respond ONLY with a JSON object of the form:
{{"category": "went-well" | "improve" | "discuss", "reasoning": "<one sentence>"}}"""


def strip_code_fences(text: str) -> str:
    """Remove a surrounding Markdown code fence, if any."""
    return _CODE_FENCE_RE.sub("", text.strip()).strip()


def _describe_person(person: Participant | None, missing: str) -> str:
    if person is None:
        return missing
    if person.email:
        return f"{person.name} ({person.email})"
    return person.name


def _format_items(items: list[RetroItem]) -> str:
    if not items:
        return "No items."
    lines = []
    for item in items:
        lines.append(f'- "{item.content}" (by {item.author.name}, Submitted: {item.created_at})')
        for reply in item.replies:
            lines.append(
                f'    (Reply by {reply.author.name}: "{reply.content}", Submitted: {reply.created_at})'
            )
    return "\n".join(lines)


def build_report_prompt(payload: NarrationPayload) -> str:
    """Render the narration payload as the report-writing prompt."""
    if payload.poll_responses:
        poll_text = "\n".join(
            f'- {_describe_person(r.author, "Unknown")}: {r.rating} stars. '
            f'Justification: "{r.justification}" (Submitted: {r.created_at})'
            for r in payload.poll_responses
        )
    else:
        poll_text = "No sentiment poll responses were submitted."

    return f"""You are generating a retrospective summary report for team "{payload.team_name}" (ID: {payload.team_id}).
Date of Report: {payload.current_date}

Current Scrum Master: {_describe_person(payload.current_facilitator, "None")}
Next Scrum Master (already decided, do not change): {_describe_person(payload.next_facilitator, "To be determined or no change")}

Sentiment Poll Responses:
{poll_text}

What Went Well:
{_format_items(payload.went_well)}

What Could Be Improved:
{_format_items(payload.improve)}

Discussion Topics:
{_format_items(payload.discuss)}

Action Items:
{_format_items(payload.action)}

Task:
Write an HTML summary of this retrospective, well formatted for email. Include:
- Team name and date of report.
- Sentiment Analysis: the average rating and the key themes from the justifications.
- What Went Well, What Could Be Improved, Discussion Points and Action Items as lists.
- Next Scrum Master: the name and email given above.
Use only simple tags: <h1>, <h2>, <p>, <ul>, <li>. Do not include <style> tags or CSS.
Return only the HTML."""


async def llm_narrate(payload: NarrationPayload) -> str:
    """
    Write the HTML report for a payload using the report model.

    Returns:
        HTML text, or an empty string when the model produced nothing
    """
    messages = [{"role": "user", "content": build_report_prompt(payload)}]
    response = await query_model(get_report_model(), messages)
    if response is None:
        return ""
    return strip_code_fences(response.get("content") or "")


def parse_categorization(text: str | None) -> Categorization | None:
    """
    Parse the classifier's JSON reply.

    Args:
        text: Raw model output

    Returns:
        Categorization, or None if the reply is missing or malformed
    """
    if not text:
        return None
    try:
        data = json.loads(strip_code_fences(text))
    except json.JSONDecodeError:
        logger.warning("Classifier returned non-JSON output")
        return None
    if not isinstance(data, dict):
        return None

    category = Category.parse(data.get("category"))
    if category is None:
        return None
    return Categorization(category=category, reasoning=str(data.get("reasoning") or ""))


async def llm_classify(rating: int, justification: str) -> Categorization | None:
    """Classify a justification with the classifier model."""
    prompt = CLASSIFIER_PROMPT.format(rating=rating, justification=justification)
    response = await query_model(get_classifier_model(), [{"role": "user", "content": prompt}])
    if response is None:
        return None
    return parse_categorization(response.get("content"))


async def llm_complete(prompt: str) -> str | None:
    """Plain text completion with the classifier model."""
    response = await query_model(get_classifier_model(), [{"role": "user", "content": prompt}])
    if response is None:
        return None
    return response.get("content")
