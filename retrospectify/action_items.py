"""Turning discussion topics into action items."""

import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

Completer = Callable[[str], Awaitable[str | None]]

EMPTY_TOPIC_ACTION = "Define action item for the discussed topic."

ACTION_ITEM_PROMPT = """Review the following discussion topic from a team retrospective:
"{topic}"

Rephrase this topic into a clear, concise, and actionable task. The action item should start with a verb and clearly state what needs to be done. Assign ownership if implied or suggest it if needed (e.g., "Assign someone to...").

Examples:
- Discussion Topic: "Should we reconsider our testing strategy?"
  Action Item: Review and propose changes to the current testing strategy.
- Discussion Topic: "Deployment process was a bit slow this week."
  Action Item: Investigate the cause of slow deployment and identify optimization points.
- Discussion Topic: "Communication needs improvement between teams."
  Action Item: Schedule a meeting to define clearer communication protocols between teams.

Reply with the action item text only."""


def fallback_action_item(topic: str) -> str:
    """Action item used when the model gives nothing back."""
    return f"[Action Needed] {topic}"


def build_action_item_prompt(topic: str) -> str:
    return ACTION_ITEM_PROMPT.format(topic=topic)


async def generate_action_item(topic: str, complete: Completer) -> str:
    """
    Convert a discussion topic into a concise action item.

    Args:
        topic: The discussion topic text
        complete: Async text completion callable

    Returns:
        The action item text
    """
    if not topic or not topic.strip():
        return EMPTY_TOPIC_ACTION

    topic = topic.strip()
    try:
        text = await complete(build_action_item_prompt(topic))
    except Exception as e:
        logger.warning("Action item generation failed: %s", e)
        text = None

    if not text or not text.strip():
        return fallback_action_item(topic)

    action = text.strip()
    if action.lower().startswith("action item:"):
        action = action[len("action item:"):].strip()
    return action or fallback_action_item(topic)
