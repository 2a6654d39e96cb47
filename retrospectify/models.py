"""Retrospective data models shared by the core and the API layer."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


class Category(str, Enum):
    """Board column a retro item belongs to."""

    WENT_WELL = "went-well"
    IMPROVE = "improve"
    DISCUSS = "discuss"
    ACTION = "action"

    @classmethod
    def parse(cls, value: Any) -> "Category | None":
        """Parse a stored category, returning None for anything unknown."""
        if isinstance(value, cls):
            return value
        if value == "well":  # older boards used the short column key
            return cls.WENT_WELL
        try:
            return cls(value)
        except ValueError:
            return None


# Categories a poll justification can be sorted into
JUSTIFICATION_CATEGORIES = (Category.WENT_WELL, Category.IMPROVE, Category.DISCUSS)


@dataclass(frozen=True)
class Participant:
    """A team member. Identity is the id alone."""

    id: str
    name: str = field(default="", compare=False)
    email: str | None = field(default=None, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"id": self.id, "name": self.name, "email": self.email}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Participant":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            name=data.get("name") or data["id"],
            email=data.get("email"),
        )


@dataclass
class PollResponse:
    """A participant's weekly sentiment rating."""

    id: str
    author: Participant
    rating: int
    justification: str = ""
    created_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "author": self.author.to_dict(),
            "rating": self.rating,
            "justification": self.justification,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PollResponse":
        """Create from dictionary."""
        return cls(
            id=data.get("id", ""),
            author=Participant.from_dict(data["author"]),
            rating=data["rating"],
            justification=data.get("justification", ""),
            created_at=data.get("created_at", ""),
        )


@dataclass
class Reply:
    """A threaded reply under a retro item. Replies carry no category."""

    id: str
    author: Participant
    content: str
    created_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "author": self.author.to_dict(),
            "content": self.content,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Reply":
        """Create from dictionary."""
        return cls(
            id=data.get("id", ""),
            author=Participant.from_dict(data["author"]),
            content=data.get("content", ""),
            created_at=data.get("created_at", ""),
        )


@dataclass
class RetroItem:
    """A note posted to the retrospective board."""

    id: str
    author: Participant
    content: str
    category: Category | None = None
    created_at: str = field(default_factory=utc_now_iso)
    replies: list[Reply] = field(default_factory=list)
    is_from_poll: bool = False
    poll_response_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result = {
            "id": self.id,
            "author": self.author.to_dict(),
            "content": self.content,
            "category": self.category.value if self.category else None,
            "created_at": self.created_at,
            "replies": [r.to_dict() for r in self.replies],
        }
        if self.is_from_poll:
            result["is_from_poll"] = True
            result["poll_response_id"] = self.poll_response_id
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RetroItem":
        """Create from dictionary."""
        return cls(
            id=data.get("id", ""),
            author=Participant.from_dict(data["author"]),
            content=data.get("content", ""),
            category=Category.parse(data.get("category")),
            created_at=data.get("created_at", ""),
            replies=[Reply.from_dict(r) for r in data.get("replies") or []],
            is_from_poll=data.get("is_from_poll", False),
            poll_response_id=data.get("poll_response_id"),
        )


@dataclass(frozen=True)
class Categorization:
    """Outcome of sorting a poll justification into a board column."""

    category: Category
    reasoning: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"category": self.category.value, "reasoning": self.reasoning}


@dataclass
class RetroReport:
    """Generated summary plus the nominated next facilitator."""

    summary_html: str
    next_facilitator: Participant | None
    generated_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for storage/API."""
        return {
            "summary_html": self.summary_html,
            "next_facilitator": (
                self.next_facilitator.to_dict() if self.next_facilitator else None
            ),
            "generated_at": self.generated_at,
        }
