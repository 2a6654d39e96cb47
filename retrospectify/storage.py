"""JSON-based storage for team retrospective boards."""

import json
import os
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import config
from .models import utc_now_iso


def get_teams_dir() -> str:
    """Directory holding one JSON file per team."""
    return config.TEAMS_DIR


def ensure_data_dir() -> None:
    """Ensure the teams directory exists."""
    Path(get_teams_dir()).mkdir(parents=True, exist_ok=True)


def get_team_path(team_id: str) -> str:
    """Get the file path for a team.

    Args:
        team_id: Unique team identifier

    Returns:
        Full path to the team JSON file
    """
    return os.path.join(get_teams_dir(), f"{team_id}.json")


def _new_id() -> str:
    return str(uuid.uuid4())


def create_team(team_id: str, name: str, owner: Dict[str, Any]) -> Dict[str, Any]:
    """Create a new team with its owner as the first member.

    Args:
        team_id: Unique identifier for the team
        name: Team display name
        owner: Participant dict of the creating user

    Returns:
        New team dict
    """
    ensure_data_dir()

    team = {
        "id": team_id,
        "name": name,
        "owner_id": owner["id"],
        "created_at": utc_now_iso(),
        "members": [owner],
        "facilitator_id": None,
        "poll_responses": [],
        "retro_items": [],
        "reports": [],
    }

    save_team(team)
    return team


def get_team(team_id: str) -> Optional[Dict[str, Any]]:
    """Load a team from storage.

    Args:
        team_id: Unique identifier for the team

    Returns:
        Team dict or None if not found
    """
    path = get_team_path(team_id)

    if not os.path.exists(path):
        return None

    with open(path, "r") as f:
        return json.load(f)


def _require_team(team_id: str) -> Dict[str, Any]:
    team = get_team(team_id)
    if team is None:
        raise ValueError(f"Team {team_id} not found")
    return team


def save_team(team: Dict[str, Any]) -> None:
    """Save a team to storage.

    Args:
        team: Team dict to save
    """
    ensure_data_dir()

    path = get_team_path(team["id"])
    with open(path, "w") as f:
        json.dump(team, f, indent=2)


def _extract_team_metadata(data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": data["id"],
        "name": data.get("name", ""),
        "created_at": data.get("created_at", ""),
        "member_count": len(data.get("members", [])),
        "facilitator_id": data.get("facilitator_id"),
    }


def list_teams(member_id: Optional[str] = None) -> List[Dict[str, Any]]:
    """List teams (metadata only).

    Args:
        member_id: If given, only teams this user belongs to

    Returns:
        List of team metadata dicts, sorted by name
    """
    ensure_data_dir()
    data_dir = get_teams_dir()

    teams = []
    for filename in os.listdir(data_dir):
        if filename.endswith(".json"):
            path = os.path.join(data_dir, filename)
            with open(path, "r") as f:
                data = json.load(f)
            if member_id and not find_member(data, member_id):
                continue
            teams.append(_extract_team_metadata(data))

    teams.sort(key=lambda x: x["name"].lower())
    return teams


def delete_team(team_id: str) -> bool:
    """Delete a team.

    Returns:
        True if the team existed
    """
    path = get_team_path(team_id)
    if not os.path.exists(path):
        return False
    os.remove(path)
    return True


def find_member(team: Dict[str, Any], member_id: str) -> Optional[Dict[str, Any]]:
    """Find a member of a loaded team by id."""
    for member in team.get("members", []):
        if member["id"] == member_id:
            return member
    return None


def get_facilitator(team: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Current facilitator of a loaded team, if set and still a member."""
    facilitator_id = team.get("facilitator_id")
    if not facilitator_id:
        return None
    return find_member(team, facilitator_id)


def add_member(team_id: str, member: Dict[str, Any]) -> Dict[str, Any]:
    """Add a member to a team, updating name/email if already present.

    Args:
        team_id: Team identifier
        member: Participant dict

    Returns:
        Updated team dict
    """
    team = _require_team(team_id)

    existing = find_member(team, member["id"])
    if existing is not None:
        existing.update(member)
    else:
        team["members"].append(member)

    save_team(team)
    return team


def remove_member(team_id: str, member_id: str) -> bool:
    """Remove a member, clearing the facilitator role if they held it.

    Returns:
        True if the member was removed
    """
    team = _require_team(team_id)

    if find_member(team, member_id) is None:
        return False

    team["members"] = [m for m in team["members"] if m["id"] != member_id]
    if team.get("facilitator_id") == member_id:
        team["facilitator_id"] = None

    save_team(team)
    return True


def set_facilitator(team_id: str, member_id: Optional[str]) -> Dict[str, Any]:
    """Set or clear the team's facilitator.

    Args:
        team_id: Team identifier
        member_id: Member to appoint, or None to clear

    Returns:
        Updated team dict

    Raises:
        ValueError: If the team is missing or member_id is not a member
    """
    team = _require_team(team_id)

    if member_id is not None and find_member(team, member_id) is None:
        raise ValueError(f"User {member_id} is not a member of team {team_id}")

    team["facilitator_id"] = member_id
    save_team(team)
    return team


def upsert_poll_response(
    team_id: str,
    author: Dict[str, Any],
    rating: int,
    justification: str,
) -> Dict[str, Any]:
    """Record an author's poll response, replacing their earlier one.

    Retro items previously generated from the replaced response are removed.

    Args:
        team_id: Team identifier
        author: Participant dict
        rating: Star rating (validated by the caller)
        justification: Free-text justification

    Returns:
        The stored poll response dict
    """
    team = _require_team(team_id)

    response = None
    for existing in team["poll_responses"]:
        if existing["author"]["id"] == author["id"]:
            response = existing
            break

    if response is None:
        response = {"id": _new_id(), "author": author}
        team["poll_responses"].append(response)

    response.update({
        "author": author,
        "rating": rating,
        "justification": justification,
        "created_at": utc_now_iso(),
    })

    team["retro_items"] = [
        item for item in team["retro_items"]
        if item.get("poll_response_id") != response["id"]
    ]

    save_team(team)
    return response


def add_retro_item(
    team_id: str,
    author: Dict[str, Any],
    content: str,
    category: str,
    poll_response_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Post an item to the team's board.

    Args:
        team_id: Team identifier
        author: Participant dict
        content: Item text
        category: Board column value
        poll_response_id: Set when the item was generated from a poll response

    Returns:
        The stored item dict
    """
    team = _require_team(team_id)

    item = {
        "id": _new_id(),
        "author": author,
        "content": content,
        "category": category,
        "created_at": utc_now_iso(),
        "replies": [],
    }
    if poll_response_id:
        item["is_from_poll"] = True
        item["poll_response_id"] = poll_response_id

    team["retro_items"].append(item)
    save_team(team)
    return item


def add_reply(
    team_id: str,
    item_id: str,
    author: Dict[str, Any],
    content: str,
) -> Dict[str, Any]:
    """Reply to a top-level retro item.

    Raises:
        ValueError: If the team or item does not exist
    """
    team = _require_team(team_id)

    item = find_retro_item(team, item_id)
    if item is None:
        raise ValueError(f"Retro item {item_id} not found")

    reply = {
        "id": _new_id(),
        "author": author,
        "content": content,
        "created_at": utc_now_iso(),
    }
    item.setdefault("replies", []).append(reply)
    save_team(team)
    return reply


def delete_retro_item(team_id: str, item_id: str) -> bool:
    """Delete a retro item and its replies.

    Returns:
        True if the item existed
    """
    team = _require_team(team_id)

    remaining = [item for item in team["retro_items"] if item["id"] != item_id]
    if len(remaining) == len(team["retro_items"]):
        return False

    team["retro_items"] = remaining
    save_team(team)
    return True


def find_retro_item(team: Dict[str, Any], item_id: str) -> Optional[Dict[str, Any]]:
    """Find a top-level item on a loaded team's board by id."""
    for item in team.get("retro_items", []):
        if item["id"] == item_id:
            return item
    return None


def update_retro_item(
    team_id: str,
    item_id: str,
    content: Optional[str] = None,
    category: Optional[str] = None,
) -> Dict[str, Any]:
    """Edit an item's text and/or move it to another column.

    Raises:
        ValueError: If the team or item does not exist
    """
    team = _require_team(team_id)

    item = find_retro_item(team, item_id)
    if item is None:
        raise ValueError(f"Retro item {item_id} not found")

    if content is not None:
        item["content"] = content
    if category is not None:
        item["category"] = category
    item["updated_at"] = utc_now_iso()

    save_team(team)
    return item


def set_poll_rating(team_id: str, author_id: str, rating: int) -> Dict[str, Any]:
    """Change the rating of an author's poll response, keeping its items.

    Raises:
        ValueError: If the team or the author's response does not exist
    """
    team = _require_team(team_id)

    for response in team["poll_responses"]:
        if response["author"]["id"] == author_id:
            response["rating"] = rating
            save_team(team)
            return response

    raise ValueError(f"No poll response from {author_id} in team {team_id}")


def rename_team(team_id: str, name: str) -> Dict[str, Any]:
    """Rename a team.

    Raises:
        ValueError: If the team does not exist
    """
    team = _require_team(team_id)
    team["name"] = name
    save_team(team)
    return team


def complete_retrospective(
    team_id: str,
    report: Dict[str, Any],
    poll_ids: List[str],
    item_ids: List[str],
    next_facilitator_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Archive the report, rotate the facilitator and clear the reported board.

    Only the poll responses and items that went into the report are removed.
    Anything posted while the report was being written stays on the board
    for the next retrospective.

    Args:
        team_id: Team identifier
        report: Report dict to archive
        poll_ids: Ids of the poll responses covered by the report
        item_ids: Ids of the retro items covered by the report
        next_facilitator_id: New facilitator; ignored when None or not a member

    Returns:
        Updated team dict
    """
    team = _require_team(team_id)
    reported_polls = set(poll_ids)
    reported_items = set(item_ids)

    team["reports"].append({
        **report,
        "poll_count": len(reported_polls),
        "item_count": len(reported_items),
    })
    if next_facilitator_id and find_member(team, next_facilitator_id) is not None:
        team["facilitator_id"] = next_facilitator_id
    team["poll_responses"] = [
        p for p in team["poll_responses"] if p["id"] not in reported_polls
    ]
    team["retro_items"] = [
        i for i in team["retro_items"] if i["id"] not in reported_items
    ]

    save_team(team)
    return team
