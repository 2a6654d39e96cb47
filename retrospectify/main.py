"""FastAPI backend for Retrospectify."""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from . import storage
from .action_items import generate_action_item
from .auth import AUTH_ENABLED, User, get_optional_user, require_user
from .categorizer import categorize
from .config import get_classifier_model, get_report_model, reload_config, update_model_config
from .llm import llm_classify, llm_complete, llm_narrate
from .logging_config import (
    clear_request_context,
    set_correlation_id,
    set_current_user,
    set_team_id,
    setup_logging,
)
from .mailer import report_subject, send_email
from .models import Category, Participant, PollResponse, RetroItem
from .report import ReportGenerationError, ReportValidationError, assemble_report
from .telemetry import instrument_fastapi, setup_telemetry
from .version import get_version

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    if setup_telemetry():
        instrument_fastapi(app)
    yield


app = FastAPI(title="Retrospectify API", lifespan=lifespan)

# Enable CORS for local development (when running frontend separately)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Tag log lines with a correlation id for the request."""
    set_correlation_id(request.headers.get("X-Request-ID") or str(uuid.uuid4()))
    set_current_user(request.headers.get("Remote-User") if AUTH_ENABLED else None)
    try:
        return await call_next(request)
    finally:
        clear_request_context()


class CreateTeamRequest(BaseModel):
    """Request to create a team."""
    name: str = Field(..., min_length=1)


class RenameTeamRequest(BaseModel):
    """Request to rename a team."""
    name: str = Field(..., min_length=1)


class AddMemberRequest(BaseModel):
    """Request to add a member to a team."""
    id: str = Field(..., min_length=1)
    name: Optional[str] = None
    email: Optional[str] = None


class SetFacilitatorRequest(BaseModel):
    """Request to appoint or clear the facilitator."""
    member_id: Optional[str] = None


class PollRequest(BaseModel):
    """Weekly sentiment poll submission."""
    rating: int = Field(..., ge=1, le=5)
    justification: str = ""


class RetroItemRequest(BaseModel):
    """Request to post an item to the board."""
    content: str = Field(..., min_length=1)
    category: Category


class UpdateRetroItemRequest(BaseModel):
    """Request to edit an item's text and/or move it to another column."""
    content: Optional[str] = Field(None, min_length=1)
    category: Optional[Category] = None


class AdjustRatingRequest(BaseModel):
    """Request to change the rating of the caller's poll response."""
    rating: int = Field(..., ge=1, le=5)


class ReplyRequest(BaseModel):
    """Request to reply to a board item."""
    content: str = Field(..., min_length=1)


class CategorizeRequest(BaseModel):
    """Request to categorize a justification."""
    rating: int = Field(..., ge=1, le=5)
    justification: str = ""


class ActionItemRequest(BaseModel):
    """Request to turn a discussion topic into an action item."""
    discussion_topic: str


class SendEmailRequest(BaseModel):
    """Outbound e-mail request."""
    to: List[str] = Field(default_factory=list)
    subject: str = ""
    html_body: str = ""


class UpdateConfigRequest(BaseModel):
    """Request to update model configuration."""
    report_model: Optional[str] = None
    classifier_model: Optional[str] = None


def _load_team(team_id: str) -> Dict[str, Any]:
    team = storage.get_team(team_id)
    if team is None:
        raise HTTPException(status_code=404, detail="Team not found")
    set_team_id(team_id)
    return team


def _load_item(team: Dict[str, Any], item_id: str) -> Dict[str, Any]:
    item = storage.find_retro_item(team, item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Retro item not found")
    return item


def _require_author(item: Dict[str, Any], user: User, action: str) -> None:
    if user.is_admin or item["author"]["id"] == user.username:
        return
    raise HTTPException(
        status_code=403, detail=f"Only the author or an admin can {action} this item"
    )


def _suggest_rating_adjustment(
    team: Dict[str, Any],
    author_id: str,
    user: User,
    source: Optional[Category],
    target: Optional[Category],
) -> Optional[Dict[str, int]]:
    """Rating change to offer when authors move their own item between
    went-well and improve. None when there is nothing to suggest."""
    if author_id != user.username:
        return None

    if (source, target) == (Category.WENT_WELL, Category.IMPROVE):
        delta = -1
    elif (source, target) == (Category.IMPROVE, Category.WENT_WELL):
        delta = 1
    else:
        return None

    for response in team.get("poll_responses", []):
        if response["author"]["id"] == author_id:
            current = response["rating"]
            suggested = min(5, max(1, current + delta))
            if suggested == current:
                return None
            return {"current_rating": current, "suggested_rating": suggested}
    return None


async def _post_action_item(
    team_id: str, source: Dict[str, Any], user: User
) -> Dict[str, Any]:
    """Generate an action item from a discussion topic and post it to the board."""
    text = await generate_action_item(source["content"], llm_complete)
    logger.info("Action item generated from discussion item %s", source["id"])
    return storage.add_retro_item(
        team_id, user.to_participant().to_dict(), text, Category.ACTION.value
    )


def _require_member(team: Dict[str, Any], user: User) -> None:
    if user.is_admin or storage.find_member(team, user.username):
        return
    raise HTTPException(status_code=403, detail="Not a member of this team")


def _require_manager(team: Dict[str, Any], user: User) -> None:
    if user.is_admin or team.get("owner_id") == user.username:
        return
    raise HTTPException(status_code=403, detail="Only the team owner can manage this team")


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "Retrospectify API", "version": get_version()}


@app.get("/api/config")
async def get_config():
    """Get API configuration."""
    return {
        "report_model": get_report_model(),
        "classifier_model": get_classifier_model(),
        "auth_enabled": AUTH_ENABLED,
    }


@app.post("/api/config")
async def update_config(request: UpdateConfigRequest, user: User = Depends(require_user)):
    """Update model configuration (admins only)."""
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    config = update_model_config(
        report_model=request.report_model,
        classifier_model=request.classifier_model,
    )
    return {
        "status": "ok",
        "report_model": config.get("report_model", get_report_model()),
        "classifier_model": config.get("classifier_model", get_classifier_model()),
    }


@app.post("/api/config/reload")
async def reload_config_endpoint():
    """Reload configuration from .env and config files."""
    return reload_config()


@app.get("/api/user")
async def get_user_info(user: Optional[User] = Depends(get_optional_user)):
    """Get current user information from auth headers."""
    if not user:
        return {"authenticated": False}
    return {
        "authenticated": True,
        "username": user.username,
        "email": user.email,
        "display_name": user.display_name,
        "groups": user.groups,
    }


@app.get("/api/teams")
async def list_teams(user: User = Depends(require_user)):
    """List teams the user belongs to (all teams for admins)."""
    return storage.list_teams(member_id=None if user.is_admin else user.username)


@app.post("/api/teams")
async def create_team(request: CreateTeamRequest, user: User = Depends(require_user)):
    """Create a team owned by the current user."""
    team_id = str(uuid.uuid4())
    team = storage.create_team(team_id, request.name.strip(), user.to_participant().to_dict())
    logger.info("Team %s created by %s", team_id, user.username)
    return team


@app.get("/api/teams/{team_id}")
async def get_team(team_id: str, user: User = Depends(require_user)):
    """Get a team with its current board."""
    team = _load_team(team_id)
    _require_member(team, user)
    return team


@app.patch("/api/teams/{team_id}")
async def rename_team(
    team_id: str,
    request: RenameTeamRequest,
    user: User = Depends(require_user),
):
    """Rename a team."""
    team = _load_team(team_id)
    _require_manager(team, user)
    name = request.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Team name is required")
    return storage.rename_team(team_id, name)


@app.delete("/api/teams/{team_id}")
async def delete_team(team_id: str, user: User = Depends(require_user)):
    """Delete a team."""
    team = _load_team(team_id)
    _require_manager(team, user)
    storage.delete_team(team_id)
    return {"status": "ok", "id": team_id}


@app.post("/api/teams/{team_id}/members")
async def add_member(
    team_id: str,
    request: AddMemberRequest,
    user: User = Depends(require_user),
):
    """Add a member to the team."""
    team = _load_team(team_id)
    _require_manager(team, user)
    member = Participant(id=request.id, name=request.name or request.id, email=request.email)
    return storage.add_member(team_id, member.to_dict())


@app.delete("/api/teams/{team_id}/members/{member_id}")
async def remove_member(team_id: str, member_id: str, user: User = Depends(require_user)):
    """Remove a member from the team."""
    team = _load_team(team_id)
    _require_manager(team, user)
    if member_id == team.get("owner_id"):
        raise HTTPException(status_code=400, detail="The team owner cannot be removed")
    if not storage.remove_member(team_id, member_id):
        raise HTTPException(status_code=404, detail="Member not found")
    return {"status": "ok", "id": member_id}


@app.put("/api/teams/{team_id}/facilitator")
async def set_facilitator(
    team_id: str,
    request: SetFacilitatorRequest,
    user: User = Depends(require_user),
):
    """Appoint or clear the team's facilitator."""
    team = _load_team(team_id)
    _require_manager(team, user)
    try:
        team = storage.set_facilitator(team_id, request.member_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": "ok", "facilitator_id": team["facilitator_id"]}


@app.post("/api/teams/{team_id}/polls")
async def submit_poll(
    team_id: str,
    request: PollRequest,
    user: User = Depends(require_user),
):
    """Submit (or resubmit) the weekly poll.

    The justification is categorized and posted to the board as an item
    linked to the poll response.
    """
    team = _load_team(team_id)
    _require_member(team, user)
    author = user.to_participant().to_dict()

    response = storage.upsert_poll_response(
        team_id, author, request.rating, request.justification
    )
    categorization = await categorize(request.rating, request.justification, llm_classify)
    content = request.justification.strip() or f"Rated {request.rating} stars."
    item = storage.add_retro_item(
        team_id,
        author,
        content,
        categorization.category.value,
        poll_response_id=response["id"],
    )

    return {
        "poll_response": response,
        "item": item,
        "categorization": categorization.to_dict(),
    }


@app.patch("/api/teams/{team_id}/polls")
async def adjust_poll_rating(
    team_id: str,
    request: AdjustRatingRequest,
    user: User = Depends(require_user),
):
    """Change the rating of the caller's poll response.

    Items generated from the response are kept, unlike a resubmission.
    """
    team = _load_team(team_id)
    _require_member(team, user)
    try:
        return storage.set_poll_rating(team_id, user.username, request.rating)
    except ValueError:
        raise HTTPException(status_code=404, detail="Poll response not found")


@app.post("/api/teams/{team_id}/items")
async def add_retro_item(
    team_id: str,
    request: RetroItemRequest,
    user: User = Depends(require_user),
):
    """Post an item to the board."""
    team = _load_team(team_id)
    _require_member(team, user)
    return storage.add_retro_item(
        team_id, user.to_participant().to_dict(), request.content, request.category.value
    )


@app.post("/api/teams/{team_id}/items/{item_id}/replies")
async def add_reply(
    team_id: str,
    item_id: str,
    request: ReplyRequest,
    user: User = Depends(require_user),
):
    """Reply to a board item."""
    team = _load_team(team_id)
    _require_member(team, user)
    try:
        return storage.add_reply(team_id, item_id, user.to_participant().to_dict(), request.content)
    except ValueError:
        raise HTTPException(status_code=404, detail="Retro item not found")


@app.patch("/api/teams/{team_id}/items/{item_id}")
async def update_retro_item(
    team_id: str,
    item_id: str,
    request: UpdateRetroItemRequest,
    user: User = Depends(require_user),
):
    """Edit a board item or move it to another column.

    Moving a discussion topic to action items posts a generated action
    item and leaves the topic in place; no other column can be moved to
    action items. When authors move their own item between went-well and
    improve, a one-star rating change is suggested for their poll response.
    """
    team = _load_team(team_id)
    _require_member(team, user)
    item = _load_item(team, item_id)
    _require_author(item, user, "edit")
    if request.content is None and request.category is None:
        raise HTTPException(status_code=400, detail="Nothing to update")

    source = Category.parse(item.get("category"))
    target = request.category if request.category != source else None

    if target == Category.ACTION:
        if source != Category.DISCUSS:
            raise HTTPException(
                status_code=400,
                detail="Action items can only be generated from discussion topics or added directly",
            )
        if request.content is not None:
            item = storage.update_retro_item(team_id, item_id, content=request.content)
        return {"item": item, "action_item": await _post_action_item(team_id, item, user)}

    item = storage.update_retro_item(
        team_id,
        item_id,
        content=request.content,
        category=target.value if target else None,
    )
    result: Dict[str, Any] = {"item": item}
    adjustment = _suggest_rating_adjustment(team, item["author"]["id"], user, source, target)
    if adjustment:
        result["rating_adjustment"] = adjustment
    return result


@app.post("/api/teams/{team_id}/items/{item_id}/action-item")
async def generate_board_action_item(
    team_id: str,
    item_id: str,
    user: User = Depends(require_user),
):
    """Post an action item generated from a discussion topic."""
    team = _load_team(team_id)
    _require_member(team, user)
    item = _load_item(team, item_id)
    _require_author(item, user, "generate an action item from")
    if Category.parse(item.get("category")) != Category.DISCUSS:
        raise HTTPException(
            status_code=400, detail="Action items can only be generated from discussion topics"
        )
    return await _post_action_item(team_id, item, user)


@app.delete("/api/teams/{team_id}/items/{item_id}")
async def delete_retro_item(team_id: str, item_id: str, user: User = Depends(require_user)):
    """Delete a board item.

    Authors may delete their own items, admins any item. Items generated
    from a poll response change with the response, so only admins delete
    them directly.
    """
    team = _load_team(team_id)
    _require_member(team, user)
    item = _load_item(team, item_id)
    _require_author(item, user, "delete")
    if item.get("is_from_poll") and not user.is_admin:
        raise HTTPException(
            status_code=403,
            detail="Items from a poll response change with the response; resubmit the poll instead",
        )
    if not storage.delete_retro_item(team_id, item_id):
        raise HTTPException(status_code=404, detail="Retro item not found")
    return {"status": "ok", "id": item_id}


@app.post("/api/categorize")
async def categorize_justification(request: CategorizeRequest):
    """Categorize a poll justification."""
    result = await categorize(request.rating, request.justification, llm_classify)
    return result.to_dict()


@app.post("/api/action-items")
async def create_action_item(request: ActionItemRequest):
    """Turn a discussion topic into an action item."""
    if not request.discussion_topic.strip():
        raise HTTPException(status_code=400, detail="discussion_topic is required")
    action_item = await generate_action_item(request.discussion_topic, llm_complete)
    return {"action_item": action_item}


@app.post("/api/teams/{team_id}/complete")
async def complete_retrospective(team_id: str, user: User = Depends(require_user)):
    """Complete the retrospective.

    Generates the report, e-mails it to every member with an address,
    rotates the facilitator and archives the board.
    """
    team = _load_team(team_id)
    if not (
        user.is_admin
        or team.get("facilitator_id") == user.username
        or team.get("owner_id") == user.username
    ):
        raise HTTPException(
            status_code=403, detail="Only the facilitator or team owner can complete the retrospective"
        )

    facilitator = storage.get_facilitator(team)
    current_facilitator = Participant.from_dict(facilitator) if facilitator else None
    poll_responses = [PollResponse.from_dict(p) for p in team.get("poll_responses", [])]
    retro_items = [RetroItem.from_dict(i) for i in team.get("retro_items", [])]

    try:
        report = await assemble_report(
            team["id"],
            team.get("name", ""),
            poll_responses,
            retro_items,
            current_facilitator,
            llm_narrate,
        )
    except ReportValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ReportGenerationError as e:
        raise HTTPException(status_code=502, detail=str(e))

    recipients = [m["email"] for m in team.get("members", []) if m.get("email")]
    if recipients:
        send_email(recipients, report_subject(team["name"], date.today()), report.summary_html)

    # Only what the report covered is archived; later posts stay on the board
    next_facilitator = report.next_facilitator
    updated = storage.complete_retrospective(
        team_id,
        report.to_dict(),
        [p.id for p in poll_responses],
        [i.id for i in retro_items],
        next_facilitator.id if next_facilitator else None,
    )
    facilitator_changed = updated.get("facilitator_id") != team.get("facilitator_id")
    logger.info("Retrospective completed for team %s", team_id)

    return {
        "report": report.to_dict(),
        "emailed_to": recipients,
        "facilitator_changed": facilitator_changed,
    }


@app.post("/api/send-email")
async def send_email_endpoint(request: SendEmailRequest):
    """Send an HTML e-mail."""
    try:
        return {"status": "ok", **send_email(request.to, request.subject, request.html_body)}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
