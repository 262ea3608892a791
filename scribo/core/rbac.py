from __future__ import annotations

from fastapi import HTTPException
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from scribo.core.errors import NotFoundError
from scribo.db.models.campaign import Campaign
from scribo.db.models.client import TeamCampaign, TeamMember
from scribo.db.models.submission import Submission


def require(condition: bool, msg: str = "Access denied", status_code: int = 403) -> None:
    """Small helper used across routers.

    Defaults to 403 (permission denied). For validation errors or not-found cases,
    pass `status_code=400/404`.
    """
    if not condition:
        raise HTTPException(status_code=status_code, detail=msg)


def accessible_campaigns_clause(actor_id: int):
    """Campaigns the actor owns or has been given as a team member."""
    member_of = (
        select(TeamCampaign.campaign_id)
        .join(TeamMember, TeamMember.id == TeamCampaign.team_member_id)
        .where(TeamMember.member_id == int(actor_id))
    )
    return or_(Campaign.client_id == int(actor_id), Campaign.id.in_(member_of))


def get_campaign_for_actor(db: Session, actor_id: int, campaign_id: int, *, for_update: bool = False) -> Campaign:
    q = db.query(Campaign).filter(Campaign.id == int(campaign_id), accessible_campaigns_clause(actor_id))
    if for_update:
        q = q.with_for_update()
    campaign = q.first()
    if campaign is None:
        raise NotFoundError("Campaign not found or access denied")
    return campaign


def get_submission_for_actor(db: Session, actor_id: int, submission_id: int) -> Submission:
    s = (
        db.query(Submission)
        .join(Campaign, Campaign.id == Submission.campaign_id)
        .filter(
            Submission.id == int(submission_id),
            Submission.deleted_at.is_(None),
            accessible_campaigns_clause(actor_id),
        )
        .first()
    )
    if s is None:
        raise NotFoundError("Submission not found or access denied")
    return s


def is_owner(actor_id: int, campaign: Campaign) -> bool:
    return campaign.client_id == int(actor_id)
