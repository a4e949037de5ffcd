import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..deps import ensure_club_owner, get_club_or_404, get_current_user, get_db, get_membership
from ..errors import BadRequest, Conflict, Forbidden, NotFound
from ..models import MEMBER_ROLES, ClubMember, MembershipRequest, User
from ..notifications import send_request_decision
from ..schemas import (
    MemberAdd,
    MemberOut,
    MembershipRequestCreate,
    MembershipRequestOut,
    MemberRoleUpdate,
    RequestAction,
    RequestStatusOut,
)
from ..services import flush_or_conflict, member_out, request_out

logger = logging.getLogger(__name__)

router = APIRouter()

ALREADY_MEMBER = "You are already a member of this club"
PENDING_EXISTS = "You already have a pending request for this club"


def _pending_request(db: Session, club_id: int, user_id: int) -> MembershipRequest | None:
    return db.execute(
        select(MembershipRequest).where(
            MembershipRequest.club_id == club_id,
            MembershipRequest.user_id == user_id,
            MembershipRequest.status == "pending",
        )
    ).scalar_one_or_none()


def _validate_role(role: str | None) -> str:
    if role not in MEMBER_ROLES:
        raise BadRequest("Invalid role")
    return role


@router.get("/api/clubs/{club_id}/requests")
def list_requests(
    club_id: int,
    user_id: int | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    club = get_club_or_404(db, club_id)

    if user_id is not None:
        if user_id != user.id:
            raise Forbidden("You can only check your own request status")
        pending = _pending_request(db, club.id, user.id)
        return RequestStatusOut(
            has_active_request=pending is not None,
            request_id=pending.id if pending else None,
        )

    ensure_club_owner(club, user, "Only club owners can view membership requests")
    requests = (
        db.execute(
            select(MembershipRequest)
            .where(MembershipRequest.club_id == club.id, MembershipRequest.status == "pending")
            .order_by(MembershipRequest.created_at.desc(), MembershipRequest.id.desc())
        )
        .scalars()
        .all()
    )
    return [request_out(r) for r in requests]


@router.post("/api/clubs/{club_id}/requests", response_model=MembershipRequestOut, status_code=201)
def create_request(
    club_id: int,
    payload: MembershipRequestCreate | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    club = get_club_or_404(db, club_id, active_only=True)
    if get_membership(db, club.id, user.id):
        raise Conflict(ALREADY_MEMBER)
    if _pending_request(db, club.id, user.id):
        raise Conflict(PENDING_EXISTS)

    message = payload.message.strip() if payload and payload.message else None
    request = MembershipRequest(club_id=club.id, user_id=user.id, message=message or None)
    db.add(request)
    flush_or_conflict(db, PENDING_EXISTS)
    db.refresh(request)
    logger.info("User %s requested to join club %s", user.id, club.id)
    return request_out(request)


@router.patch("/api/clubs/{club_id}/requests/{request_id}", response_model=MembershipRequestOut)
def decide_request(
    club_id: int,
    request_id: int,
    payload: RequestAction,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if payload.action not in ("approve", "reject"):
        raise BadRequest('Invalid action. Must be "approve" or "reject"')
    club = get_club_or_404(db, club_id)
    ensure_club_owner(club, user, "Only club owners can manage membership requests")

    request = db.get(MembershipRequest, request_id)
    if not request or request.club_id != club.id:
        raise NotFound("Membership request not found")
    if request.status != "pending":
        raise Conflict("Membership request has already been processed")

    if payload.action == "approve":
        request.status = "approved"
        if not get_membership(db, club.id, request.user_id):
            db.add(ClubMember(club_id=club.id, user_id=request.user_id, role="member"))
    else:
        request.status = "rejected"
    flush_or_conflict(db, "Membership request has already been processed")
    db.refresh(request)

    send_request_decision(request.user.email, club.name, approved=request.status == "approved")
    return request_out(request)


@router.post("/api/clubs/{club_id}/join")
def join_club(
    club_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    club = get_club_or_404(db, club_id, active_only=True)
    if get_membership(db, club.id, user.id):
        raise Conflict("Already a member of this club")
    if club.owner_id != user.id:
        raise Forbidden(
            "Please send a membership request to join this club. "
            "Direct joining is only available to club owners."
        )
    db.add(ClubMember(club_id=club.id, user_id=user.id, role="admin"))
    flush_or_conflict(db, "Already a member of this club")
    return {"message": "Successfully joined the club"}


@router.delete("/api/clubs/{club_id}/join")
def leave_club(
    club_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    club = get_club_or_404(db, club_id)
    membership = get_membership(db, club.id, user.id)
    if not membership:
        raise NotFound("Not a member of this club")
    db.delete(membership)
    return {"message": "Successfully left the club"}


@router.post("/api/clubs/{club_id}/members", response_model=MemberOut, status_code=201)
def add_member(
    club_id: int,
    payload: MemberAdd,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    club = get_club_or_404(db, club_id)
    ensure_club_owner(club, user, "Only club owners can add members")
    role = _validate_role(payload.role)

    target = db.execute(select(User).where(User.email == payload.user_email)).scalar_one_or_none()
    if not target:
        raise NotFound("User with this email not found")
    if get_membership(db, club.id, target.id):
        raise Conflict("User is already a member of this club")

    member = ClubMember(club_id=club.id, user_id=target.id, role=role)
    db.add(member)
    # an open request is settled by the direct add
    pending = _pending_request(db, club.id, target.id)
    if pending:
        pending.status = "approved"
    flush_or_conflict(db, "User is already a member of this club")
    db.refresh(member)
    return member_out(member)


def _club_member(db: Session, club_id: int, member_id: int) -> ClubMember:
    member = db.get(ClubMember, member_id)
    if not member or member.club_id != club_id:
        raise NotFound("Membership not found")
    return member


@router.patch("/api/clubs/{club_id}/members/{member_id}", response_model=MemberOut)
def update_member_role(
    club_id: int,
    member_id: int,
    payload: MemberRoleUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    club = get_club_or_404(db, club_id)
    ensure_club_owner(club, user, "Only club owners can manage members")
    member = _club_member(db, club.id, member_id)
    member.role = _validate_role(payload.role)
    db.flush()
    return member_out(member)


@router.delete("/api/clubs/{club_id}/members/{member_id}")
def remove_member(
    club_id: int,
    member_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    club = get_club_or_404(db, club_id)
    ensure_club_owner(club, user, "Only club owners can remove members")
    member = _club_member(db, club.id, member_id)
    if member.user_id == club.owner_id:
        raise BadRequest("Club owners cannot remove themselves")
    db.delete(member)
    return {"message": "Member removed successfully"}
