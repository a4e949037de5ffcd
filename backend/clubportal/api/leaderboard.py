from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..deps import get_db
from ..errors import BadRequest
from ..models import Club, ClubMember, User
from ..schemas import Leaderboard, LeaderboardClub, LeaderboardUser, PointsRule
from ..services import EVENT_ATTENDANCE_POINTS, EVENT_ORGANIZATION_POINTS

router = APIRouter()

POINTS_BREAKDOWN = [
    PointsRule(activity="Event Attendance", points=EVENT_ATTENDANCE_POINTS, description="Attend club events"),
    PointsRule(activity="Event Organization", points=EVENT_ORGANIZATION_POINTS, description="Organize club events"),
    PointsRule(activity="Club Leadership", points=100, description="Serve as club officer"),
    PointsRule(activity="Workshop Participation", points=25, description="Participate in workshops"),
    PointsRule(activity="Community Service", points=20, description="Volunteer activities"),
    PointsRule(activity="Peer Mentoring", points=15, description="Help other students"),
]


@router.get("/api/leaderboard", response_model=Leaderboard)
def leaderboard(limit: int = 10, db: Session = Depends(get_db)):
    if limit < 1 or limit > 100:
        raise BadRequest("limit must be between 1 and 100")

    club_count = func.count(ClubMember.id).label("club_count")
    user_rows = db.execute(
        select(User, club_count)
        .outerjoin(ClubMember, ClubMember.user_id == User.id)
        .group_by(User.id)
        .order_by(User.points.desc(), User.name.asc())
        .limit(limit)
    ).all()
    users = [
        LeaderboardUser(
            rank=rank,
            id=user.id,
            name=user.name,
            department=user.department,
            points=user.points or 0,
            club_count=clubs,
        )
        for rank, (user, clubs) in enumerate(user_rows, start=1)
    ]

    total_points = func.coalesce(func.sum(User.points), 0).label("total_points")
    members = func.count(ClubMember.id).label("member_count")
    club_rows = db.execute(
        select(Club, total_points, members)
        .outerjoin(ClubMember, ClubMember.club_id == Club.id)
        .outerjoin(User, User.id == ClubMember.user_id)
        .where(Club.is_active == True)  # noqa: E712
        .group_by(Club.id)
        .order_by(total_points.desc(), Club.name.asc())
        .limit(limit)
    ).all()
    clubs = [
        LeaderboardClub(
            rank=rank,
            id=club.id,
            name=club.name,
            category=club.category,
            member_count=count,
            total_points=int(total or 0),
            avg_points_per_member=round(total / count, 1) if count else 0.0,
        )
        for rank, (club, total, count) in enumerate(club_rows, start=1)
    ]

    return Leaderboard(users=users, clubs=clubs, points_breakdown=POINTS_BREAKDOWN)
