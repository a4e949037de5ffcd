from fastapi import APIRouter, Depends
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ..auth_utils import verify_password
from ..deps import get_db
from ..errors import Unauthorized
from ..models import User
from ..schemas import LoginRequest, UserOut
from ..services import user_out

router = APIRouter()


@router.post("/api/auth/login", response_model=UserOut)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    identifier = payload.email_or_name.strip()
    user = db.execute(
        select(User).where(
            or_(User.email == identifier.lower(), func.lower(User.name) == identifier.lower())
        )
    ).scalar_one_or_none()
    if not user or not verify_password(payload.password, user.password_hash):
        raise Unauthorized("Invalid credentials")
    return user_out(user)
