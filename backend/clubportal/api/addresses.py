from fastapi import APIRouter, Depends
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..deps import get_current_user, get_db
from ..errors import BadRequest, NotFound
from ..models import Address, User
from ..schemas import AddressCreate, AddressOut, AddressUpdate
from ..services import flush_or_conflict

router = APIRouter()


def _own_address(db: Session, user: User, address_id: int) -> Address:
    address = db.execute(
        select(Address).where(Address.id == address_id, Address.user_id == user.id)
    ).scalar_one_or_none()
    if not address:
        raise NotFound("Address not found")
    return address


def _clear_default(db: Session, user: User) -> None:
    # must run before the new default is written or the partial index trips
    db.execute(
        update(Address)
        .where(Address.user_id == user.id, Address.is_default == True)  # noqa: E712
        .values(is_default=False)
    )


@router.get("/api/user/addresses", response_model=list[AddressOut])
def list_addresses(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    addresses = (
        db.execute(
            select(Address)
            .where(Address.user_id == user.id)
            .order_by(Address.is_default.desc(), Address.created_at.asc())
        )
        .scalars()
        .all()
    )
    return [AddressOut.model_validate(a, from_attributes=True) for a in addresses]


@router.post("/api/user/addresses", response_model=AddressOut, status_code=201)
def create_address(
    payload: AddressCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if payload.is_default:
        _clear_default(db, user)
    data = payload.model_dump()
    data["country"] = data.get("country") or "US"
    address = Address(user_id=user.id, **data)
    db.add(address)
    flush_or_conflict(db, "Another default address was set at the same time")
    db.refresh(address)
    return AddressOut.model_validate(address, from_attributes=True)


@router.put("/api/user/addresses", response_model=AddressOut)
def update_address(
    payload: AddressUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    address = _own_address(db, user, payload.id)
    changes = payload.model_dump(exclude_unset=True, exclude={"id"})
    for field in ("street", "city"):
        if field in changes and not (changes[field] or "").strip():
            raise BadRequest(f"{field} must not be empty")
    if changes.get("is_default"):
        _clear_default(db, user)
    for field, value in changes.items():
        if value is None and field in ("street", "city", "country", "is_default"):
            continue
        setattr(address, field, value)
    flush_or_conflict(db, "Another default address was set at the same time")
    db.refresh(address)
    return AddressOut.model_validate(address, from_attributes=True)


@router.delete("/api/user/addresses")
def delete_address(
    id: int | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if id is None:
        raise BadRequest("Address id is required")
    address = _own_address(db, user, id)
    db.delete(address)
    return {"message": "Address deleted successfully"}
