from dataclasses import dataclass

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


@dataclass(frozen=True)
class Identity:
    """Who the session layer says is calling. Unverified until resolved to a User."""

    user_id: int | None = None
    email: str | None = None

    @property
    def anonymous(self) -> bool:
        return self.user_id is None and not self.email


ANONYMOUS = Identity()


def identity_from_headers(user_id: str | None, email: str | None) -> Identity:
    parsed_id = None
    if user_id and user_id.strip().isdigit():
        parsed_id = int(user_id.strip())
    cleaned_email = email.strip().lower() if email and email.strip() else None
    return Identity(user_id=parsed_id, email=cleaned_email)


class IdentityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request.state.identity = identity_from_headers(
            request.headers.get("x-user-id"),
            request.headers.get("x-user-email"),
        )
        return await call_next(request)


def get_identity(request: Request) -> Identity:
    return getattr(request.state, "identity", ANONYMOUS)
