"""FastAPI dependencies for database sessions and the request actor."""

from collections.abc import Iterator

from fastapi import Header, HTTPException, Request
from sqlalchemy.orm import Session

from lokal.cqrs.bus import Buses
from lokal.db.session import SessionLocal


def get_db() -> Iterator[Session]:
    """Yield one session per request."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_actor_id(x_user_id: str | None = Header(default=None)) -> int:
    """Resolve the authenticated user id supplied by the auth gateway."""

    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        actor_id = int(x_user_id)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Invalid X-User-Id header") from exc
    if actor_id < 1:
        raise HTTPException(status_code=401, detail="Invalid X-User-Id header")
    return actor_id


def get_buses(request: Request) -> Buses:
    """Return the command/query buses built at startup."""

    return request.app.state.buses
