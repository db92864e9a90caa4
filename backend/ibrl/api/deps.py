"""FastAPI dependencies: DB session and app-owned collaborators.

Everything here comes from app.state, which the lifespan populates; nothing
is a module-level singleton.

Ownership: the owner is the wallet address sent with each request. Every
store query filters on it, so another wallet's ids read as not found.
"""
from typing import Generator

from fastapi import Query, Request
from sqlalchemy.orm import Session


def get_db(request: Request) -> Generator[Session, None, None]:
    """Get database session."""
    db = request.app.state.database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_engine(request: Request):
    return request.app.state.engine


def get_extractor(request: Request):
    return request.app.state.extractor


def get_settings(request: Request):
    return request.app.state.settings


def require_owner(owner: str = Query(..., min_length=1, max_length=64)) -> str:
    """Owner wallet address from the query string."""
    return owner.strip()
