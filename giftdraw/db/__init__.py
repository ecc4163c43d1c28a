from giftdraw.db.models import (
    AdminCredential,
    Assignment,
    Base,
    DrawSession,
    Participant,
    Restriction,
    SessionStatus,
    User,
)
from giftdraw.db.session import SessionLocal, get_session, init_engine, init_schema

__all__ = [
    "AdminCredential",
    "Assignment",
    "Base",
    "DrawSession",
    "Participant",
    "Restriction",
    "SessionStatus",
    "User",
    "SessionLocal",
    "get_session",
    "init_engine",
    "init_schema",
]
