from __future__ import annotations

import enum

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class SessionStatus(str, enum.Enum):
    SETUP = "setup"
    DRAWING = "drawing"
    COMPLETED = "completed"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    telegram_id = Column(BigInteger, unique=True, nullable=False, index=True)
    telegram_username = Column(String, nullable=True)
    display_name = Column(String, nullable=True)
    active_session_id = Column(
        String, ForeignKey("draw_sessions.id", ondelete="SET NULL"), nullable=True
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self) -> str:
        return "<User(id={0}, telegram_id={1}, username={2}, active_session={3})>".format(
            self.id, self.telegram_id, self.telegram_username, self.active_session_id
        )


class DrawSession(Base):
    __tablename__ = "draw_sessions"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    status = Column(
        Enum(
            SessionStatus,
            name="session_status",
            values_callable=lambda statuses: [status.value for status in statuses],
        ),
        nullable=False,
        default=SessionStatus.SETUP,
        server_default=SessionStatus.SETUP.value,
    )
    created_by = Column(String, nullable=False)
    organizer_telegram_id = Column(BigInteger, nullable=True, index=True)
    admin_key = Column(String, nullable=False)
    registration_closed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    drawn_at = Column(DateTime(timezone=True), nullable=True)

    participants = relationship(
        "Participant",
        back_populates="draw_session",
        cascade="all, delete-orphan",
        order_by="Participant.id",
    )
    restrictions = relationship(
        "Restriction", back_populates="draw_session", cascade="all, delete-orphan"
    )
    assignments = relationship(
        "Assignment", back_populates="draw_session", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<DrawSession(id={self.id}, name={self.name}, status={self.status})>"


class Participant(Base):
    __tablename__ = "participants"

    id = Column(Integer, primary_key=True)
    session_id = Column(
        String, ForeignKey("draw_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String, nullable=False)
    telegram_id = Column(BigInteger, nullable=True)
    has_drawn = Column(Boolean, default=False, nullable=False)
    is_excluded = Column(Boolean, default=False, nullable=False)
    added_manually = Column(Boolean, default=False, nullable=False)
    joined_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    draw_session = relationship("DrawSession", back_populates="participants")

    __table_args__ = (
        UniqueConstraint("session_id", "name", name="uq_participants_session_name"),
    )

    def __repr__(self) -> str:
        return (
            f"<Participant(id={self.id}, name={self.name}, "
            f"excluded={self.is_excluded}, drawn={self.has_drawn})>"
        )


class Restriction(Base):
    __tablename__ = "restrictions"

    id = Column(Integer, primary_key=True)
    session_id = Column(
        String, ForeignKey("draw_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    giver_name = Column(String, nullable=False)
    receiver_name = Column(String, nullable=False)

    draw_session = relationship("DrawSession", back_populates="restrictions")

    __table_args__ = (
        UniqueConstraint(
            "session_id", "giver_name", "receiver_name", name="uq_restrictions_session_pair"
        ),
    )


class Assignment(Base):
    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True)
    session_id = Column(
        String, ForeignKey("draw_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    giver_name = Column(String, nullable=False)
    receiver_name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    draw_session = relationship("DrawSession", back_populates="assignments")

    __table_args__ = (
        UniqueConstraint("session_id", "giver_name", name="uq_assignments_session_giver"),
    )


class AdminCredential(Base):
    __tablename__ = "admin_credentials"

    id = Column(Integer, primary_key=True)
    password_hash = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)
