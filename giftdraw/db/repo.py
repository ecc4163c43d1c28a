from __future__ import annotations

import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import and_, delete, or_, select, update

from giftdraw.db.models import (
    AdminCredential,
    Assignment,
    DrawSession,
    Participant,
    Restriction,
    SessionStatus,
    User,
)


def get_user_by_telegram_id(session, telegram_id: int) -> Optional[User]:
    return session.scalar(select(User).where(User.telegram_id == telegram_id))


def upsert_user(
    session,
    telegram_id: int,
    telegram_username: Optional[str],
    display_name: Optional[str],
) -> User:
    user = get_user_by_telegram_id(session, telegram_id)
    if user:
        user.telegram_username = telegram_username
        user.display_name = display_name
        return user

    user = User(
        telegram_id=telegram_id,
        telegram_username=telegram_username,
        display_name=display_name,
    )
    session.add(user)
    session.flush()
    return user


def set_active_session(session, user: User, session_id: Optional[str]) -> None:
    user.active_session_id = session_id


def clear_active_session_for_all(session, session_id: str) -> None:
    session.execute(
        update(User).where(User.active_session_id == session_id).values(active_session_id=None)
    )


def get_draw_session(session, session_id: str) -> Optional[DrawSession]:
    return session.scalar(select(DrawSession).where(DrawSession.id == session_id))


def create_draw_session(
    session,
    session_id: str,
    name: str,
    created_by: str,
    organizer_telegram_id: Optional[int],
    admin_key: str,
) -> DrawSession:
    draw_session = DrawSession(
        id=session_id,
        name=name,
        created_by=created_by,
        organizer_telegram_id=organizer_telegram_id,
        admin_key=admin_key,
        status=SessionStatus.SETUP,
        registration_closed=False,
    )
    session.add(draw_session)
    session.flush()
    return draw_session


def list_draw_sessions(session) -> List[DrawSession]:
    return list(
        session.scalars(select(DrawSession).order_by(DrawSession.created_at.desc())).all()
    )


def list_draw_sessions_for_organizer(session, telegram_id: int) -> List[DrawSession]:
    return list(
        session.scalars(
            select(DrawSession)
            .where(DrawSession.organizer_telegram_id == telegram_id)
            .order_by(DrawSession.created_at.desc())
        ).all()
    )


def delete_draw_session(session, draw_session: DrawSession) -> None:
    clear_active_session_for_all(session, draw_session.id)
    session.delete(draw_session)
    session.flush()


def update_session_status(
    session,
    draw_session: DrawSession,
    status: SessionStatus,
    drawn_at: Optional[datetime.datetime] = None,
) -> None:
    draw_session.status = status
    draw_session.drawn_at = drawn_at


def list_participants(session, session_id: str) -> List[Participant]:
    return list(
        session.scalars(
            select(Participant)
            .where(Participant.session_id == session_id)
            .order_by(Participant.id)
        ).all()
    )


def get_participant_by_name(session, session_id: str, name: str) -> Optional[Participant]:
    return session.scalar(
        select(Participant).where(
            and_(Participant.session_id == session_id, Participant.name == name)
        )
    )


def get_participant_by_telegram_id(
    session, session_id: str, telegram_id: int
) -> Optional[Participant]:
    return session.scalar(
        select(Participant).where(
            and_(Participant.session_id == session_id, Participant.telegram_id == telegram_id)
        )
    )


def add_participant(
    session,
    session_id: str,
    name: str,
    telegram_id: Optional[int] = None,
    added_manually: bool = False,
) -> Participant:
    participant = Participant(
        session_id=session_id,
        name=name,
        telegram_id=telegram_id,
        added_manually=added_manually,
        has_drawn=False,
        is_excluded=False,
    )
    session.add(participant)
    session.flush()
    return participant


def delete_participant(session, participant: Participant) -> None:
    session.execute(
        delete(Restriction).where(
            and_(
                Restriction.session_id == participant.session_id,
                or_(
                    Restriction.giver_name == participant.name,
                    Restriction.receiver_name == participant.name,
                ),
            )
        )
    )
    session.delete(participant)
    session.flush()


def reset_drawn_flags(session, session_id: str) -> None:
    session.execute(
        update(Participant).where(Participant.session_id == session_id).values(has_drawn=False)
    )


def get_restriction_map(session, session_id: str) -> Dict[str, List[str]]:
    rows = session.scalars(
        select(Restriction)
        .where(Restriction.session_id == session_id)
        .order_by(Restriction.id)
    ).all()
    restrictions: Dict[str, List[str]] = {}
    for row in rows:
        restrictions.setdefault(row.giver_name, []).append(row.receiver_name)
    return restrictions


def replace_restrictions(
    session, session_id: str, giver_name: str, receiver_names: Iterable[str]
) -> None:
    session.execute(
        delete(Restriction).where(
            and_(Restriction.session_id == session_id, Restriction.giver_name == giver_name)
        )
    )
    session.add_all(
        [
            Restriction(session_id=session_id, giver_name=giver_name, receiver_name=receiver)
            for receiver in receiver_names
        ]
    )
    session.flush()


def create_assignments(session, session_id: str, assignments: Dict[str, str]) -> None:
    rows = [
        Assignment(session_id=session_id, giver_name=giver, receiver_name=receiver)
        for giver, receiver in assignments.items()
    ]
    session.add_all(rows)
    session.flush()


def get_assignment_map(session, session_id: str) -> Dict[str, str]:
    rows = session.scalars(
        select(Assignment).where(Assignment.session_id == session_id).order_by(Assignment.id)
    ).all()
    return {row.giver_name: row.receiver_name for row in rows}


def get_receiver_for(session, session_id: str, giver_name: str) -> Optional[str]:
    return session.scalar(
        select(Assignment.receiver_name).where(
            and_(Assignment.session_id == session_id, Assignment.giver_name == giver_name)
        )
    )


def clear_assignments(session, session_id: str) -> None:
    session.execute(delete(Assignment).where(Assignment.session_id == session_id))


def get_admin_credential(session) -> Optional[AdminCredential]:
    return session.scalar(select(AdminCredential).order_by(AdminCredential.id))


def save_admin_credential(session, password_hash: str) -> AdminCredential:
    credential = get_admin_credential(session)
    if credential:
        credential.password_hash = password_hash
        credential.updated_at = datetime.datetime.utcnow()
        return credential
    credential = AdminCredential(password_hash=password_hash)
    session.add(credential)
    session.flush()
    return credential
