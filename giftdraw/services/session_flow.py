from __future__ import annotations

import datetime
import html
import random
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError

from giftdraw.db import DrawSession, Participant, SessionStatus, User, repo
from giftdraw.services.assignment import (
    MAX_ATTEMPTS,
    MIN_PARTICIPANTS,
    generate_assignments,
    is_valid_assignment,
)
from giftdraw.services.security import (
    generate_admin_key,
    generate_session_id,
    keys_match,
)


class SessionFlowError(RuntimeError):
    pass


class SessionNotFound(SessionFlowError):
    pass


class PermissionDenied(SessionFlowError):
    pass


class RegistrationClosed(SessionFlowError):
    pass


class DuplicateName(SessionFlowError):
    pass


class DrawError(SessionFlowError):
    pass


@dataclass(frozen=True)
class Progress:
    drawn: int
    total: int

    @property
    def percentage(self) -> float:
        return (self.drawn / self.total) * 100 if self.total else 0.0

    @property
    def finished(self) -> bool:
        return self.total > 0 and self.drawn >= self.total


@dataclass(frozen=True)
class DrawResult:
    assignments: Dict[str, str]
    participants: List[Participant]
    draw_session: DrawSession


@dataclass(frozen=True)
class RevealResult:
    giver: str
    receiver: str
    completed: bool
    organizer_telegram_id: Optional[int]


def _clean_name(name: Optional[str]) -> str:
    return " ".join((name or "").split())


def format_participant_label(participant: Participant) -> str:
    label = html.escape(participant.name)
    if participant.is_excluded:
        return f"{label} (excluded)"
    if participant.has_drawn:
        return f"{label} ✓"
    return label


def participant_link(bot_username: str, session_id: str) -> str:
    return f"https://t.me/{bot_username}?start={session_id}"


def ensure_user(
    session,
    telegram_id: int,
    telegram_username: Optional[str],
    first_name: Optional[str],
    last_name: Optional[str],
) -> User:
    display_name = " ".join(filter(None, [first_name, last_name])) or None
    return repo.upsert_user(session, telegram_id, telegram_username, display_name)


def get_session_or_raise(session, session_id: Optional[str]) -> DrawSession:
    draw_session = repo.get_draw_session(session, session_id) if session_id else None
    if not draw_session:
        raise SessionNotFound("Session not found.")
    return draw_session


def active_session(session, user: User) -> DrawSession:
    if not user.active_session_id:
        raise SessionNotFound("You have no active session. Create one with /new or join with a link.")
    return get_session_or_raise(session, user.active_session_id)


def is_organizer(draw_session: DrawSession, telegram_id: Optional[int]) -> bool:
    return telegram_id is not None and draw_session.organizer_telegram_id == telegram_id


def require_organizer(draw_session: DrawSession, telegram_id: Optional[int]) -> None:
    if not is_organizer(draw_session, telegram_id):
        raise PermissionDenied("Only the organizer can do that.")


def require_setup(draw_session: DrawSession) -> None:
    if draw_session.status != SessionStatus.SETUP:
        raise DrawError("The draw has already started. Reset the session first.")


def create_session(
    session,
    name: str,
    organizer_name: str,
    organizer_telegram_id: Optional[int] = None,
    include_organizer: bool = True,
) -> DrawSession:
    name = _clean_name(name)
    organizer_name = _clean_name(organizer_name)
    if not name or not organizer_name:
        raise SessionFlowError("Both a session name and the organizer name are required.")

    draw_session = repo.create_draw_session(
        session,
        generate_session_id(),
        name,
        organizer_name,
        organizer_telegram_id,
        generate_admin_key(),
    )
    if include_organizer:
        repo.add_participant(
            session, draw_session.id, organizer_name, telegram_id=organizer_telegram_id
        )

    if organizer_telegram_id is not None:
        user = repo.get_user_by_telegram_id(session, organizer_telegram_id)
        if user:
            repo.set_active_session(session, user, draw_session.id)

    logger.bind(session_id=draw_session.id).info("Session created")
    return draw_session


def _add_participant(
    session,
    draw_session: DrawSession,
    name: str,
    telegram_id: Optional[int],
    added_manually: bool,
) -> Participant:
    name = _clean_name(name)
    if not name:
        raise SessionFlowError("Please enter a name.")
    if repo.get_participant_by_name(session, draw_session.id, name):
        raise DuplicateName(f"The name {name!r} is already taken. Please choose another one.")
    try:
        participant = repo.add_participant(
            session,
            draw_session.id,
            name,
            telegram_id=telegram_id,
            added_manually=added_manually,
        )
    except IntegrityError as exc:
        raise DuplicateName(f"The name {name!r} is already taken. Please choose another one.") from exc
    logger.bind(session_id=draw_session.id, manual=added_manually).info(
        "Participant {name} added", name=name
    )
    return participant


def join_session(
    session,
    session_id: str,
    name: str,
    telegram_id: Optional[int] = None,
) -> Participant:
    draw_session = get_session_or_raise(session, session_id)
    if draw_session.registration_closed:
        raise RegistrationClosed("Registration is closed. You cannot join right now.")
    if draw_session.status != SessionStatus.SETUP:
        raise RegistrationClosed("The draw has already started. You cannot join anymore.")

    if telegram_id is not None:
        existing = repo.get_participant_by_telegram_id(session, draw_session.id, telegram_id)
        if existing:
            raise SessionFlowError(f"You already joined this session as {existing.name!r}.")

    participant = _add_participant(session, draw_session, name, telegram_id, added_manually=False)

    if telegram_id is not None:
        user = repo.get_user_by_telegram_id(session, telegram_id)
        if user:
            repo.set_active_session(session, user, draw_session.id)
    return participant


def add_participant_manually(
    session,
    draw_session: DrawSession,
    actor_telegram_id: Optional[int],
    name: str,
) -> Participant:
    require_organizer(draw_session, actor_telegram_id)
    require_setup(draw_session)
    return _add_participant(session, draw_session, name, None, added_manually=True)


def _participant_or_raise(session, draw_session: DrawSession, name: str) -> Participant:
    participant = repo.get_participant_by_name(session, draw_session.id, _clean_name(name))
    if not participant:
        raise SessionFlowError(f"No participant named {name!r}.")
    return participant


def remove_participant(
    session,
    draw_session: DrawSession,
    actor_telegram_id: Optional[int],
    name: str,
) -> None:
    require_organizer(draw_session, actor_telegram_id)
    require_setup(draw_session)
    participant = _participant_or_raise(session, draw_session, name)
    repo.delete_participant(session, participant)
    logger.bind(session_id=draw_session.id).info("Participant {name} removed", name=participant.name)


def toggle_exclusion(
    session,
    draw_session: DrawSession,
    actor_telegram_id: Optional[int],
    name: str,
) -> bool:
    require_organizer(draw_session, actor_telegram_id)
    require_setup(draw_session)
    participant = _participant_or_raise(session, draw_session, name)
    participant.is_excluded = not participant.is_excluded
    logger.bind(session_id=draw_session.id, excluded=participant.is_excluded).info(
        "Participant {name} exclusion toggled", name=participant.name
    )
    return participant.is_excluded


def set_restrictions(
    session,
    draw_session: DrawSession,
    actor_telegram_id: Optional[int],
    giver: str,
    receivers: Iterable[str],
) -> List[str]:
    require_organizer(draw_session, actor_telegram_id)
    require_setup(draw_session)
    giver_participant = _participant_or_raise(session, draw_session, giver)

    cleaned: List[str] = []
    for receiver in receivers:
        receiver_participant = _participant_or_raise(session, draw_session, receiver)
        if receiver_participant.name == giver_participant.name:
            raise SessionFlowError("A participant never draws themselves; no restriction needed.")
        if receiver_participant.name not in cleaned:
            cleaned.append(receiver_participant.name)

    repo.replace_restrictions(session, draw_session.id, giver_participant.name, cleaned)
    logger.bind(session_id=draw_session.id, count=len(cleaned)).info(
        "Restrictions for {giver} updated", giver=giver_participant.name
    )
    return cleaned


def get_restrictions(session, draw_session: DrawSession) -> Dict[str, List[str]]:
    return repo.get_restriction_map(session, draw_session.id)


def toggle_registration(
    session,
    draw_session: DrawSession,
    actor_telegram_id: Optional[int],
) -> bool:
    require_organizer(draw_session, actor_telegram_id)
    draw_session.registration_closed = not draw_session.registration_closed
    logger.bind(session_id=draw_session.id, closed=draw_session.registration_closed).info(
        "Registration toggled"
    )
    return draw_session.registration_closed


def list_participants(session, draw_session: DrawSession) -> List[Participant]:
    return repo.list_participants(session, draw_session.id)


def included_participants(session, draw_session: DrawSession) -> List[Participant]:
    return [p for p in repo.list_participants(session, draw_session.id) if not p.is_excluded]


def progress(session, draw_session: DrawSession) -> Progress:
    included = included_participants(session, draw_session)
    return Progress(drawn=sum(1 for p in included if p.has_drawn), total=len(included))


def start_draw(
    session,
    draw_session: DrawSession,
    actor_telegram_id: Optional[int],
    rng: Optional[random.Random] = None,
    max_attempts: int = MAX_ATTEMPTS,
    min_participants: int = MIN_PARTICIPANTS,
) -> DrawResult:
    require_organizer(draw_session, actor_telegram_id)
    if draw_session.status != SessionStatus.SETUP:
        raise DrawError("The draw has already started. Reset the session to draw again.")

    participants = included_participants(session, draw_session)
    if len(participants) < min_participants:
        raise DrawError(
            f"At least {min_participants} participants (not excluded) are needed to draw."
        )

    names = [p.name for p in participants]
    included = set(names)
    restrictions = {
        giver: [receiver for receiver in receivers if receiver in included]
        for giver, receivers in repo.get_restriction_map(session, draw_session.id).items()
        if giver in included
    }

    assignments = generate_assignments(
        names,
        restrictions,
        rng=rng,
        max_attempts=max_attempts,
        min_participants=min_participants,
    )
    if assignments is None:
        logger.bind(session_id=draw_session.id, participants=len(names)).warning(
            "No valid assignment found"
        )
        raise DrawError(
            "The draw is not possible: the restrictions are too strict. "
            "Relax some restrictions and try again."
        )
    if not is_valid_assignment(names, restrictions, assignments):
        raise DrawError("Generated assignments failed validation.")

    repo.clear_assignments(session, draw_session.id)
    repo.create_assignments(session, draw_session.id, assignments)
    repo.update_session_status(
        session, draw_session, SessionStatus.DRAWING, drawn_at=datetime.datetime.utcnow()
    )
    logger.bind(session_id=draw_session.id, participants=len(names)).info("Assignments generated")
    return DrawResult(assignments=assignments, participants=participants, draw_session=draw_session)


def reveal_own(session, draw_session: DrawSession, telegram_id: int) -> RevealResult:
    participant = repo.get_participant_by_telegram_id(session, draw_session.id, telegram_id)
    if not participant:
        raise SessionFlowError("You are not a participant of this session.")
    if participant.is_excluded:
        raise SessionFlowError("You are excluded from this draw.")
    if draw_session.status == SessionStatus.SETUP:
        raise DrawError("The draw has not started yet. Wait for the organizer.")

    receiver = repo.get_receiver_for(session, draw_session.id, participant.name)
    if not receiver:
        raise DrawError("No assignment found for you. Ask the organizer to reset the draw.")

    first_reveal = not participant.has_drawn
    participant.has_drawn = True
    session.flush()

    completed = False
    if first_reveal and draw_session.status == SessionStatus.DRAWING:
        if progress(session, draw_session).finished:
            repo.update_session_status(
                session, draw_session, SessionStatus.COMPLETED, drawn_at=draw_session.drawn_at
            )
            completed = True
            logger.bind(session_id=draw_session.id).info("Every participant has drawn")

    return RevealResult(
        giver=participant.name,
        receiver=receiver,
        completed=completed,
        organizer_telegram_id=draw_session.organizer_telegram_id if first_reveal else None,
    )


def all_assignments(
    session,
    draw_session: DrawSession,
    actor_telegram_id: Optional[int] = None,
    admin_authenticated: bool = False,
) -> Dict[str, str]:
    if not admin_authenticated:
        require_organizer(draw_session, actor_telegram_id)
    assignments = repo.get_assignment_map(session, draw_session.id)
    logger.bind(session_id=draw_session.id, count=len(assignments)).info("Full assignment list revealed")
    return assignments


def reveal_assignment(
    session,
    draw_session: DrawSession,
    giver: str,
    actor_telegram_id: Optional[int] = None,
    admin_authenticated: bool = False,
) -> str:
    if not admin_authenticated:
        require_organizer(draw_session, actor_telegram_id)
    receiver = repo.get_receiver_for(session, draw_session.id, _clean_name(giver))
    if not receiver:
        raise SessionFlowError(f"No assignment for {giver!r}.")
    return receiver


def reset_session(
    session,
    draw_session: DrawSession,
    actor_telegram_id: Optional[int],
) -> None:
    require_organizer(draw_session, actor_telegram_id)
    repo.clear_assignments(session, draw_session.id)
    repo.reset_drawn_flags(session, draw_session.id)
    repo.update_session_status(session, draw_session, SessionStatus.SETUP, drawn_at=None)
    logger.bind(session_id=draw_session.id).info("Session reset")


def delete_session(
    session,
    draw_session: DrawSession,
    actor_telegram_id: Optional[int] = None,
    admin_authenticated: bool = False,
) -> None:
    if not admin_authenticated:
        require_organizer(draw_session, actor_telegram_id)
    session_id = draw_session.id
    repo.delete_draw_session(session, draw_session)
    logger.bind(session_id=session_id).info("Session deleted")


def claim_organizer(session, session_id: str, admin_key: str, telegram_id: int) -> DrawSession:
    draw_session = get_session_or_raise(session, session_id)
    if not admin_key or not keys_match(draw_session.admin_key, admin_key):
        logger.bind(session_id=session_id, telegram_id=telegram_id).warning("Invalid admin key")
        raise PermissionDenied("Invalid admin key.")
    draw_session.organizer_telegram_id = telegram_id
    user = repo.get_user_by_telegram_id(session, telegram_id)
    if user:
        repo.set_active_session(session, user, draw_session.id)
    logger.bind(session_id=session_id, telegram_id=telegram_id).info("Organizer claimed session")
    return draw_session


def use_session(
    session, user: User, session_id: str, admin_authenticated: bool = False
) -> DrawSession:
    draw_session = get_session_or_raise(session, session_id)
    member = repo.get_participant_by_telegram_id(session, draw_session.id, user.telegram_id)
    if not (member or admin_authenticated or is_organizer(draw_session, user.telegram_id)):
        raise PermissionDenied("You are not part of that session.")
    repo.set_active_session(session, user, draw_session.id)
    return draw_session


def list_sessions(session, telegram_id: Optional[int] = None) -> List[DrawSession]:
    if telegram_id is None:
        return repo.list_draw_sessions(session)
    return repo.list_draw_sessions_for_organizer(session, telegram_id)


def format_status(draw_session: DrawSession) -> str:
    labels = {
        SessionStatus.SETUP: "waiting for the draw",
        SessionStatus.DRAWING: "draw in progress",
        SessionStatus.COMPLETED: "completed",
    }
    registration = "closed" if draw_session.registration_closed else "open"
    return f"{labels[draw_session.status]}, registration {registration}"
