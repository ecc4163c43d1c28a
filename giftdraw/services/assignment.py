from __future__ import annotations

import random
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

MAX_ATTEMPTS = 1000
MIN_PARTICIPANTS = 3


class AssignmentError(RuntimeError):
    pass


class InsufficientParticipantsError(AssignmentError):
    pass


class InvalidInputError(AssignmentError):
    pass


def _build_restrictions(
    participants: Sequence[str],
    restrictions: Optional[Mapping[str, Iterable[str]]],
) -> Dict[str, Set[str]]:
    names = set(participants)
    if len(names) != len(participants):
        duplicates = sorted({name for name in participants if participants.count(name) > 1})
        raise InvalidInputError("Duplicate participant names: " + ", ".join(duplicates))

    forbidden: Dict[str, Set[str]] = {}
    for giver, receivers in (restrictions or {}).items():
        if giver not in names:
            raise InvalidInputError(f"Restriction giver {giver!r} is not a participant.")
        receiver_set = set(receivers or ())
        unknown = receiver_set - names
        if unknown:
            raise InvalidInputError(
                f"Restrictions for {giver!r} reference unknown participants: "
                + ", ".join(sorted(unknown))
            )
        forbidden[giver] = receiver_set
    return forbidden


def generate_assignments(
    participants: Sequence[str],
    restrictions: Optional[Mapping[str, Iterable[str]]] = None,
    rng: Optional[random.Random] = None,
    max_attempts: int = MAX_ATTEMPTS,
    min_participants: int = MIN_PARTICIPANTS,
) -> Optional[Dict[str, str]]:
    """Pair every participant with someone else to give a gift to.

    Each attempt walks the givers in input order and picks a random receiver
    among those still available, skipping the giver and anyone the giver is
    restricted from. An attempt that leaves a giver without options is
    dropped and a fresh one starts. Returns ``None`` when ``max_attempts``
    attempts all dead-end; the result may then be a false negative for very
    tight restriction sets.

    ``rng`` only needs a ``choice`` method. Neither input is modified.
    """
    if len(participants) < max(min_participants, 2):
        raise InsufficientParticipantsError(
            f"At least {max(min_participants, 2)} participants are required."
        )

    givers: List[str] = list(participants)
    forbidden = _build_restrictions(givers, restrictions)
    rng = rng or random.Random()

    for _ in range(max_attempts):
        available = list(givers)
        assignments: Dict[str, str] = {}
        for giver in givers:
            blocked = forbidden.get(giver, set())
            candidates = [
                receiver
                for receiver in available
                if receiver != giver and receiver not in blocked
            ]
            if not candidates:
                break
            receiver = rng.choice(candidates)
            assignments[giver] = receiver
            available.remove(receiver)
        else:
            return assignments

    return None


def is_valid_assignment(
    participants: Sequence[str],
    restrictions: Optional[Mapping[str, Iterable[str]]],
    assignments: Mapping[str, str],
) -> bool:
    names = set(participants)
    if set(assignments.keys()) != names:
        return False
    receivers = list(assignments.values())
    if len(receivers) != len(set(receivers)) or set(receivers) != names:
        return False
    restrictions = restrictions or {}
    for giver, receiver in assignments.items():
        if giver == receiver:
            return False
        if receiver in set(restrictions.get(giver) or ()):
            return False
    return True
