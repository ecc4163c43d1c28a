import random

import pytest

from giftdraw.services.assignment import (
    InsufficientParticipantsError,
    InvalidInputError,
    generate_assignments,
    is_valid_assignment,
)


class FirstChoice:
    """Always picks the first candidate and records what it was offered."""

    def __init__(self):
        self.offered = []

    def choice(self, candidates):
        self.offered.append(list(candidates))
        return candidates[0]


def assert_valid(participants, restrictions, assignments):
    assert assignments is not None
    assert set(assignments.keys()) == set(participants)
    assert sorted(assignments.values()) == sorted(participants)
    assert all(giver != receiver for giver, receiver in assignments.items())
    for giver, blocked in (restrictions or {}).items():
        assert assignments[giver] not in blocked
    assert is_valid_assignment(participants, restrictions, assignments)


def test_assignment_three_people_no_restrictions():
    participants = ["Alice", "Bob", "Carol"]
    assignments = generate_assignments(participants, {}, rng=random.Random(42))
    assert_valid(participants, {}, assignments)
    assert assignments in (
        {"Alice": "Bob", "Bob": "Carol", "Carol": "Alice"},
        {"Alice": "Carol", "Carol": "Bob", "Bob": "Alice"},
    )


def test_assignment_respects_restrictions():
    participants = ["Alice", "Bob", "Carol", "Dave"]
    restrictions = {"Alice": ["Bob"]}
    for seed in range(200):
        assignments = generate_assignments(participants, restrictions, rng=random.Random(seed))
        assert_valid(participants, restrictions, assignments)
        assert assignments["Alice"] != "Bob"


def test_assignment_restrictions_are_directional():
    participants = ["Alice", "Bob", "Carol"]
    restrictions = {"Alice": {"Bob"}}
    for seed in range(50):
        assignments = generate_assignments(participants, restrictions, rng=random.Random(seed))
        assert assignments == {"Alice": "Carol", "Carol": "Bob", "Bob": "Alice"}


def test_assignment_fails_for_too_few_participants():
    with pytest.raises(InsufficientParticipantsError):
        generate_assignments(["Alice", "Bob"], {})


def test_assignment_two_people_when_minimum_lowered():
    assignments = generate_assignments(["Alice", "Bob"], min_participants=2)
    assert assignments == {"Alice": "Bob", "Bob": "Alice"}


def test_assignment_never_accepts_a_single_participant():
    with pytest.raises(InsufficientParticipantsError):
        generate_assignments(["Alice"], min_participants=1)


def test_assignment_returns_none_when_giver_has_no_options():
    participants = ["A", "B", "C"]
    restrictions = {"A": ["B", "C"]}
    for seed in range(20):
        assert generate_assignments(participants, restrictions, rng=random.Random(seed)) is None


def test_assignment_fails_when_everyone_else_is_forbidden():
    participants = ["Alice", "Bob", "Carol", "Dave", "Eve"]
    restrictions = {"Carol": [p for p in participants if p != "Carol"]}
    assert generate_assignments(participants, restrictions, max_attempts=50) is None


def test_assignment_unrestricted_always_succeeds():
    participants = ["Alice", "Bob", "Carol"]
    rng = random.Random(2024)
    for _ in range(1000):
        assignments = generate_assignments(participants, rng=rng)
        assert_valid(participants, {}, assignments)


def test_assignment_larger_group_with_restrictions():
    participants = [f"p{i}" for i in range(12)]
    restrictions = {
        "p0": ["p1", "p2"],
        "p1": ["p0"],
        "p5": ["p6", "p7", "p8"],
        "p11": ["p10"],
    }
    rng = random.Random(7)
    for _ in range(100):
        assert_valid(participants, restrictions, generate_assignments(participants, restrictions, rng=rng))


def test_assignment_deterministic_for_same_random_sequence():
    participants = ["Alice", "Bob", "Carol", "Dave", "Eve"]
    restrictions = {"Alice": ["Bob"], "Dave": ["Eve"]}
    first = generate_assignments(participants, restrictions, rng=random.Random(123))
    second = generate_assignments(participants, restrictions, rng=random.Random(123))
    assert first == second


def test_assignment_walks_givers_in_input_order():
    rng = FirstChoice()
    assignments = generate_assignments(["A", "B", "C", "D"], {"A": ["B"], "C": ["B"]}, rng=rng)
    assert assignments == {"A": "C", "B": "A", "C": "D", "D": "B"}
    assert rng.offered == [["C", "D"], ["A", "D"], ["D"], ["B"]]
    assert list(assignments.keys()) == ["A", "B", "C", "D"]


def test_assignment_first_choice_pairs_neighbours():
    assignments = generate_assignments(["A", "B", "C", "D"], rng=FirstChoice())
    assert assignments == {"A": "B", "B": "A", "C": "D", "D": "C"}


def test_assignment_retries_are_bounded():
    rng = FirstChoice()
    # A->B, B->A leaves C alone on every attempt.
    assert generate_assignments(["A", "B", "C"], rng=rng, max_attempts=5) is None
    assert len(rng.offered) == 5 * 2


def test_assignment_does_not_mutate_inputs():
    participants = ["Alice", "Bob", "Carol", "Dave"]
    restrictions = {"Alice": ["Bob"], "Bob": ["Alice"]}
    generate_assignments(participants, restrictions, rng=random.Random(1))
    assert participants == ["Alice", "Bob", "Carol", "Dave"]
    assert restrictions == {"Alice": ["Bob"], "Bob": ["Alice"]}


def test_assignment_rejects_duplicate_names():
    with pytest.raises(InvalidInputError):
        generate_assignments(["Alice", "Bob", "Alice", "Carol"])


def test_assignment_rejects_unknown_restriction_names():
    with pytest.raises(InvalidInputError):
        generate_assignments(["Alice", "Bob", "Carol"], {"Alice": ["Zed"]})
    with pytest.raises(InvalidInputError):
        generate_assignments(["Alice", "Bob", "Carol"], {"Zed": ["Alice"]})


def test_assignment_accepts_empty_restriction_entries():
    participants = ["Alice", "Bob", "Carol"]
    assignments = generate_assignments(participants, {"Alice": [], "Bob": None}, rng=random.Random(3))
    assert_valid(participants, {}, assignments)


def test_is_valid_assignment_detects_broken_maps():
    participants = ["A", "B", "C"]
    assert is_valid_assignment(participants, None, {"A": "B", "B": "C", "C": "A"})
    assert not is_valid_assignment(participants, None, {"A": "B", "B": "A"})
    assert not is_valid_assignment(participants, None, {"A": "B", "B": "A", "C": "C"})
    assert not is_valid_assignment(participants, None, {"A": "B", "B": "B", "C": "A"})
    assert not is_valid_assignment(participants, {"A": ["B"]}, {"A": "B", "B": "C", "C": "A"})
