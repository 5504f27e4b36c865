"""
Unit tests for the fault policies.
"""

import random

import pytest

from demoapi.faults.policy import (
    DATABASE_ERROR_RULES,
    FaultContext,
    FaultRates,
    FaultSite,
    NoFaults,
    RandomFaults,
)


class FixedRandom(random.Random):
    """Returns the same roll for every randrange call."""

    def __init__(self, roll: int) -> None:
        super().__init__(0)
        self.roll = roll

    def randrange(self, *args, **kwargs) -> int:
        return self.roll


ALWAYS = FaultRates(
    home_unavailable=1,
    list_users_failure=1,
    create_validation=1,
    create_processing=1,
    user_not_found=1,
)


class TestNoFaults:
    @pytest.mark.parametrize("site", list(FaultSite))
    def test_never_injects(self, site):
        assert NoFaults().decide(FaultContext(site, user_id=15)) is None

    def test_no_delay(self):
        assert NoFaults().processing_delay() == 0.0


class TestRandomFaults:
    @pytest.mark.parametrize(
        "site, status_code, message",
        [
            (FaultSite.HOME, 503, "Service temporarily unavailable"),
            (FaultSite.LIST_USERS, 500, "Failed to retrieve users"),
            (FaultSite.CREATE_VALIDATION, 400, "validation error: required fields missing"),
            (FaultSite.CREATE_PROCESSING, 500, "Failed to create user"),
        ],
    )
    def test_site_outcomes(self, site, status_code, message):
        outcome = RandomFaults(ALWAYS).decide(FaultContext(site))
        assert outcome is not None
        assert outcome.status_code == status_code
        assert outcome.message == message

    def test_nonzero_roll_means_no_fault(self):
        policy = RandomFaults(rng=FixedRandom(1))
        assert policy.decide(FaultContext(FaultSite.HOME)) is None
        assert policy.decide(FaultContext(FaultSite.LIST_USERS)) is None

    def test_not_found_only_above_threshold(self):
        policy = RandomFaults(ALWAYS, rng=FixedRandom(0))
        assert policy.decide(FaultContext(FaultSite.GET_USER_LOOKUP, user_id=10)) is None
        outcome = policy.decide(FaultContext(FaultSite.GET_USER_LOOKUP, user_id=11))
        assert outcome.status_code == 404
        assert outcome.message == "User with ID 11 not found"

    @pytest.mark.parametrize(
        "user_id, roll, error",
        [
            (5, 2, "connection timeout"),
            (15, 0, "connection timeout"),
            (3, 2, "query execution failed"),
            (1001, 1, "primary key constraint violation"),
            (1005, 1, "connection timeout"),
            (7, 0, None),
            (5, 3, None),
            (1001, 2, None),
            (998, 0, None),
        ],
    )
    def test_database_errors(self, user_id, roll, error):
        policy = RandomFaults(rng=FixedRandom(roll))
        outcome = policy.decide(FaultContext(FaultSite.GET_USER_QUERY, user_id=user_id))
        if error is None:
            assert outcome is None
        else:
            assert outcome.status_code == 500
            assert outcome.message == "Failed to retrieve user data"
            assert outcome.detail == error

    def test_seeded_runs_repeat(self):
        contexts = [FaultContext(FaultSite.GET_USER_QUERY, user_id=i) for i in range(1, 200)]
        first = [RandomFaults(rng=random.Random(7)).decide(c) for c in contexts]
        second = [RandomFaults(rng=random.Random(7)).decide(c) for c in contexts]
        assert first == second

    def test_home_rate_roughly_one_in_ten(self):
        policy = RandomFaults(rng=random.Random(1234))
        hits = sum(policy.decide(FaultContext(FaultSite.HOME)) is not None for _ in range(5000))
        assert 350 < hits < 650

    def test_processing_delay_bounded(self):
        policy = RandomFaults(rng=random.Random(3))
        delays = [policy.processing_delay() for _ in range(100)]
        assert all(0.0 <= d <= 0.1 for d in delays)

    def test_rule_table_order(self):
        assert [r.error for r in DATABASE_ERROR_RULES] == [
            "connection timeout",
            "query execution failed",
            "primary key constraint violation",
        ]
