"""
Simulated fault injection.

Handlers ask a ``FaultPolicy`` whether the current call should fail before
doing their normal work. The policy is chosen once when the application is
built, so tests run with ``NoFaults`` and get fully deterministic responses
while a demo deployment runs with ``RandomFaults``.

Design:
- Every injection point is a ``FaultSite``; the handler passes it along with
  the user id (when there is one) in a ``FaultContext``.
- ``RandomFaults`` draws independently per call. All odds live in
  ``FaultRates`` so they can be tuned without touching the handlers.
- Simulated database errors are a rule table keyed on the user id, checked
  in order against a single roll.
"""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from fastapi import Request, status


class FaultSite(str, Enum):
    """Places in the request handlers where a failure can be simulated."""

    HOME = "home"
    LIST_USERS = "list_users"
    CREATE_VALIDATION = "create_validation"
    CREATE_PROCESSING = "create_processing"
    GET_USER_QUERY = "get_user_query"
    GET_USER_LOOKUP = "get_user_lookup"


@dataclass(frozen=True)
class FaultContext:
    """What a policy gets to see about the current call."""

    site: FaultSite
    user_id: int | None = None


@dataclass(frozen=True)
class FaultOutcome:
    """A simulated failure: the response to send and the error to log."""

    status_code: int
    message: str
    detail: str


class FaultPolicy(Protocol):
    def decide(self, context: FaultContext) -> FaultOutcome | None: ...

    def processing_delay(self) -> float: ...


# ── Rule Definitions ───────────────────────────────────────────────────

@dataclass(frozen=True)
class DatabaseErrorRule:
    """A simulated query failure for ids matching ``applies``."""

    error: str
    max_roll: int
    divisor: int | None = None
    min_id: int | None = None

    def applies(self, user_id: int, roll: int) -> bool:
        if roll >= self.max_roll:
            return False
        if self.divisor is not None and user_id % self.divisor != 0:
            return False
        if self.min_id is not None and user_id <= self.min_id:
            return False
        return True


# Checked in order against one roll in [0, query_roll_sides)
DATABASE_ERROR_RULES: list[DatabaseErrorRule] = [
    DatabaseErrorRule("connection timeout", max_roll=3, divisor=5),
    DatabaseErrorRule("query execution failed", max_roll=3, divisor=3),
    DatabaseErrorRule("primary key constraint violation", max_roll=2, min_id=1000),
]


@dataclass(frozen=True)
class FaultRates:
    """
    Odds for each injection site, expressed as "1 in N".

    These are demonstration values; nothing depends on their exact size.
    """

    home_unavailable: int = 10
    list_users_failure: int = 5
    create_validation: int = 3
    create_processing: int = 4
    user_not_found: int = 2
    not_found_min_id: int = 10
    query_roll_sides: int = 10
    database_errors: tuple[DatabaseErrorRule, ...] = tuple(DATABASE_ERROR_RULES)
    max_processing_delay: float = 0.1


# ── Policies ───────────────────────────────────────────────────────────

class NoFaults:
    """Never injects a failure. Used in test mode."""

    def decide(self, context: FaultContext) -> FaultOutcome | None:
        return None

    def processing_delay(self) -> float:
        return 0.0


class RandomFaults:
    """
    Probabilistic fault injection.

    Pass a seeded ``random.Random`` to make a run reproducible.
    """

    def __init__(
        self, rates: FaultRates | None = None, rng: random.Random | None = None
    ) -> None:
        self.rates = rates or FaultRates()
        self.rng = rng or random.Random()

    def _one_in(self, n: int) -> bool:
        return n > 0 and self.rng.randrange(n) == 0

    def decide(self, context: FaultContext) -> FaultOutcome | None:
        rates = self.rates
        site = context.site

        if site is FaultSite.HOME and self._one_in(rates.home_unavailable):
            return FaultOutcome(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                "Service temporarily unavailable",
                "random service unavailable",
            )

        if site is FaultSite.LIST_USERS and self._one_in(rates.list_users_failure):
            return FaultOutcome(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Failed to retrieve users",
                "database connection failed",
            )

        if site is FaultSite.CREATE_VALIDATION and self._one_in(rates.create_validation):
            return FaultOutcome(
                status.HTTP_400_BAD_REQUEST,
                "validation error: required fields missing",
                "validation error: required fields missing",
            )

        if site is FaultSite.CREATE_PROCESSING and self._one_in(rates.create_processing):
            return FaultOutcome(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Failed to create user",
                "user processing failed: database constraint violation",
            )

        if site is FaultSite.GET_USER_QUERY and context.user_id is not None:
            roll = self.rng.randrange(rates.query_roll_sides)
            for rule in rates.database_errors:
                if rule.applies(context.user_id, roll):
                    return FaultOutcome(
                        status.HTTP_500_INTERNAL_SERVER_ERROR,
                        "Failed to retrieve user data",
                        rule.error,
                    )

        if (
            site is FaultSite.GET_USER_LOOKUP
            and context.user_id is not None
            and context.user_id > rates.not_found_min_id
            and self._one_in(rates.user_not_found)
        ):
            return FaultOutcome(
                status.HTTP_404_NOT_FOUND,
                f"User with ID {context.user_id} not found",
                f"user not found: ID {context.user_id}",
            )

        return None

    def processing_delay(self) -> float:
        return self.rng.uniform(0.0, self.rates.max_processing_delay)


def get_fault_policy(request: Request) -> FaultPolicy:
    """FastAPI dependency: the policy the application was built with."""
    return request.app.state.fault_policy
