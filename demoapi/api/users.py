"""
Users endpoints.

There is no backing store: the list is fixed, lookups synthesize a user
from the requested id and creation always yields id 3. The configured
``FaultPolicy`` decides whether a call fails the way a real database-backed
handler might.
"""

import asyncio
import logging
import re

from fastapi import APIRouter, Depends, Request, status
from pydantic import ValidationError

from demoapi.errors import APIError
from demoapi.faults.policy import FaultContext, FaultPolicy, FaultSite, get_fault_policy
from demoapi.models.user import User, UserCreate, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])

_USER_ID = re.compile(r"[+-]?[0-9]+")
# Ids must fit a signed 64-bit integer
_MAX_USER_ID = 2**63 - 1

KNOWN_USERS: list[User] = [
    User(id=1, name="John Doe"),
    User(id=2, name="Jane Smith"),
]
NEW_USER_ID = 3


# ── Helpers ────────────────────────────────────────────────────────────

def _raise_fault(faults: FaultPolicy, context: FaultContext) -> None:
    fault = faults.decide(context)
    if fault is not None:
        raise APIError(fault.status_code, fault.message, fault.detail)


def _fits_int64(raw: str) -> bool:
    digits = raw.lstrip("+-").lstrip("0")
    if len(digits) > len(str(_MAX_USER_ID)):
        return False
    return -_MAX_USER_ID - 1 <= int(raw) <= _MAX_USER_ID


def _parse_user_id(raw: str) -> int:
    """Parse a path id, rejecting anything that is not a positive integer."""
    if not _USER_ID.fullmatch(raw) or not _fits_int64(raw):
        logger.warning("Invalid user ID | id=%s | error=invalid user ID: not a valid integer", raw)
        raise APIError(status.HTTP_400_BAD_REQUEST, f"Invalid user ID: {raw}")

    user_id = int(raw)
    if user_id <= 0:
        logger.warning("Invalid user ID value | id=%d | error=invalid user ID: must be positive", user_id)
        raise APIError(status.HTTP_400_BAD_REQUEST, f"Invalid user ID: {user_id}")
    return user_id


# ── Endpoints ──────────────────────────────────────────────────────────

@router.get(
    "",
    response_model=UserResponse,
    response_model_exclude_none=True,
    summary="List users",
)
async def list_users(
    request: Request, faults: FaultPolicy = Depends(get_fault_policy)
) -> UserResponse:
    logger.info("Getting all users | path=%s", request.url.path)

    _raise_fault(faults, FaultContext(FaultSite.LIST_USERS))

    return UserResponse(status="success", users=KNOWN_USERS)


@router.post(
    "",
    response_model=UserResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
    description="Validates the JSON body and returns the created user.",
)
async def create_user(
    request: Request, faults: FaultPolicy = Depends(get_fault_policy)
) -> UserResponse:
    """
    Create a user from a JSON body such as ``{"name": "Ada"}``.

    1. Reject an empty body
    2. Validate the payload
    3. Simulate processing (which may fail under fault injection)
    """
    logger.info("Creating new user | path=%s", request.url.path)

    body = await request.body()
    if not body.strip():
        logger.warning("Failed to create user | error=empty request body")
        raise APIError(status.HTTP_400_BAD_REQUEST, "Empty request body")

    try:
        payload = UserCreate.model_validate_json(body)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ())) or "body"
        message = f"validation error: {location}: {first.get('msg', 'invalid value')}"
        logger.warning("User creation failed | error=%s", message)
        raise APIError(status.HTTP_400_BAD_REQUEST, message) from exc

    _raise_fault(faults, FaultContext(FaultSite.CREATE_VALIDATION))
    _raise_fault(faults, FaultContext(FaultSite.CREATE_PROCESSING))

    delay = faults.processing_delay()
    if delay > 0:
        await asyncio.sleep(delay)

    user = User(id=NEW_USER_ID, name=payload.name)
    logger.info("User created | id=%d | name=%s", user.id, user.name)

    return UserResponse(
        status="success",
        message="User created successfully",
        user=user,
    )


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    response_model_exclude_none=True,
    summary="Get a user by id",
)
async def get_user(
    user_id: str, request: Request, faults: FaultPolicy = Depends(get_fault_policy)
) -> UserResponse:
    logger.info("Getting user by ID | id=%s | path=%s", user_id, request.url.path)

    uid = _parse_user_id(user_id)

    _raise_fault(faults, FaultContext(FaultSite.GET_USER_QUERY, user_id=uid))
    _raise_fault(faults, FaultContext(FaultSite.GET_USER_LOOKUP, user_id=uid))

    return UserResponse(status="success", user=User(id=uid, name=f"User {uid}"))
