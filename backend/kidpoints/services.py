"""Family operations: registration, the point ledger and activity review.

Every operation receives the authenticated ``Caller`` explicitly and
raises one of the errors from ``kidpoints.exceptions`` when the caller is
not allowed to act or the input is unusable.  Route handlers stay thin;
they only translate HTTP into these calls.
"""

import logging
import math
import re
import secrets
from datetime import date, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from kidpoints import crud
from kidpoints.auth import (
    Caller,
    decrypt_secret,
    encrypt_secret,
    get_password_hash,
    verify_password,
)
from kidpoints.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from kidpoints.models import ActivityRequest, ActivityStatus, Point, Role, User, utcnow
from kidpoints.schemas import (
    ActivityRequestRead,
    ChildCredential,
    ChildRead,
    ChildSummary,
    DashboardResponse,
    PointRead,
    UserSummary,
)

logger = logging.getLogger(__name__)

POINTS_PAGE_SIZE = 50  # most recent entries per child in parent listings
RECENT_POINTS = 10
WEEKLY_WINDOW = timedelta(days=7)
MAX_POINTS = 1_000_000  # largest single award, deduction or approval

PASSWORD_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghjkmnpqrstuvwxyz23456789"
PASSWORD_LENGTH = 8
USERNAME_ATTEMPTS = 10
AVATAR_URL = "https://api.dicebear.com/7.x/fun-emoji/svg?seed={seed}"


def _require_parent(caller: Caller, action: str) -> None:
    if caller.role != Role.PARENT:
        logger.warning("User %s (%s) tried to %s", caller.id, caller.role.value, action)
        raise AuthorizationError(f"Only parents can {action}", code="parent_required")


def _summary(user: User | None) -> UserSummary | None:
    if user is None:
        return None
    return UserSummary.model_validate(user)


def _point_read(point: Point, users: dict[int, User]) -> PointRead:
    return PointRead(
        **point.model_dump(),
        user=_summary(users.get(point.user_id)),
        given_by=_summary(users.get(point.given_by_id)),
    )


def _request_read(
    req: ActivityRequest,
    users: dict[int, User],
    point: Point | None = None,
) -> ActivityRequestRead:
    return ActivityRequestRead(
        **req.model_dump(),
        requested_by=_summary(users.get(req.requested_by_id)),
        reviewed_by=_summary(users.get(req.reviewed_by_id)),
        point=_point_read(point, users) if point is not None else None,
    )


# --- accounts ----------------------------------------------------------------


async def register_parent(db: AsyncSession, name: str, email: str | None, password: str) -> User:
    if not name or not password:
        raise ValidationError("Missing required fields", code="missing_fields")
    if not email:
        raise ValidationError("Email is required for parents", code="email_required")
    if await crud.get_user_by_email(db, email):
        raise ConflictError("Email is already registered", code="email_registered")
    user = User(
        name=name,
        role=Role.PARENT,
        email=email,
        password_hash=get_password_hash(password),
        avatar=AVATAR_URL.format(seed=email),
    )
    user = await crud.create_user(db, user)
    logger.info("Parent %s registered", user.email)
    return user


async def register_child(
    db: AsyncSession,
    name: str,
    parent_id: int | None,
    username: str | None,
    password: str,
) -> User:
    """Create a kid account owned by ``parent_id``.

    Besides the bcrypt hash the password is kept as a Fernet token so the
    parent can look it up again from the credentials page.
    """
    if not name or not password:
        raise ValidationError("Missing required fields", code="missing_fields")
    if not username:
        raise ValidationError("Username is required for children", code="username_required")
    if "@" in username:
        # Logins containing "@" are looked up as parent emails.
        raise ValidationError("Username must not contain '@'", code="invalid_username")
    parent = await crud.get_user(db, parent_id) if parent_id is not None else None
    if parent is None or parent.role != Role.PARENT:
        raise ValidationError("Invalid parent ID", code="invalid_parent")
    if await crud.get_user_by_username(db, username):
        raise ConflictError("Username already exists", code="username_taken")
    child = User(
        name=name,
        role=Role.KID,
        child_username=username,
        password_hash=get_password_hash(password),
        secret_token=encrypt_secret(password),
        parent_id=parent.id,
        avatar=AVATAR_URL.format(seed=username),
    )
    child = await crud.create_user(db, child)
    logger.info("Kid %s registered for parent %s", child.child_username, parent.id)
    return child


def generate_username(name: str) -> str:
    """Lower-cased letters and digits of the name plus a random 0-9999 suffix."""
    base = re.sub(r"[^a-z0-9]", "", name.lower()) or "kid"
    return f"{base}{secrets.randbelow(10000)}"


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


async def create_child(db: AsyncSession, caller: Caller, name: str) -> tuple[User, str]:
    """Register a kid with generated credentials; returns the kid and password."""
    _require_parent(caller, "add children")
    name = (name or "").strip()
    if not name:
        raise ValidationError("Child name is required", code="missing_fields")
    password = generate_password()
    for _ in range(USERNAME_ATTEMPTS):
        username = generate_username(name)
        if await crud.get_user_by_username(db, username) is None:
            break
    else:
        raise ConflictError("Could not find a free username", code="username_taken")
    child = await register_child(db, name, caller.id, username, password)
    return child, password


async def list_children(db: AsyncSession, caller: Caller) -> list[ChildRead]:
    _require_parent(caller, "list children")
    children = await crud.get_children_by_parent(db, caller.id)
    result = []
    for c in children:
        total = await crud.calculate_total(db, c.id)
        result.append(ChildRead(**c.model_dump(), total_points=total))
    return result


async def list_child_credentials(db: AsyncSession, caller: Caller) -> list[ChildCredential]:
    """Usernames and recoverable passwords of the caller's kids, newest first."""
    _require_parent(caller, "view child credentials")
    children = await crud.get_children_by_parent(db, caller.id)
    return [
        ChildCredential(
            id=c.id,
            name=c.name,
            child_username=c.child_username,
            password=decrypt_secret(c.secret_token),
            created_at=c.created_at,
        )
        for c in children
    ]


async def delete_child(db: AsyncSession, caller: Caller, child_id: int) -> None:
    _require_parent(caller, "delete children")
    child = await crud.get_child_of_parent(db, caller.id, child_id)
    if child is None:
        raise NotFoundError("Child not found", code="child_not_found")
    await crud.delete_child(db, child)
    logger.info("Kid %s deleted by parent %s", child_id, caller.id)


async def authenticate(db: AsyncSession, login: str, password: str) -> User | None:
    """Resolve a parent email or kid username and check the password."""
    if not login or not password:
        return None
    if "@" in login:
        user = await crud.get_user_by_email(db, login)
    else:
        user = await crud.get_user_by_username(db, login)
        # Kids without a parent cannot log in.
        if user is not None and user.parent_id is None:
            user = None
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


# --- point ledger ------------------------------------------------------------


def _validate_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise ValidationError("Valid amount is required", code="invalid_amount")
    if not math.isfinite(amount) or amount == 0 or int(amount) != amount:
        raise ValidationError("Valid amount is required", code="invalid_amount")
    if abs(amount) > MAX_POINTS:
        raise ValidationError(
            f"Amount must be between -{MAX_POINTS} and {MAX_POINTS}", code="invalid_amount"
        )
    return int(amount)


async def award_points(
    db: AsyncSession,
    caller: Caller,
    child_id: int,
    amount,
    description: str | None = None,
) -> PointRead:
    """Grant (or, with a negative amount, deduct) points for a kid."""
    _require_parent(caller, "award points")
    amount = _validate_amount(amount)
    child = await crud.get_child_of_parent(db, caller.id, child_id)
    if child is None:
        raise AuthorizationError("Child not found or not yours", code="child_not_owned")
    point = await crud.create_point(
        db,
        Point(
            amount=amount,
            description=description or None,
            user_id=child.id,
            given_by_id=caller.id,
        ),
    )
    logger.info("Parent %s gave %s points to kid %s", caller.id, amount, child.id)
    parent = await crud.get_user(db, caller.id)
    return _point_read(point, {child.id: child, parent.id: parent})


async def revoke_points(db: AsyncSession, caller: Caller, point_id: int) -> None:
    _require_parent(caller, "delete points")
    point = await crud.get_point_given_by(db, point_id, caller.id)
    if point is None:
        raise NotFoundError("Point not found", code="point_not_found")
    await crud.delete_point(db, point)
    logger.info("Point %s deleted by parent %s", point_id, caller.id)


async def list_points(
    db: AsyncSession, caller: Caller, user_id: int | None = None
) -> list[PointRead]:
    """Point entries visible to the caller, newest first."""
    if caller.role == Role.PARENT:
        children = await crud.get_children_by_parent(db, caller.id)
        if user_id is not None:
            children = [c for c in children if c.id == user_id]
        points = []
        for c in children:
            points.extend(await crud.get_points_for_user(db, c.id, limit=POINTS_PAGE_SIZE))
        points.sort(key=lambda p: (p.created_at, p.id), reverse=True)
    elif caller.role == Role.KID:
        points = await crud.get_points_for_user(db, caller.id)
    else:
        raise AuthorizationError("Unsupported role")
    users = await crud.get_users_by_ids(
        db, {p.user_id for p in points} | {p.given_by_id for p in points}
    )
    return [_point_read(p, users) for p in points]


async def build_dashboard(db: AsyncSession, caller: Caller) -> DashboardResponse:
    """Total and last-7-days points for the caller (or the caller's kids)."""
    user = await crud.get_user(db, caller.id)
    if user is None:
        raise NotFoundError("User not found")
    since = utcnow() - WEEKLY_WINDOW

    if caller.role == Role.PARENT:
        children = await crud.get_children_by_parent(db, caller.id)
        users = {user.id: user, **{c.id: c for c in children}}
        summaries = []
        for c in children:
            recent = await crud.get_points_for_user(db, c.id, limit=RECENT_POINTS)
            summaries.append(
                ChildSummary(
                    id=c.id,
                    name=c.name,
                    child_username=c.child_username,
                    avatar=c.avatar,
                    total_points=await crud.calculate_total(db, c.id),
                    weekly_points=await crud.calculate_total(db, c.id, since=since),
                    recent_points=[_point_read(p, users) for p in recent],
                )
            )
        return DashboardResponse(
            id=user.id,
            name=user.name,
            role=user.role,
            total_points=sum(s.total_points for s in summaries),
            weekly_points=sum(s.weekly_points for s in summaries),
            children=summaries,
        )
    elif caller.role == Role.KID:
        recent = await crud.get_points_for_user(db, user.id, limit=RECENT_POINTS)
        users = await crud.get_users_by_ids(
            db, {user.id} | {p.given_by_id for p in recent}
        )
        return DashboardResponse(
            id=user.id,
            name=user.name,
            role=user.role,
            total_points=await crud.calculate_total(db, user.id),
            weekly_points=await crud.calculate_total(db, user.id, since=since),
            recent_points=[_point_read(p, users) for p in recent],
        )
    raise AuthorizationError("Unsupported role")


# --- activity requests -------------------------------------------------------


def _parse_activity_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            pass
    raise ValidationError("Missing required fields", code="missing_fields")


async def submit_activity(
    db: AsyncSession,
    caller: Caller,
    activity: str,
    description: str,
    activity_date,
    child_id: int | None = None,
) -> ActivityRequestRead:
    """Record a kid's activity claim; parents may submit on a kid's behalf."""
    activity = (activity or "").strip()
    description = (description or "").strip()
    if not activity or not description or not activity_date:
        raise ValidationError("Missing required fields", code="missing_fields")
    activity_date = _parse_activity_date(activity_date)

    if caller.role == Role.KID:
        requester = await crud.get_user(db, caller.id)
    elif caller.role == Role.PARENT:
        if child_id is None:
            raise ValidationError(
                "Child ID required for parent submissions", code="child_required"
            )
        requester = await crud.get_child_of_parent(db, caller.id, child_id)
        if requester is None:
            logger.warning("Parent %s submitted for foreign kid %s", caller.id, child_id)
            raise AuthorizationError("Child not found or not yours", code="child_not_owned")
    else:
        raise AuthorizationError("Only kids and parents can submit activity requests")

    req = await crud.create_activity_request(
        db,
        ActivityRequest(
            activity=activity,
            description=description,
            activity_date=activity_date,
            requested_by_id=requester.id,
        ),
    )
    logger.info("Activity request %s submitted for kid %s", req.id, requester.id)
    return _request_read(req, {requester.id: requester})


async def list_activity_requests(
    db: AsyncSession, caller: Caller
) -> list[ActivityRequestRead]:
    """Pending requests of the caller's kids, or a kid's own history."""
    if caller.role == Role.PARENT:
        rows = await crud.get_pending_requests_for_parent(db, caller.id)
        return [_request_read(req, {kid.id: kid}) for req, kid in rows]
    elif caller.role == Role.KID:
        requests = await crud.get_activity_requests_by_child(db, caller.id)
        points = await crud.get_points_by_ids(
            db, {r.point_id for r in requests if r.point_id is not None}
        )
        users = await crud.get_users_by_ids(
            db,
            {caller.id}
            | {r.reviewed_by_id for r in requests if r.reviewed_by_id is not None},
        )
        return [
            _request_read(r, users, points.get(r.point_id) if r.point_id else None)
            for r in requests
        ]
    raise AuthorizationError("Unsupported role")


async def review_activity(
    db: AsyncSession,
    caller: Caller,
    request_id: int,
    decision,
    points: int | None = None,
) -> ActivityRequestRead:
    """Approve or reject a pending request.

    Approval creates the point entry and the status change in one
    transaction; if another reviewer already moved the request out of
    PENDING nothing is written and ``ConflictError`` is raised.
    """
    _require_parent(caller, "review activity requests")
    try:
        decision = ActivityStatus(decision)
    except ValueError:
        raise ValidationError("Invalid status", code="invalid_status")
    if decision == ActivityStatus.PENDING:
        raise ValidationError("Invalid status", code="invalid_status")
    if decision == ActivityStatus.APPROVED:
        if (
            isinstance(points, bool)
            or not isinstance(points, int)
            or points <= 0
        ):
            raise ValidationError("Points required for approval", code="points_required")
        if points > MAX_POINTS:
            raise ValidationError(
                f"Points must not exceed {MAX_POINTS}", code="invalid_amount"
            )

    req = await crud.get_activity_request(db, request_id)
    if req is None:
        raise NotFoundError("Request not found", code="request_not_found")
    kid = await crud.get_child_of_parent(db, caller.id, req.requested_by_id)
    if kid is None:
        logger.warning("Parent %s tried to review request %s of a foreign kid", caller.id, request_id)
        raise AuthorizationError("Unauthorized to review this request", code="request_not_owned")
    if req.status != ActivityStatus.PENDING:
        raise ConflictError("Request already reviewed", code="already_reviewed")

    point = None
    if decision == ActivityStatus.APPROVED:
        point = Point(
            amount=points,
            description=f"{req.activity} - {req.description}",
            user_id=kid.id,
            given_by_id=caller.id,
        )
    if not await crud.review_activity_request(db, req, caller.id, decision, point):
        logger.info("Activity request %s was reviewed concurrently", request_id)
        raise ConflictError("Request already reviewed", code="already_reviewed")

    logger.info(
        "Activity request %s %s by parent %s%s",
        req.id,
        decision.value.lower(),
        caller.id,
        f" for {points} points" if point is not None else "",
    )
    reviewer = await crud.get_user(db, caller.id)
    return _request_read(req, {kid.id: kid, reviewer.id: reviewer}, point)
