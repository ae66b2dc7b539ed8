"""Asynchronous CRUD helpers for the application's data models.

Each function in this module encapsulates a specific database operation
using SQLModel and SQLAlchemy.  Centralizing the logic keeps the service
layer free of query details and makes behavior easier to test.

Functions that write commit their own unit of work.  Commit failures
roll the session back and surface as ``ConflictError`` (unique
constraint) or ``PersistenceError`` (anything else the store reports).
"""

import logging
from datetime import datetime

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, delete

from kidpoints.exceptions import ConflictError, PersistenceError
from kidpoints.models import (
    ActivityRequest,
    ActivityStatus,
    Point,
    Role,
    User,
    utcnow,
)

logger = logging.getLogger(__name__)


async def commit_or_raise(db: AsyncSession) -> None:
    """Commit the current transaction, rolling back on failure."""
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConflictError("Record conflicts with existing data") from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Commit failed: %s", exc)
        raise PersistenceError("Could not save changes") from exc


# --- users -----------------------------------------------------------------


async def create_user(db: AsyncSession, user: User) -> User:
    """Persist a new parent or child account."""

    db.add(user)
    await commit_or_raise(db)
    await db.refresh(user)
    return user


async def get_user(db: AsyncSession, user_id: int) -> User | None:
    """Load a user by primary key."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Return a user by email or ``None`` if not found."""
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    """Return a child by their login username."""
    result = await db.execute(select(User).where(User.child_username == username))
    return result.scalar_one_or_none()


async def get_children_by_parent(db: AsyncSession, parent_id: int) -> list[User]:
    """Return all kids owned by a parent, newest first."""
    result = await db.execute(
        select(User)
        .where(User.parent_id == parent_id, User.role == Role.KID)
        .order_by(User.created_at.desc(), User.id.desc())
    )
    return result.scalars().all()


async def get_child_of_parent(
    db: AsyncSession, parent_id: int, child_id: int
) -> User | None:
    """Return the kid ``child_id`` only if ``parent_id`` owns it."""
    result = await db.execute(
        select(User).where(
            User.id == child_id,
            User.parent_id == parent_id,
            User.role == Role.KID,
        )
    )
    return result.scalar_one_or_none()


async def delete_child(db: AsyncSession, child: User) -> None:
    """Remove a kid together with their activity requests and points."""
    # Requests reference points, so they go first.
    await db.execute(
        delete(ActivityRequest).where(ActivityRequest.requested_by_id == child.id)
    )
    await db.execute(delete(Point).where(Point.user_id == child.id))
    await db.delete(child)
    await commit_or_raise(db)


# --- points ----------------------------------------------------------------


async def create_point(db: AsyncSession, point: Point) -> Point:
    """Persist a ledger entry."""
    db.add(point)
    await commit_or_raise(db)
    await db.refresh(point)
    return point


async def get_point_given_by(
    db: AsyncSession, point_id: int, granter_id: int
) -> Point | None:
    """Return a point entry only if ``granter_id`` created it."""
    result = await db.execute(
        select(Point).where(Point.id == point_id, Point.given_by_id == granter_id)
    )
    return result.scalar_one_or_none()


async def delete_point(db: AsyncSession, point: Point) -> None:
    """Remove a ledger entry, unlinking any approved request that created it."""
    await db.execute(
        update(ActivityRequest)
        .where(ActivityRequest.point_id == point.id)
        .values(point_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.delete(point)
    await commit_or_raise(db)


async def get_points_for_user(
    db: AsyncSession, user_id: int, limit: int | None = None
) -> list[Point]:
    """Return a user's point entries, newest first."""
    query = (
        select(Point)
        .where(Point.user_id == user_id)
        .order_by(Point.created_at.desc(), Point.id.desc())
    )
    if limit:
        query = query.limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


async def calculate_total(
    db: AsyncSession, user_id: int, since: datetime | None = None
) -> int:
    """Sum a user's points, optionally only those created after ``since``."""
    query = select(func.coalesce(func.sum(Point.amount), 0)).where(
        Point.user_id == user_id
    )
    if since is not None:
        query = query.where(Point.created_at > since)
    result = await db.execute(query)
    return int(result.scalar_one())


# --- activity requests ------------------------------------------------------


async def create_activity_request(
    db: AsyncSession, req: ActivityRequest
) -> ActivityRequest:
    """Persist a pending activity request."""

    db.add(req)
    await commit_or_raise(db)
    await db.refresh(req)
    return req


async def get_activity_request(
    db: AsyncSession, request_id: int
) -> ActivityRequest | None:
    """Return a single activity request by id."""
    result = await db.execute(
        select(ActivityRequest).where(ActivityRequest.id == request_id)
    )
    return result.scalar_one_or_none()


async def get_pending_requests_for_parent(
    db: AsyncSession, parent_id: int
) -> list[tuple[ActivityRequest, User]]:
    """Return pending requests of a parent's kids with the requesting kid."""
    query = (
        select(ActivityRequest, User)
        .join(User, User.id == ActivityRequest.requested_by_id)
        .where(
            User.parent_id == parent_id,
            ActivityRequest.status == ActivityStatus.PENDING,
        )
        .order_by(ActivityRequest.created_at.desc(), ActivityRequest.id.desc())
    )
    result = await db.execute(query)
    return result.all()


async def get_activity_requests_by_child(
    db: AsyncSession, child_id: int
) -> list[ActivityRequest]:
    """Return every request a kid has made, newest first."""
    result = await db.execute(
        select(ActivityRequest)
        .where(ActivityRequest.requested_by_id == child_id)
        .order_by(ActivityRequest.created_at.desc(), ActivityRequest.id.desc())
    )
    return result.scalars().all()


async def review_activity_request(
    db: AsyncSession,
    req: ActivityRequest,
    reviewer_id: int,
    status: ActivityStatus,
    point: Point | None = None,
) -> bool:
    """Move ``req`` out of PENDING, creating ``point`` in the same transaction.

    The transition is a conditional update on ``status = PENDING`` so the
    store serializes concurrent reviewers.  Returns ``False`` and rolls
    everything back when another reviewer got there first.
    """
    try:
        if point is not None:
            db.add(point)
            await db.flush()  # ensure point.id is populated
        result = await db.execute(
            update(ActivityRequest)
            .where(
                ActivityRequest.id == req.id,
                ActivityRequest.status == ActivityStatus.PENDING,
            )
            .values(
                status=status,
                reviewed_by_id=reviewer_id,
                reviewed_at=utcnow(),
                point_id=point.id if point is not None else None,
            )
            .execution_options(synchronize_session=False)
        )
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Review of activity request %s failed: %s", req.id, exc)
        raise PersistenceError("Could not save review") from exc

    if result.rowcount != 1:
        await db.rollback()
        return False

    await commit_or_raise(db)
    await db.refresh(req)
    if point is not None:
        await db.refresh(point)
    return True


async def get_users_by_ids(db: AsyncSession, user_ids: set[int]) -> dict[int, User]:
    """Return the given users keyed by id; unknown ids are skipped."""
    if not user_ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(user_ids)))
    return {u.id: u for u in result.scalars().all()}


async def get_points_by_ids(db: AsyncSession, point_ids: set[int]) -> dict[int, Point]:
    if not point_ids:
        return {}
    result = await db.execute(select(Point).where(Point.id.in_(point_ids)))
    return {p.id: p for p in result.scalars().all()}
