from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Iterable

from sqlalchemy import delete, func, insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.pool import SingletonThreadPool, StaticPool

from asset_booking.models.booking_models import Asset, Booking, BookingAsset, Organization, TeamMember, User
from asset_booking.schemas.bookings import BookingUpsert
from asset_booking.services.audit_service import log_audit
from asset_booking.services.booking_filters import build_booking_filters, normalize_timestamp, resolve_pagination, utc_now
from asset_booking.services.errors import NotFound, ValidationError


BOOKING_LOGGER = logging.getLogger("asset_booking.bookings")

BOOKING_STATUSES = {"DRAFT", "RESERVED", "ONGOING", "OVERDUE", "COMPLETE", "ARCHIVED", "CANCELLED"}
ACTIVE_STATES = {"ONGOING", "OVERDUE"}


def _custodian_options():
    return (
        selectinload(Booking.CustodianUser),
        selectinload(Booking.CustodianTeamMember),
    )


def _load_booking(db: Session, booking_id: str, with_assets: bool = True) -> Booking | None:
    stmt = select(Booking).options(*_custodian_options()).where(Booking.BookingID == booking_id)
    if with_assets:
        stmt = stmt.options(selectinload(Booking.Assets))
    # Join rows are written with plain INSERT/DELETE, so identity-map copies may be stale.
    return db.execute(stmt.execution_options(populate_existing=True)).scalars().first()


def _require_existing(db: Session, model, identifier: str, label: str) -> None:
    if db.get(model, identifier) is None:
        raise NotFound(f"{label} {identifier} not found.")


def _require_assets(db: Session, asset_ids: list[str]) -> None:
    found = set(db.execute(select(Asset.AssetID).where(Asset.AssetID.in_(asset_ids))).scalars().all())
    missing = [asset_id for asset_id in asset_ids if asset_id not in found]
    if missing:
        raise NotFound(f"Asset {missing[0]} not found.")


def _apply_scalar_fields(booking: Booking, payload: BookingUpsert) -> None:
    if payload.has("name"):
        if not (payload.name or "").strip():
            raise ValidationError("name cannot be empty.")
        booking.Name = payload.name.strip()
    if payload.has("status"):
        if payload.status is None:
            raise ValidationError("status cannot be null.")
        booking.Status = payload.status
    if payload.has("from_"):
        booking.FromDate = normalize_timestamp(payload.from_)
    if payload.has("to"):
        booking.ToDate = normalize_timestamp(payload.to)

    if booking.FromDate and booking.ToDate and booking.FromDate >= booking.ToDate:
        raise ValidationError("from must be before to.")


def _apply_custodian(db: Session, booking: Booking, payload: BookingUpsert) -> None:
    if payload.custodianUserId:
        _require_existing(db, User, payload.custodianUserId, "User")
        booking.CustodianUserID = payload.custodianUserId
        booking.CustodianTeamMemberID = None
    elif payload.custodianTeamMemberId:
        _require_existing(db, TeamMember, payload.custodianTeamMemberId, "Team member")
        booking.CustodianTeamMemberID = payload.custodianTeamMemberId
        booking.CustodianUserID = None


def _replace_assets(db: Session, booking_id: str, asset_ids: list[str]) -> None:
    db.execute(delete(BookingAsset).where(BookingAsset.BookingID == booking_id))
    db.execute(
        insert(BookingAsset),
        [{"BookingID": booking_id, "AssetID": asset_id} for asset_id in asset_ids],
    )


def upsert_booking(db: Session, payload: BookingUpsert) -> Booking:
    asset_ids = list(dict.fromkeys(payload.assetIds or []))

    if payload.id:
        booking = db.get(Booking, payload.id)
        if booking is None:
            raise NotFound(f"Booking {payload.id} not found.")
        action = "UpdateBooking"
    else:
        if not payload.creatorId or not payload.organizationId:
            raise ValidationError("creatorId and organizationId are required to create a booking.")
        if not (payload.name or "").strip():
            raise ValidationError("name is required to create a booking.")
        _require_existing(db, User, payload.creatorId, "User")
        _require_existing(db, Organization, payload.organizationId, "Organization")
        booking = Booking(
            CreatorID=payload.creatorId,
            OrganizationID=payload.organizationId,
            Status="DRAFT",
            CreatedDate=utc_now(),
        )
        action = "CreateBooking"

    try:
        _apply_scalar_fields(booking, payload)
        _apply_custodian(db, booking, payload)
        if asset_ids:
            _require_assets(db, asset_ids)
        booking.UpdatedDate = utc_now()
        db.add(booking)
        db.flush()
        if asset_ids:
            _replace_assets(db, booking.BookingID, asset_ids)
        log_audit(
            db,
            "Booking",
            booking.BookingID,
            action,
            f"status={booking.Status} assets={len(asset_ids)}",
            user_id=booking.CreatorID,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    BOOKING_LOGGER.info(
        "Booking saved id=%s action=%s status=%s assets=%s",
        booking.BookingID,
        action,
        booking.Status,
        len(asset_ids),
    )
    return _load_booking(db, booking.BookingID, with_assets=False)


def _count_bookings(db: Session, predicate) -> int:
    with Session(bind=db.get_bind()) as count_session:
        return int(count_session.execute(select(func.count()).select_from(Booking).where(predicate)).scalar_one())


def _supports_parallel_reads(db: Session) -> bool:
    bind = db.get_bind()
    # A session bound to a single Connection cannot lend it to another thread.
    if not isinstance(bind, Engine):
        return False
    # In-memory SQLite pools hand each thread its own (empty) database or one shared connection.
    return not isinstance(bind.pool, (SingletonThreadPool, StaticPool))


def get_bookings(
    db: Session,
    organization_id: str,
    *,
    page: int = 1,
    per_page: int = 20,
    search: str | None = None,
    statuses: Iterable[str] | None = None,
    custodian_user_id: str | None = None,
    custodian_team_member_id: str | None = None,
    asset_ids: Iterable[str] | None = None,
    exclude_booking_ids: Iterable[str] | None = None,
    booking_from: datetime | None = None,
    booking_to: datetime | None = None,
) -> tuple[list[Booking], int]:
    """Return one page of the organization's bookings plus the total match count.

    When ``db`` is bound to a pooled engine, the count runs on its own session
    in a one-worker thread pool while the page is fetched on ``db``, so the
    count only sees committed rows. Sessions bound to a single connection or
    to an in-memory SQLite pool run both queries on ``db``, one after the other.
    """
    if not organization_id:
        raise ValidationError("organizationId is required.")

    skip, take = resolve_pagination(page, per_page)
    predicate = build_booking_filters(
        organization_id,
        search=search,
        statuses=statuses,
        custodian_user_id=custodian_user_id,
        custodian_team_member_id=custodian_team_member_id,
        asset_ids=asset_ids,
        exclude_booking_ids=exclude_booking_ids,
        booking_from=booking_from,
        booking_to=booking_to,
    )
    page_stmt = (
        select(Booking)
        .options(*_custodian_options())
        .where(predicate)
        .order_by(Booking.CreatedDate.desc(), Booking.BookingID.desc())
        .offset(skip)
        .limit(take)
    )

    if not _supports_parallel_reads(db):
        bookings = db.execute(page_stmt).scalars().all()
        total = int(db.execute(select(func.count()).select_from(Booking).where(predicate)).scalar_one())
        return list(bookings), total

    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="booking-count") as executor:
        count_future = executor.submit(_count_bookings, db, predicate)
        bookings = db.execute(page_stmt).scalars().all()
        total = count_future.result()

    return list(bookings), total


def get_booking(db: Session, booking_id: str) -> Booking | None:
    return _load_booking(db, booking_id)


def remove_assets(db: Session, booking_id: str, asset_ids: Iterable[str]) -> Booking:
    wanted = [asset_id for asset_id in dict.fromkeys(asset_ids or []) if asset_id]
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise NotFound(f"Booking {booking_id} not found.")

    try:
        removed = 0
        if wanted:
            result = db.execute(
                delete(BookingAsset)
                .where(BookingAsset.BookingID == booking_id)
                .where(BookingAsset.AssetID.in_(wanted))
            )
            removed = int(result.rowcount or 0)
        if removed:
            booking.UpdatedDate = utc_now()
            log_audit(db, "Booking", booking_id, "RemoveAssets", f"removed={removed}")
        db.commit()
    except Exception:
        db.rollback()
        raise

    BOOKING_LOGGER.info("Booking assets removed id=%s requested=%s removed=%s", booking_id, len(wanted), removed)
    return _load_booking(db, booking_id)


def on_active_booking_deleted(db: Session, booking: Booking) -> None:
    """Called after deleting an ONGOING or OVERDUE booking.

    Re-deriving the availability of the booking's assets (they may still be
    checked out under another overdue booking) has no defined behaviour yet,
    so this only records that the step was skipped.
    """
    BOOKING_LOGGER.warning(
        "Asset availability not recalculated after deleting active booking id=%s status=%s assets=%s",
        booking.BookingID,
        booking.Status,
        ",".join(asset.AssetID for asset in booking.Assets),
    )


def delete_booking(db: Session, booking_id: str) -> Booking:
    booking = _load_booking(db, booking_id)
    if booking is None:
        raise NotFound(f"Booking {booking_id} not found.")

    # The returned snapshot must outlive the rows it was loaded from.
    db.expunge(booking)
    try:
        db.execute(delete(BookingAsset).where(BookingAsset.BookingID == booking_id))
        db.execute(delete(Booking).where(Booking.BookingID == booking_id))
        log_audit(db, "Booking", booking_id, "DeleteBooking", f"status={booking.Status}")
        db.commit()
    except Exception:
        db.rollback()
        raise

    BOOKING_LOGGER.info("Booking deleted id=%s status=%s", booking_id, booking.Status)
    if booking.Status in ACTIVE_STATES:
        on_active_booking_deleted(db, booking)
    return booking


def _serialize_user(user: User | None) -> dict | None:
    if user is None:
        return None
    return {"id": user.UserID, "fullName": user.FullName, "email": user.Email}


def _serialize_team_member(member: TeamMember | None) -> dict | None:
    if member is None:
        return None
    return {"id": member.TeamMemberID, "name": member.Name, "userId": member.UserID}


def serialize_asset(asset: Asset) -> dict:
    return {
        "id": asset.AssetID,
        "title": asset.Title,
        "description": asset.Description,
        "organizationId": asset.OrganizationID,
    }


def serialize_booking(booking: Booking, include_assets: bool = False) -> dict:
    payload = {
        "id": booking.BookingID,
        "name": booking.Name,
        "status": booking.Status,
        "from": booking.FromDate,
        "to": booking.ToDate,
        "organizationId": booking.OrganizationID,
        "creatorId": booking.CreatorID,
        "custodianUserId": booking.CustodianUserID,
        "custodianTeamMemberId": booking.CustodianTeamMemberID,
        "custodianUser": _serialize_user(booking.CustodianUser),
        "custodianTeamMember": _serialize_team_member(booking.CustodianTeamMember),
        "createdAt": booking.CreatedDate,
        "updatedAt": booking.UpdatedDate,
    }
    if include_assets:
        payload["assets"] = [serialize_asset(asset) for asset in booking.Assets]
    return payload
