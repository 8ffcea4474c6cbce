from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import and_, exists, or_, select
from sqlalchemy.sql.elements import ColumnElement

from asset_booking.models.booking_models import Booking, BookingAsset


DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_timestamp(value: datetime | None) -> datetime | None:
    """Stored timestamps are naive UTC; aware input is converted to match."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def resolve_pagination(page: int | None = 1, per_page: int | None = DEFAULT_PER_PAGE) -> tuple[int, int]:
    """Return ``(skip, take)`` for a 1-based page number."""
    take = per_page if per_page is not None and 1 <= per_page <= MAX_PER_PAGE else DEFAULT_PER_PAGE
    current_page = page if page is not None and page > 1 else 1
    return (current_page - 1) * take, take


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _clean_ids(values: Iterable[str] | None) -> list[str]:
    return [value for value in (values or []) if value]


def overlap_clause(booking_from: datetime, booking_to: datetime) -> ColumnElement[bool]:
    # Second branch is implied by the first; both are kept so the emitted
    # predicate matches what existing callers have always received.
    return or_(
        and_(Booking.FromDate <= booking_to, Booking.ToDate >= booking_from),
        and_(Booking.FromDate >= booking_from, Booking.ToDate <= booking_to),
    )


def build_booking_filters(
    organization_id: str,
    *,
    search: str | None = None,
    statuses: Iterable[str] | None = None,
    custodian_user_id: str | None = None,
    custodian_team_member_id: str | None = None,
    asset_ids: Iterable[str] | None = None,
    exclude_booking_ids: Iterable[str] | None = None,
    booking_from: datetime | None = None,
    booking_to: datetime | None = None,
) -> ColumnElement[bool]:
    conditions: list[ColumnElement[bool]] = [Booking.OrganizationID == organization_id]

    term = (search or "").strip()
    if term:
        conditions.append(Booking.Name.ilike(f"%{_escape_like(term)}%", escape="\\"))

    if custodian_team_member_id:
        conditions.append(Booking.CustodianTeamMemberID == custodian_team_member_id)
    if custodian_user_id:
        conditions.append(Booking.CustodianUserID == custodian_user_id)

    wanted_statuses = [status for status in (statuses or []) if status]
    if wanted_statuses:
        conditions.append(Booking.Status.in_(wanted_statuses))

    wanted_assets = _clean_ids(asset_ids)
    if wanted_assets:
        conditions.append(
            exists(
                select(BookingAsset.BookingID)
                .where(BookingAsset.BookingID == Booking.BookingID)
                .where(BookingAsset.AssetID.in_(wanted_assets))
            )
        )

    excluded = _clean_ids(exclude_booking_ids)
    if excluded:
        conditions.append(Booking.BookingID.not_in(excluded))

    window_from = normalize_timestamp(booking_from)
    window_to = normalize_timestamp(booking_to)
    if window_from and window_to:
        conditions.append(overlap_clause(window_from, window_to))

    return and_(*conditions)
