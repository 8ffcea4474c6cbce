import os
import logging
import re
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from sqlalchemy import text
from sqlalchemy.orm import Session

from asset_booking.db.base import Base
from asset_booking.db.deps import get_asset_db
from asset_booking.db.session import engine_asset
from asset_booking.schemas.bookings import BookingUpsert, RemoveAssetsRequest
from asset_booking.services.booking_service import (
    delete_booking,
    get_booking,
    get_bookings,
    remove_assets,
    serialize_booking,
    upsert_booking,
)
from asset_booking.services.booking_filters import resolve_pagination
from asset_booking.services.checklist_service import build_checklist, render_checklist_pdf
from asset_booking.services.errors import NotFound, ValidationError as BookingValidationError


API_LOGGER = logging.getLogger("asset_booking.api")
# Header values are latin-1; anything else falls back to the generated name.
_SAFE_PDF_FILENAME = re.compile(r"[A-Za-z0-9_.\-]+\.pdf")

app = FastAPI(title="Asset Booking")


def _parse_csv_env(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in str(raw).split(",") if item.strip()]


def _env_flag(name: str, default: str) -> bool:
    return str(os.environ.get(name, default)).strip().lower() in {"1", "true", "yes", "on"}


_CORS_ALLOW_ORIGINS = _parse_csv_env(
    "CORS_ALLOW_ORIGINS",
    "http://127.0.0.1,http://localhost,http://127.0.0.1:5001,http://localhost:5001",
)
_CORS_ALLOW_CREDENTIALS = _env_flag("CORS_ALLOW_CREDENTIALS", "true")
if "*" in _CORS_ALLOW_ORIGINS:
    # Browsers reject wildcard origins with credentials.
    _CORS_ALLOW_CREDENTIALS = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=_CORS_ALLOW_ORIGINS,
    allow_credentials=_CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"]
)

if _env_flag("BOOKING_AUTO_CREATE_TABLES", "true"):
    Base.metadata.create_all(bind=engine_asset)


def _service_error(exc: Exception) -> HTTPException:
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    API_LOGGER.warning("Booking request rejected reason=%s", exc)
    return HTTPException(status_code=400, detail=str(exc))


@app.get("/healthz")
def healthcheck():
    return {"status": "ok"}


@app.get("/api/healthz")
def healthcheck_api(db: Session = Depends(get_asset_db)):
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:
        raise HTTPException(status_code=503, detail=f"db_unavailable: {exc}") from exc


@app.post("/api/bookings")
def upsert_booking_route(payload: BookingUpsert, db: Session = Depends(get_asset_db)):
    try:
        booking = upsert_booking(db, payload)
    except (NotFound, BookingValidationError) as exc:
        raise _service_error(exc) from exc
    return serialize_booking(booking)


@app.get("/api/organizations/{organization_id}/bookings")
def list_bookings(
    organization_id: str,
    page: int = Query(1),
    per_page: int = Query(20, alias="perPage"),
    search: Optional[str] = Query(None),
    statuses: Optional[List[str]] = Query(None, alias="status"),
    custodian_user_id: Optional[str] = Query(None, alias="custodianUserId"),
    custodian_team_member_id: Optional[str] = Query(None, alias="custodianTeamMemberId"),
    asset_ids: Optional[List[str]] = Query(None, alias="assetId"),
    exclude_booking_ids: Optional[List[str]] = Query(None, alias="excludeBookingId"),
    booking_from: Optional[datetime] = Query(None, alias="bookingFrom"),
    booking_to: Optional[datetime] = Query(None, alias="bookingTo"),
    db: Session = Depends(get_asset_db),
):
    try:
        bookings, booking_count = get_bookings(
            db,
            organization_id,
            page=page,
            per_page=per_page,
            search=search,
            statuses=statuses,
            custodian_user_id=custodian_user_id,
            custodian_team_member_id=custodian_team_member_id,
            asset_ids=asset_ids,
            exclude_booking_ids=exclude_booking_ids,
            booking_from=booking_from,
            booking_to=booking_to,
        )
    except BookingValidationError as exc:
        raise _service_error(exc) from exc

    _, take = resolve_pagination(page, per_page)
    return {
        "bookings": [serialize_booking(booking) for booking in bookings],
        "bookingCount": booking_count,
        "page": max(page, 1),
        "perPage": take,
    }


@app.get("/api/bookings/{booking_id}")
def get_booking_route(booking_id: str, db: Session = Depends(get_asset_db)):
    booking = get_booking(db, booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return serialize_booking(booking, include_assets=True)


@app.post("/api/bookings/{booking_id}/remove-assets")
def remove_assets_route(booking_id: str, payload: RemoveAssetsRequest, db: Session = Depends(get_asset_db)):
    try:
        booking = remove_assets(db, booking_id, payload.assetIds)
    except NotFound as exc:
        raise _service_error(exc) from exc
    return serialize_booking(booking, include_assets=True)


@app.delete("/api/bookings/{booking_id}")
def delete_booking_route(booking_id: str, db: Session = Depends(get_asset_db)):
    try:
        booking = delete_booking(db, booking_id)
    except NotFound as exc:
        raise _service_error(exc) from exc
    return serialize_booking(booking, include_assets=True)


@app.get("/api/bookings/{booking_id}/generate-pdf/{filename}")
def generate_booking_pdf(booking_id: str, filename: str, db: Session = Depends(get_asset_db)):
    booking = get_booking(db, booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    try:
        checklist = build_checklist(booking)
    except BookingValidationError as exc:
        raise _service_error(exc) from exc

    content = render_checklist_pdf(checklist)
    download_name = filename if _SAFE_PDF_FILENAME.fullmatch(filename) else checklist["filename"]
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{download_name}"'},
    )
