#!/usr/bin/env python3
"""Database overview and booking integrity checks for AssetBooking."""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine

from asset_booking.services.booking_service import BOOKING_STATUSES


EXPECTED_TABLES = [
    "Organizations",
    "Users",
    "TeamMembers",
    "Assets",
    "Bookings",
    "BookingAssets",
    "AuditLogs",
]

EXPECTED_COLUMNS: dict[str, list[str]] = {
    "Bookings": [
        "BookingID",
        "Name",
        "Status",
        "FromDate",
        "ToDate",
        "OrganizationID",
        "CreatorID",
        "CustodianUserID",
        "CustodianTeamMemberID",
        "CreatedDate",
        "UpdatedDate",
    ],
    "BookingAssets": ["BookingID", "AssetID"],
    "Assets": ["AssetID", "Title", "OrganizationID"],
    "AuditLogs": ["AuditID", "EntityType", "EntityID", "Action", "Details", "UserID", "CreatedAt"],
}


@dataclass
class CheckResult:
    name: str
    ok: bool
    detail: str


def _print_section(title: str) -> None:
    print(f"\n=== {title} ===")


def _get_engine(db_url: str) -> Engine:
    return create_engine(db_url, pool_pre_ping=True, future=True)


def _scalar(engine: Engine, sql: str, params: dict | None = None):
    with engine.connect() as conn:
        return conn.execute(text(sql), params or {}).scalar()


def _rows(engine: Engine, sql: str, params: dict | None = None):
    with engine.connect() as conn:
        return conn.execute(text(sql), params or {}).all()


def _table_exists(engine: Engine, table_name: str) -> bool:
    return inspect(engine).has_table(table_name)


def _column_names(engine: Engine, table_name: str) -> set[str]:
    return {str(column["name"]) for column in inspect(engine).get_columns(table_name)}


def _count_check(engine: Engine, name: str, sql: str, params: dict | None = None) -> CheckResult:
    count = int(_scalar(engine, sql, params) or 0)
    return CheckResult(name, count == 0, f"count={count}")


def _run_existence_checks(engine: Engine) -> list[CheckResult]:
    results: list[CheckResult] = []
    for table in EXPECTED_TABLES:
        exists = _table_exists(engine, table)
        results.append(CheckResult(f"table:{table}", exists, "present" if exists else "missing"))
    return results


def _run_column_checks(engine: Engine) -> list[CheckResult]:
    results: list[CheckResult] = []
    for table, expected in EXPECTED_COLUMNS.items():
        if not _table_exists(engine, table):
            results.append(CheckResult(f"columns:{table}", False, "table missing"))
            continue
        actual = _column_names(engine, table)
        missing = [name for name in expected if name not in actual]
        results.append(
            CheckResult(
                f"columns:{table}",
                not missing,
                "ok" if not missing else f"missing={','.join(missing)}",
            )
        )
    return results


def _run_integrity_checks(engine: Engine) -> list[CheckResult]:
    checks: list[CheckResult] = []

    if _table_exists(engine, "Bookings"):
        checks.append(
            _count_check(
                engine,
                "bookings:dual_custodian",
                """
                SELECT COUNT(*)
                FROM Bookings
                WHERE CustodianUserID IS NOT NULL AND CustodianTeamMemberID IS NOT NULL
                """,
            )
        )
        checks.append(
            _count_check(
                engine,
                "bookings:inverted_interval",
                """
                SELECT COUNT(*)
                FROM Bookings
                WHERE FromDate IS NOT NULL AND ToDate IS NOT NULL AND FromDate >= ToDate
                """,
            )
        )

        statuses = sorted(BOOKING_STATUSES)
        placeholders = ", ".join(f":s{index}" for index in range(len(statuses)))
        checks.append(
            _count_check(
                engine,
                "bookings:unknown_status",
                f"SELECT COUNT(*) FROM Bookings WHERE Status NOT IN ({placeholders})",
                {f"s{index}": status for index, status in enumerate(statuses)},
            )
        )

    if _table_exists(engine, "BookingAssets") and _table_exists(engine, "Bookings"):
        checks.append(
            _count_check(
                engine,
                "bookingassets:orphan_bookingid",
                """
                SELECT COUNT(*)
                FROM BookingAssets ba
                LEFT JOIN Bookings b ON b.BookingID = ba.BookingID
                WHERE b.BookingID IS NULL
                """,
            )
        )

    if _table_exists(engine, "BookingAssets") and _table_exists(engine, "Assets"):
        checks.append(
            _count_check(
                engine,
                "bookingassets:orphan_assetid",
                """
                SELECT COUNT(*)
                FROM BookingAssets ba
                LEFT JOIN Assets a ON a.AssetID = ba.AssetID
                WHERE a.AssetID IS NULL
                """,
            )
        )

    return checks


def _print_results(title: str, rows: Iterable[CheckResult]) -> None:
    _print_section(title)
    for row in rows:
        status = "OK" if row.ok else "FAIL"
        print(f"[{status}] {row.name} :: {row.detail}")


def _print_row_counts(engine: Engine) -> None:
    _print_section("Row Counts")
    for table in EXPECTED_TABLES:
        if not _table_exists(engine, table):
            print(f"{table}: missing")
            continue
        count = _scalar(engine, f"SELECT COUNT(*) FROM {table}")
        print(f"{table}: {int(count or 0)}")


def _print_status_summary(engine: Engine) -> None:
    _print_section("Bookings by Status")
    if not _table_exists(engine, "Bookings"):
        print("Bookings: missing")
        return
    for status, count in _rows(engine, "SELECT Status, COUNT(*) FROM Bookings GROUP BY Status ORDER BY Status"):
        print(f"{status}: {int(count or 0)}")


def _print_samples(engine: Engine, sample_size: int) -> None:
    _print_section("Sample Values")
    sample_size = max(1, sample_size)

    if _table_exists(engine, "Bookings"):
        rows = _rows(
            engine,
            """
            SELECT BookingID, Name, Status, FromDate, ToDate
            FROM Bookings
            ORDER BY CreatedDate DESC
            LIMIT :n
            """,
            {"n": sample_size},
        )
        print("Bookings (recent):")
        for row in rows:
            print(f"  - {tuple(row)}")

    if _table_exists(engine, "AuditLogs"):
        rows = _rows(
            engine,
            """
            SELECT AuditID, EntityType, EntityID, Action, CreatedAt
            FROM AuditLogs
            ORDER BY AuditID DESC
            LIMIT :n
            """,
            {"n": sample_size},
        )
        print("AuditLogs (recent):")
        for row in rows:
            print(f"  - {tuple(row)}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="AssetBooking DB overview")
    parser.add_argument("--db-url", default=os.environ.get("ASSET_BOOKING_DB_URL", ""))
    parser.add_argument("--samples", type=int, default=5)
    args = parser.parse_args(argv)

    db_url = (args.db_url or "").strip()
    if not db_url:
        print("ASSET_BOOKING_DB_URL is not set. Provide --db-url or export env first.")
        return 2

    try:
        engine = _get_engine(db_url)
        _scalar(engine, "SELECT 1")
    except Exception as exc:
        print(f"Could not connect to DB: {exc}")
        return 3

    integrity = _run_integrity_checks(engine)
    _print_results("Table Existence", _run_existence_checks(engine))
    _print_results("Column Checks", _run_column_checks(engine))
    _print_results("Integrity Checks", integrity)
    _print_row_counts(engine)
    _print_status_summary(engine)
    _print_samples(engine, args.samples)
    return 0 if all(check.ok for check in integrity) else 1


if __name__ == "__main__":
    sys.exit(main())
