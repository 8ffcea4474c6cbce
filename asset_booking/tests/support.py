import os
import tempfile
from datetime import datetime

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from asset_booking.db.base import Base
from asset_booking.models.booking_models import Asset, Booking, BookingAsset, Organization, TeamMember, User


class TempDatabase:
    """File-backed SQLite database so the listing count can run on another connection."""

    def __init__(self):
        handle, self.path = tempfile.mkstemp(suffix=".db")
        os.close(handle)
        self.engine = create_engine(
            f"sqlite+pysqlite:///{self.path}",
            connect_args={"check_same_thread": False},
            future=True,
        )
        Base.metadata.create_all(bind=self.engine)
        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
            future=True,
        )

    def close(self):
        self.engine.dispose()
        os.remove(self.path)


def seed_directory(db):
    org = Organization(OrganizationID="org-1", Name="Main Org")
    other_org = Organization(OrganizationID="org-2", Name="Other Org")
    creator = User(UserID="user-creator", FullName="Casey Creator", Email="casey@example.com")
    custodian = User(UserID="user-custodian", FullName="Robin Custodian")
    member = TeamMember(TeamMemberID="tm-1", Name="Field Crew", OrganizationID="org-1")
    assets = [
        Asset(AssetID=f"asset-{index}", Title=f"Asset {index}", Description=f"Item {index}", OrganizationID="org-1")
        for index in range(1, 5)
    ]
    db.add_all([org, other_org, creator, custodian, member, *assets])
    db.commit()


def add_booking(
    db,
    booking_id,
    name,
    from_date,
    to_date,
    *,
    status="RESERVED",
    organization_id="org-1",
    created=None,
    asset_ids=(),
    custodian_user_id=None,
    custodian_team_member_id=None,
):
    db.add(
        Booking(
            BookingID=booking_id,
            Name=name,
            Status=status,
            FromDate=from_date,
            ToDate=to_date,
            OrganizationID=organization_id,
            CreatorID="user-creator",
            CustodianUserID=custodian_user_id,
            CustodianTeamMemberID=custodian_team_member_id,
            CreatedDate=created or datetime(2024, 1, 1),
        )
    )
    db.flush()
    for asset_id in asset_ids:
        db.add(BookingAsset(BookingID=booking_id, AssetID=asset_id))
    db.commit()
