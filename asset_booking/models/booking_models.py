import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from asset_booking.db.base import Base


def new_id() -> str:
    return uuid.uuid4().hex


class Organization(Base):
    __tablename__ = "Organizations"

    OrganizationID = Column(String(36), primary_key=True, default=new_id)
    Name = Column(String(255), nullable=False)
    CreatedDate = Column(DateTime, server_default=func.now())

    Assets = relationship("Asset", back_populates="Organization")
    TeamMembers = relationship("TeamMember", back_populates="Organization")
    Bookings = relationship("Booking", back_populates="Organization")


class User(Base):
    __tablename__ = "Users"

    UserID = Column(String(36), primary_key=True, default=new_id)
    FullName = Column(String(255), nullable=False)
    Email = Column(String(255))
    CreatedDate = Column(DateTime, server_default=func.now())


class TeamMember(Base):
    __tablename__ = "TeamMembers"

    TeamMemberID = Column(String(36), primary_key=True, default=new_id)
    Name = Column(String(255), nullable=False)
    OrganizationID = Column(String(36), ForeignKey("Organizations.OrganizationID"), nullable=False)
    UserID = Column(String(36), ForeignKey("Users.UserID"))
    CreatedDate = Column(DateTime, server_default=func.now())

    Organization = relationship("Organization", back_populates="TeamMembers")
    User = relationship("User")


class Asset(Base):
    __tablename__ = "Assets"

    AssetID = Column(String(36), primary_key=True, default=new_id)
    Title = Column(String(255), nullable=False)
    Description = Column(String(1000))
    OrganizationID = Column(String(36), ForeignKey("Organizations.OrganizationID"), nullable=False)
    CreatedDate = Column(DateTime, server_default=func.now())

    Organization = relationship("Organization", back_populates="Assets")
    Bookings = relationship("Booking", secondary="BookingAssets", viewonly=True)


class Booking(Base):
    __tablename__ = "Bookings"

    BookingID = Column(String(36), primary_key=True, default=new_id)
    Name = Column(String(255), nullable=False)
    Status = Column(String(20), nullable=False, default="DRAFT")
    FromDate = Column(DateTime)
    ToDate = Column(DateTime)
    OrganizationID = Column(String(36), ForeignKey("Organizations.OrganizationID"), nullable=False)
    CreatorID = Column(String(36), ForeignKey("Users.UserID"), nullable=False)
    CustodianUserID = Column(String(36), ForeignKey("Users.UserID"))
    CustodianTeamMemberID = Column(String(36), ForeignKey("TeamMembers.TeamMemberID"))
    CreatedDate = Column(DateTime, server_default=func.now())
    UpdatedDate = Column(DateTime, server_default=func.now())

    Organization = relationship("Organization", back_populates="Bookings")
    Creator = relationship("User", foreign_keys=[CreatorID])
    CustodianUser = relationship("User", foreign_keys=[CustodianUserID])
    CustodianTeamMember = relationship("TeamMember", foreign_keys=[CustodianTeamMemberID])
    # Membership is written through BookingAsset rows, never through this collection.
    Assets = relationship(
        "Asset",
        secondary="BookingAssets",
        order_by="Asset.Title",
        viewonly=True,
    )


class BookingAsset(Base):
    __tablename__ = "BookingAssets"

    BookingID = Column(String(36), ForeignKey("Bookings.BookingID", ondelete="CASCADE"), primary_key=True)
    AssetID = Column(String(36), ForeignKey("Assets.AssetID", ondelete="CASCADE"), primary_key=True)


class AuditLog(Base):
    __tablename__ = "AuditLogs"

    AuditID = Column(Integer, primary_key=True, autoincrement=True)
    EntityType = Column(String(50), nullable=False)
    EntityID = Column(String(36), nullable=False)
    Action = Column(String(100), nullable=False)
    Details = Column(String(2000))
    UserID = Column(String(36))
    CreatedAt = Column(DateTime, server_default=func.now())
