from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


BookingStatus = Literal["DRAFT", "RESERVED", "ONGOING", "OVERDUE", "COMPLETE", "ARCHIVED", "CANCELLED"]


class BookingUpsert(BaseModel):
    """Partial booking payload.

    Which fields the caller actually sent is read from ``model_fields_set``,
    so an omitted field and a field sent as ``null`` are told apart.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    name: Optional[str] = None
    from_: Optional[datetime] = Field(None, alias="from")
    to: Optional[datetime] = None
    status: Optional[BookingStatus] = None
    creatorId: Optional[str] = None
    organizationId: Optional[str] = None
    custodianUserId: Optional[str] = None
    custodianTeamMemberId: Optional[str] = None
    assetIds: Optional[List[str]] = None

    def has(self, field_name: str) -> bool:
        return field_name in self.model_fields_set


class RemoveAssetsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    assetIds: List[str] = []
