# agrotrade/schemas.py
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from agrotrade.utils import to_aware_utc


class CamelModel(BaseModel):
    # snake_case in Python, camelCase on the wire and in storage
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class CropStatus(str, Enum):
    active = "active"
    closed = "closed"


class Bid(CamelModel):
    id: str
    trader_id: str
    trader_name: str
    amount: float
    timestamp: datetime

    @field_validator("timestamp", mode="before")
    @classmethod
    def _tz(cls, v):
        return to_aware_utc(v) if v is not None else v


class HighestBidder(CamelModel):
    trader_id: str
    trader_name: str


class Payment(CamelModel):
    trader_id: str
    payment_id: str
    timestamp: datetime
    status: str = "completed"

    @field_validator("timestamp", mode="before")
    @classmethod
    def _tz(cls, v):
        return to_aware_utc(v) if v is not None else v


class Crop(CamelModel):
    id: str
    crop_name: str
    quantity: float
    min_price: float
    current_price: float
    location: str
    farmer_id: str
    farmer_name: str
    status: CropStatus = CropStatus.active
    bids: List[Bid] = Field(default_factory=list)
    created_at: datetime
    highest_bidder: Optional[HighestBidder] = None
    payment: Optional[Payment] = None

    @field_validator("created_at", mode="before")
    @classmethod
    def _tz(cls, v):
        return to_aware_utc(v) if v is not None else v

    @property
    def is_active(self) -> bool:
        return self.status == CropStatus.active


# ---------- request bodies ----------
# Fields are optional here so a missing or empty value reaches the ledger
# and is reported as "Missing required fields" rather than a schema error.

class AddCropIn(CamelModel):
    crop_name: Optional[str] = None
    quantity: Any = None
    min_price: Any = None
    location: Optional[str] = None
    farmer_id: Optional[str] = None
    farmer_name: Optional[str] = None


class BidIn(CamelModel):
    crop_id: Optional[str] = None
    bid_amount: Any = None
    trader_id: Optional[str] = None
    trader_name: Optional[str] = None


class EndAuctionIn(CamelModel):
    crop_id: Optional[str] = None
    farmer_id: Optional[str] = None


class PaymentIn(CamelModel):
    crop_id: Optional[str] = None
    trader_id: Optional[str] = None
    payment_id: Optional[str] = None


# ---------- responses ----------

class CropListOut(BaseModel):
    success: bool = True
    crops: List[Crop]


class CropOut(BaseModel):
    success: bool = True
    crop: Crop


class BidOut(BaseModel):
    success: bool = True
    bid: Bid
    crop: Crop


class MessageOut(BaseModel):
    success: bool = True
    message: str
