# agrotrade/ledger.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, List, Optional, Tuple

from agrotrade.errors import AuctionClosed, BidTooLow, NotFound, ValidationError
from agrotrade.repositories import CropRepository
from agrotrade.schemas import Bid, Crop, CropStatus, HighestBidder, Payment
from agrotrade.utils import format_price, new_id, parse_number, utc_now

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
IdFactory = Callable[[str], str]

DEFAULT_FARMER_NAME = "Unknown Farmer"
DEFAULT_TRADER_NAME = "Unknown Trader"


def _require(*values: Any, message: str = "Missing required fields") -> None:
    if not all(values):
        raise ValidationError(message)


class AuctionLedger:
    """Auction lifecycle over a crop repository.

    Each operation loads the full collection, mutates it and saves it back.
    There is no locking: two concurrent bids on the same crop can race and
    the later save wins.
    """

    def __init__(
        self,
        repository: CropRepository,
        *,
        clock: Clock | None = None,
        id_factory: IdFactory | None = None,
    ):
        # DI
        self._repo = repository
        self._clock = clock or utc_now
        self._new_id = id_factory or new_id

    # ---------- lookups ----------

    @staticmethod
    def _find(crops: List[Crop], crop_id: str) -> Crop:
        if not crops:
            raise NotFound("No crops found")
        for crop in crops:
            if crop.id == crop_id:
                return crop
        raise NotFound("Crop not found")

    # ---------- operations ----------

    def list_crops(self) -> List[Crop]:
        return self._repo.load_all()

    def create_crop(
        self,
        crop_name: Optional[str],
        quantity: Any,
        min_price: Any,
        location: Optional[str],
        farmer_id: Optional[str],
        farmer_name: Optional[str] = None,
    ) -> Crop:
        _require(crop_name, quantity, min_price, location, farmer_id)
        qty = parse_number(quantity, "quantity")
        price = parse_number(min_price, "minPrice")

        crop = Crop(
            id=self._new_id("crop"),
            crop_name=crop_name,
            quantity=qty,
            min_price=price,
            current_price=price,
            location=location,
            farmer_id=farmer_id,
            farmer_name=farmer_name or DEFAULT_FARMER_NAME,
            status=CropStatus.active,
            bids=[],
            created_at=self._clock(),
        )

        crops = self._repo.load_all()
        crops.append(crop)
        self._repo.save_all(crops)
        logger.info("Crop %s listed by farmer %s at %s", crop.id, farmer_id, format_price(price))
        return crop

    def place_bid(
        self,
        crop_id: Optional[str],
        bid_amount: Any,
        trader_id: Optional[str],
        trader_name: Optional[str] = None,
    ) -> Tuple[Bid, Crop]:
        _require(crop_id, bid_amount, trader_id)

        crops = self._repo.load_all()
        crop = self._find(crops, crop_id)

        if not crop.is_active:
            logger.debug("Bid by %s on closed crop %s rejected", trader_id, crop_id)
            raise AuctionClosed()

        amount = parse_number(bid_amount, "bidAmount")
        if amount <= crop.current_price:
            logger.debug("Bid %s by %s on %s rejected: not above %s", amount, trader_id, crop_id, crop.current_price)
            raise BidTooLow(f"Bid must be higher than current price ₹{format_price(crop.current_price)}")

        bid = Bid(
            id=self._new_id("bid"),
            trader_id=trader_id,
            trader_name=trader_name or DEFAULT_TRADER_NAME,
            amount=amount,
            timestamp=self._clock(),
        )
        crop.bids.append(bid)
        crop.current_price = amount
        crop.highest_bidder = HighestBidder(trader_id=trader_id, trader_name=bid.trader_name)

        self._repo.save_all(crops)
        logger.info("Bid %s accepted on crop %s: %s by %s", bid.id, crop.id, format_price(amount), trader_id)
        return bid, crop

    def close_auction(self, crop_id: Optional[str], farmer_id: Optional[str]) -> None:
        _require(crop_id, farmer_id, message="Missing cropId or farmerId")

        crops = self._repo.load_all()
        if not crops:
            raise NotFound("No crops found")
        # ownership gate: a foreign crop looks exactly like a missing one
        crop = next((c for c in crops if c.id == crop_id and c.farmer_id == farmer_id), None)
        if crop is None:
            raise NotFound("Crop not found or not owned by farmer")

        crop.status = CropStatus.closed
        self._repo.save_all(crops)
        logger.info("Auction for crop %s closed by farmer %s", crop_id, farmer_id)

    def record_payment(
        self,
        crop_id: Optional[str],
        trader_id: Optional[str],
        payment_id: Optional[str],
    ) -> Payment:
        _require(crop_id, trader_id, payment_id)

        crops = self._repo.load_all()
        crop = self._find(crops, crop_id)

        # No check against the highest bidder or auction status; the last call wins.
        crop.payment = Payment(
            trader_id=trader_id,
            payment_id=payment_id,
            timestamp=self._clock(),
            status="completed",
        )
        self._repo.save_all(crops)
        logger.info("Payment %s recorded on crop %s for trader %s", payment_id, crop_id, trader_id)
        return crop.payment
