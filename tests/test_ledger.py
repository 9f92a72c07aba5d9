from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from agrotrade.errors import AuctionClosed, BidTooLow, NotFound, RepositoryError, ValidationError
from agrotrade.ledger import AuctionLedger
from agrotrade.repositories import InMemoryCropRepository
from agrotrade.schemas import CropStatus

UTC = timezone.utc
T0 = datetime(2025, 1, 1, tzinfo=UTC)


class ClockStub:
    """Mutable clock so tests can control creation/bid timestamps."""

    def __init__(self, initial: datetime | None = None):
        self._now = initial or T0

    def advance(self, **delta_kwargs) -> None:
        self._now += timedelta(**delta_kwargs)

    def __call__(self) -> datetime:
        return self._now


class SequentialIds:
    def __init__(self):
        self._n = 0

    def __call__(self, prefix: str) -> str:
        self._n += 1
        return f"{prefix}_{self._n}"


class FailingSaveRepository(InMemoryCropRepository):
    def _write(self, raw):
        raise OSError("disk full")


@pytest.fixture
def clock():
    return ClockStub()


@pytest.fixture
def repo():
    return InMemoryCropRepository()


@pytest.fixture
def ledger(repo, clock):
    return AuctionLedger(repo, clock=clock, id_factory=SequentialIds())


def mk_crop(ledger: AuctionLedger, **overrides):
    kwargs = dict(crop_name="Wheat", quantity=100, min_price=50, location="X", farmer_id="f1")
    kwargs.update(overrides)
    return ledger.create_crop(**kwargs)


def stored(repo, crop_id):
    return next(c for c in repo.load_all() if c.id == crop_id)


# ---------- create ----------

def test_create_crop_starts_active_at_min_price(ledger, repo):
    crop = mk_crop(ledger)

    assert crop.id == "crop_1"
    assert crop.crop_name == "Wheat"
    assert crop.quantity == 100.0
    assert crop.min_price == 50.0
    assert crop.current_price == 50.0
    assert crop.status == CropStatus.active
    assert crop.bids == []
    assert crop.created_at == T0
    assert crop.highest_bidder is None
    assert crop.payment is None
    assert repo.load_all() == [crop]


def test_create_crop_defaults_farmer_name(ledger):
    assert mk_crop(ledger).farmer_name == "Unknown Farmer"
    assert mk_crop(ledger, farmer_name="").farmer_name == "Unknown Farmer"
    assert mk_crop(ledger, farmer_name="Ravi").farmer_name == "Ravi"


def test_create_crop_parses_numeric_strings(ledger):
    crop = mk_crop(ledger, quantity="12.5", min_price=" 40 ")

    assert crop.quantity == 12.5
    assert crop.min_price == 40.0
    assert crop.current_price == 40.0


@pytest.mark.parametrize("field", ["crop_name", "quantity", "min_price", "location", "farmer_id"])
@pytest.mark.parametrize("empty", [None, "", 0])
def test_create_crop_requires_every_field(ledger, repo, field, empty):
    with pytest.raises(ValidationError) as exc:
        mk_crop(ledger, **{field: empty})

    assert exc.value.message == "Missing required fields"
    assert exc.value.status_code == 400
    assert repo.load_all() == []


@pytest.mark.parametrize("field, alias", [("quantity", "quantity"), ("min_price", "minPrice")])
def test_create_crop_rejects_non_numeric_values(ledger, repo, field, alias):
    with pytest.raises(ValidationError) as exc:
        mk_crop(ledger, **{field: "lots"})

    assert exc.value.message == f"{alias} must be a number"
    assert repo.load_all() == []


def test_list_crops_keeps_insertion_order(ledger):
    first = mk_crop(ledger, crop_name="Wheat")
    second = mk_crop(ledger, crop_name="Rice")

    assert [c.id for c in ledger.list_crops()] == [first.id, second.id]


# ---------- bids ----------

def test_auction_scenario_end_to_end(ledger, repo):
    """Low bid rejected, higher bid accepted, foreign close refused, owner closes, late bid refused."""
    crop = mk_crop(ledger)

    with pytest.raises(BidTooLow) as exc:
        ledger.place_bid(crop.id, 40, "t1")
    assert exc.value.message == "Bid must be higher than current price ₹50"

    _, updated = ledger.place_bid(crop.id, 60, "t1")
    assert updated.current_price == 60.0

    with pytest.raises(NotFound):
        ledger.close_auction(crop.id, "f2")

    ledger.close_auction(crop.id, "f1")
    assert stored(repo, crop.id).status == CropStatus.closed

    with pytest.raises(AuctionClosed):
        ledger.place_bid(crop.id, 100, "t2")


def test_bid_equal_to_current_price_is_rejected(ledger, repo):
    crop = mk_crop(ledger)

    with pytest.raises(BidTooLow):
        ledger.place_bid(crop.id, 50, "t1")

    after = stored(repo, crop.id)
    assert after.current_price == 50.0
    assert after.bids == []


def test_accepted_bid_updates_price_bids_and_highest_bidder(ledger, repo, clock):
    crop = mk_crop(ledger)
    clock.advance(minutes=5)

    bid, updated = ledger.place_bid(crop.id, "75.5", "t1")

    assert bid.id == "bid_2"
    assert bid.trader_id == "t1"
    assert bid.trader_name == "Unknown Trader"
    assert bid.amount == 75.5
    assert bid.timestamp == T0 + timedelta(minutes=5)
    assert updated.current_price == 75.5
    assert updated.bids == [bid]
    assert updated.highest_bidder.trader_id == "t1"
    assert updated.highest_bidder.trader_name == "Unknown Trader"
    assert stored(repo, crop.id) == updated


def test_bids_ratchet_price_upwards(ledger, repo):
    crop = mk_crop(ledger)
    ledger.place_bid(crop.id, 60, "t1", "Asha")
    ledger.place_bid(crop.id, 70, "t2", "Bala")

    with pytest.raises(BidTooLow) as exc:
        ledger.place_bid(crop.id, 65, "t3")
    assert exc.value.message == "Bid must be higher than current price ₹70"

    after = stored(repo, crop.id)
    assert [b.amount for b in after.bids] == [60.0, 70.0]
    assert after.current_price == after.bids[-1].amount
    assert after.highest_bidder.trader_name == "Bala"


def test_bid_too_low_message_keeps_fractional_price(ledger):
    crop = mk_crop(ledger, min_price=62.5)

    with pytest.raises(BidTooLow) as exc:
        ledger.place_bid(crop.id, 10, "t1")

    assert exc.value.message == "Bid must be higher than current price ₹62.5"


@pytest.mark.parametrize(
    "crop_id, amount, trader_id",
    [(None, 60, "t1"), ("crop_1", 0, "t1"), ("crop_1", "", "t1"), ("crop_1", 60, "")],
)
def test_place_bid_requires_fields(ledger, crop_id, amount, trader_id):
    mk_crop(ledger)

    with pytest.raises(ValidationError):
        ledger.place_bid(crop_id, amount, trader_id)


def test_place_bid_rejects_non_numeric_amount(ledger):
    crop = mk_crop(ledger)

    with pytest.raises(ValidationError) as exc:
        ledger.place_bid(crop.id, "a lot", "t1")

    assert exc.value.message == "bidAmount must be a number"


def test_place_bid_on_empty_ledger_reports_no_crops(ledger):
    with pytest.raises(NotFound) as exc:
        ledger.place_bid("crop_404", 60, "t1")

    assert exc.value.message == "No crops found"


def test_place_bid_on_unknown_crop(ledger):
    mk_crop(ledger)

    with pytest.raises(NotFound) as exc:
        ledger.place_bid("crop_404", 60, "t1")

    assert exc.value.message == "Crop not found"
    assert exc.value.status_code == 404


def test_closed_auction_rejects_bids_and_keeps_state(ledger, repo):
    crop = mk_crop(ledger)
    ledger.place_bid(crop.id, 60, "t1")
    ledger.close_auction(crop.id, "f1")

    with pytest.raises(AuctionClosed) as exc:
        ledger.place_bid(crop.id, 1000, "t2")

    assert exc.value.message == "Auction is closed"
    after = stored(repo, crop.id)
    assert after.current_price == 60.0
    assert len(after.bids) == 1


# ---------- close ----------

def test_close_by_non_owner_looks_like_missing_crop(ledger, repo):
    crop = mk_crop(ledger)

    with pytest.raises(NotFound) as foreign:
        ledger.close_auction(crop.id, "f2")
    with pytest.raises(NotFound) as missing:
        ledger.close_auction("crop_404", "f1")

    assert foreign.value.message == missing.value.message == "Crop not found or not owned by farmer"
    assert stored(repo, crop.id).status == CropStatus.active


def test_close_twice_is_silent(ledger, repo):
    crop = mk_crop(ledger)

    ledger.close_auction(crop.id, "f1")
    ledger.close_auction(crop.id, "f1")

    assert stored(repo, crop.id).status == CropStatus.closed


def test_close_requires_crop_and_farmer(ledger):
    with pytest.raises(ValidationError) as exc:
        ledger.close_auction("crop_1", None)

    assert exc.value.message == "Missing cropId or farmerId"


# ---------- payments ----------

def test_record_payment_does_not_check_trader_or_status(ledger, repo, clock):
    crop = mk_crop(ledger)
    ledger.place_bid(crop.id, 60, "t1")
    clock.advance(hours=1)

    # neither the winner nor a closed auction
    payment = ledger.record_payment(crop.id, "someone-else", "pay_1")

    assert payment.trader_id == "someone-else"
    assert payment.status == "completed"
    assert payment.timestamp == T0 + timedelta(hours=1)
    assert stored(repo, crop.id).payment == payment


def test_record_payment_twice_keeps_latest(ledger, repo):
    crop = mk_crop(ledger)

    ledger.record_payment(crop.id, "t1", "pay_1")
    ledger.record_payment(crop.id, "t1", "pay_2")

    assert stored(repo, crop.id).payment.payment_id == "pay_2"


def test_record_payment_unknown_crop(ledger):
    mk_crop(ledger)

    with pytest.raises(NotFound):
        ledger.record_payment("crop_404", "t1", "pay_1")


def test_record_payment_requires_fields(ledger):
    crop = mk_crop(ledger)

    with pytest.raises(ValidationError):
        ledger.record_payment(crop.id, "t1", "")


# ---------- storage faults ----------

def test_save_failure_surfaces_as_repository_error(clock):
    ledger = AuctionLedger(FailingSaveRepository(), clock=clock)

    with pytest.raises(RepositoryError) as exc:
        mk_crop(ledger)

    assert exc.value.status_code == 500
    assert "disk full" in exc.value.message


def test_default_ids_are_unique_and_prefixed(repo):
    ledger = AuctionLedger(repo)

    ids = {mk_crop(ledger).id for _ in range(20)}

    assert len(ids) == 20
    assert all(i.startswith("crop_") for i in ids)
