# agrotrade/deps.py
from fastapi import Request

from agrotrade.config import Settings
from agrotrade.ledger import AuctionLedger
from agrotrade.repositories import build_repository


def build_ledger(settings: Settings) -> AuctionLedger:
    return AuctionLedger(build_repository(settings))


# FastAPI dep: the ledger is owned by the app, created at startup
def get_ledger(request: Request) -> AuctionLedger:
    return request.app.state.ledger
