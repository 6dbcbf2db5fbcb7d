from __future__ import annotations

import logging
from dataclasses import dataclass

import pytest

from cargocoin.ledger import LedgerProxy, address_from_label
from cargocoin.ledger.config import reset_config

TOKEN = 10**18


@dataclass(frozen=True)
class Accounts:
    admin: str = address_from_label("admin")
    minter: str = address_from_label("minter")
    alice: str = address_from_label("alice")
    bob: str = address_from_label("bob")
    carol: str = address_from_label("carol")
    spender: str = address_from_label("spender")


@pytest.fixture
def accounts() -> Accounts:
    return Accounts()


@pytest.fixture
def ledger(accounts: Accounts) -> LedgerProxy:
    """Initialized V1 ledger with no supply."""
    proxy = LedgerProxy()
    proxy.initialize(accounts.admin, accounts.minter)
    return proxy


@pytest.fixture
def funded(ledger: LedgerProxy, accounts: Accounts) -> LedgerProxy:
    """Ledger where alice holds 10,000 CC."""
    ledger.mint(accounts.minter, accounts.alice, 10_000 * TOKEN)
    return ledger


@pytest.fixture(autouse=True)
def _restore_cargocoin_logger():
    """configure_logging detaches the package logger from root; undo that between tests."""
    yield
    logger = logging.getLogger("cargocoin")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    reset_config()
