import os

import pytest

from multisend.features.batch.models import TokenDescriptor
from multisend.features.recipients.models import Recipient
from multisend.features.settlement.base import SettlementReceipt

SENDER = "0x00000000000000000000000000000000000000aa"
TOKEN_ADDRESS = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
TX_HASH = "0x" + "ab" * 32


class FakeSettlement:
    """In-memory settlement boundary that records every call."""

    def __init__(self, reference=TX_HASH):
        self.reference = reference
        self.calls = []
        self.error = None
        self.settled_total = None
        self.on_settle = None

    def settle_native(self, actor, recipients, amounts, value):
        self.calls.append(("native", actor, list(recipients), list(amounts), value))
        return self._finish(sum(amounts), value - sum(amounts))

    def settle_token(self, actor, token, recipients, amounts, total_amount):
        self.calls.append(
            ("token", actor, token, list(recipients), list(amounts), total_amount)
        )
        return self._finish(total_amount, 0)

    def _finish(self, total, refunded):
        if self.on_settle:
            self.on_settle()
        if self.error:
            raise self.error
        settled = self.settled_total if self.settled_total is not None else total
        return SettlementReceipt(
            reference=self.reference, settled_total=settled, refunded=refunded
        )


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch, tmp_path):
    """Run tests without MULTISEND_* settings from the developer's shell."""
    for name in list(os.environ):
        if name.startswith("MULTISEND_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MULTISEND_DIR", str(tmp_path / "multisend"))
    yield


@pytest.fixture
def sender():
    """Fixture providing the sending account address"""
    return SENDER


@pytest.fixture
def fake_settlement():
    return FakeSettlement()


@pytest.fixture
def native_token():
    """Fixture providing an 18-decimal native coin without a known balance"""
    return TokenDescriptor.native()


@pytest.fixture
def usdc_token():
    """Fixture providing a 6-decimal ERC-20 token"""
    return TokenDescriptor(
        symbol="USDC",
        name="USD Coin",
        decimals=6,
        address=TOKEN_ADDRESS,
        balance="1000",
    )


@pytest.fixture
def three_recipients():
    """Fixture providing three valid recipients totalling 10.0"""
    return [
        Recipient.create("0x" + "1" * 40, "2.5"),
        Recipient.create("0x" + "2" * 40, "3.5"),
        Recipient.create("0x" + "3" * 40, "4.0"),
    ]
