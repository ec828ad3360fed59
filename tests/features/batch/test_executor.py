"""Tests for atomic batch execution."""

import logging
import threading
from decimal import Decimal

import pytest

from multisend.features.batch.errors import BatchError, BatchErrorKind, SettlementError
from multisend.features.batch.executor import BatchExecutor
from multisend.features.batch.models import CompletionRecord, TokenDescriptor
from multisend.features.recipients.models import Recipient, RecipientCandidate
ETHER = 10**18
TX_HASH = "0x" + "ab" * 32


@pytest.fixture
def executor(fake_settlement):
    return BatchExecutor(fake_settlement)


def _recipients(*amounts):
    return [
        Recipient.create("0x" + f"{i + 1:040x}", amount)
        for i, amount in enumerate(amounts)
    ]


@pytest.mark.unit
class TestNativeBatch:
    def test_insufficient_value(self, executor, fake_settlement, native_token, sender, three_recipients):
        result = executor.execute(sender, three_recipients, native_token, value="9.0")

        assert result.is_success is False
        assert result.error_kind == BatchErrorKind.INSUFFICIENT_VALUE
        assert fake_settlement.calls == []

    def test_exact_value_succeeds(self, executor, fake_settlement, native_token, sender, three_recipients):
        result = executor.execute(sender, three_recipients, native_token, value="10.0")

        assert result.is_success is True
        assert result.transaction_reference == TX_HASH
        assert result.completion.recipient_count == 3
        assert result.completion.total_amount == Decimal("10.0")
        assert result.completion.token_address is None
        assert fake_settlement.calls == [
            (
                "native",
                sender,
                [r.address for r in three_recipients],
                [2500000000000000000, 3500000000000000000, 4000000000000000000],
                10 * ETHER,
            )
        ]

    def test_value_defaults_to_total(self, executor, fake_settlement, native_token, sender, three_recipients):
        result = executor.execute(sender, three_recipients, native_token)

        assert result.is_success is True
        assert fake_settlement.calls[0][4] == 10 * ETHER

    def test_excess_value_is_sent_for_refund(self, executor, fake_settlement, native_token, sender, three_recipients):
        result = executor.execute(sender, three_recipients, native_token, value="11")

        assert result.is_success is True
        assert fake_settlement.calls[0][4] == 11 * ETHER

    def test_excess_reported_in_completion_log(self, executor, native_token, sender, three_recipients, caplog):
        with caplog.at_level(logging.INFO, logger="multisend.features.batch.executor"):
            executor.execute(sender, three_recipients, native_token, value="11")

        completion = caplog.records[-1]
        assert completion.getMessage().startswith("Batch settled")
        assert completion.context["excess"] == ETHER
        assert completion.context["refunded"] == ETHER

    def test_excess_value_without_refunds(self, fake_settlement, native_token, sender, three_recipients):
        executor = BatchExecutor(fake_settlement, refund_excess_value=False)
        result = executor.execute(sender, three_recipients, native_token, value="11")

        assert result.error_kind == BatchErrorKind.TOTAL_AMOUNT_MISMATCH
        assert fake_settlement.calls == []

    def test_unparseable_value(self, executor, native_token, sender, three_recipients):
        result = executor.execute(sender, three_recipients, native_token, value="abc")
        assert result.error_kind == BatchErrorKind.INSUFFICIENT_VALUE

    def test_native_balance_below_value(self, executor, sender, three_recipients):
        token = TokenDescriptor.native(balance="9.5")
        result = executor.execute(sender, three_recipients, token)

        assert result.error_kind == BatchErrorKind.INSUFFICIENT_BALANCE
        assert result.error_details["shortfall"] == "0.5"


@pytest.mark.unit
class TestTokenBatch:
    def test_success(self, executor, fake_settlement, usdc_token, sender, three_recipients):
        result = executor.execute(sender, three_recipients, usdc_token)

        assert result.is_success is True
        kind, actor, token, addresses, amounts, total = fake_settlement.calls[0]
        assert kind == "token"
        assert token == usdc_token.address
        assert amounts == [2_500_000, 3_500_000, 4_000_000]
        assert total == 10_000_000
        assert result.completion.token_address == usdc_token.address
        assert result.completion.token_symbol == "USDC"

    def test_insufficient_balance_names_shortfall(self, executor, fake_settlement, sender, three_recipients):
        token = TokenDescriptor(
            symbol="USDC", name="USD Coin", decimals=6, address="0x" + "c" * 40, balance="5"
        )
        result = executor.execute(sender, three_recipients, token)

        assert result.error_kind == BatchErrorKind.INSUFFICIENT_BALANCE
        assert result.error_details == {
            "needed": "10",
            "available": "5",
            "shortfall": "5",
        }
        assert fake_settlement.calls == []

    def test_balance_truncated_not_rounded(self, executor, sender, three_recipients):
        token = TokenDescriptor(
            symbol="USDC",
            name="USD Coin",
            decimals=6,
            address="0x" + "c" * 40,
            balance="9.9999999",
        )
        result = executor.execute(sender, three_recipients, token)

        assert result.error_kind == BatchErrorKind.INSUFFICIENT_BALANCE
        assert result.error_details["shortfall"] == "0.000001"

    def test_unknown_balance_skips_local_check(self, executor, fake_settlement, sender, three_recipients):
        token = TokenDescriptor(symbol="DAI", name="Dai", decimals=18, address="0x" + "d" * 40)
        result = executor.execute(sender, three_recipients, token)

        assert result.is_success is True
        assert len(fake_settlement.calls) == 1

    def test_precision_overflow(self, executor, fake_settlement, usdc_token, sender):
        result = executor.execute(sender, _recipients("1.0000001"), usdc_token)

        assert result.error_kind == BatchErrorKind.PRECISION_OVERFLOW
        assert fake_settlement.calls == []

    def test_zero_decimal_token(self, executor, fake_settlement, sender):
        token = TokenDescriptor(symbol="NFTX", name="Whole", decimals=0, address="0x" + "e" * 40)
        assert executor.execute(sender, _recipients("1.5"), token).error_kind == (
            BatchErrorKind.PRECISION_OVERFLOW
        )
        assert executor.execute(sender, _recipients("2", "3"), token).is_success is True

    def test_remainder_beyond_hundred_digits_rejected(self, executor, fake_settlement, native_token, sender):
        amount = "1." + "0" * 110 + "1"
        result = executor.execute(sender, _recipients(amount), native_token)

        assert result.error_kind == BatchErrorKind.PRECISION_OVERFLOW
        assert fake_settlement.calls == []

    def test_long_trailing_zeros_are_exact(self, executor, fake_settlement, native_token, sender):
        result = executor.execute(sender, _recipients("1." + "0" * 120), native_token)

        assert result.is_success is True
        assert fake_settlement.calls[0][3] == [ETHER]


@pytest.mark.unit
class TestPreconditionOrder:
    def test_no_token_checked_first(self, executor):
        result = executor.execute("0x" + "a" * 40, [], None)
        assert result.error_kind == BatchErrorKind.NO_TOKEN_SELECTED

    def test_no_recipients(self, executor, native_token, sender):
        result = executor.execute(sender, [], native_token)
        assert result.error_kind == BatchErrorKind.NO_RECIPIENTS

    def test_too_many_recipients_before_settlement(self, fake_settlement, native_token, sender, three_recipients):
        executor = BatchExecutor(fake_settlement, max_recipients=2)
        result = executor.execute(sender, three_recipients, native_token)

        assert result.error_kind == BatchErrorKind.TOO_MANY_RECIPIENTS
        assert result.error_details == {"count": 3, "max": 2}
        assert fake_settlement.calls == []

    def test_default_limit_is_200(self, executor, fake_settlement, native_token, sender):
        assert executor.execute(sender, _recipients(*["1"] * 200), native_token).is_success
        result = executor.execute(sender, _recipients(*["1"] * 201), native_token)
        assert result.error_kind == BatchErrorKind.TOO_MANY_RECIPIENTS

    def test_too_many_reported_before_invalid_entries(self, fake_settlement, native_token, sender):
        executor = BatchExecutor(fake_settlement, max_recipients=1)
        result = executor.execute(sender, _recipients("", "abc"), native_token)
        assert result.error_kind == BatchErrorKind.TOO_MANY_RECIPIENTS

    def test_empty_amount_is_invalid_at_execution(self, executor, native_token, sender):
        recipients = _recipients("1", "")
        result = executor.execute(sender, recipients, native_token)

        assert result.error_kind == BatchErrorKind.INVALID_RECIPIENT
        assert result.error_details["index"] == 1
        assert result.error_details["id"] == recipients[1].id
        assert "no amount" in result.error_message

    def test_invalid_address_named(self, executor, native_token, sender):
        recipients = [Recipient.create("0x123", "1")]
        result = executor.execute(sender, recipients, native_token)

        assert result.error_kind == BatchErrorKind.INVALID_RECIPIENT
        assert "0x123" in result.error_message
        assert "invalid address" in result.error_message

    def test_invalid_amount_named(self, executor, native_token, sender):
        result = executor.execute(sender, _recipients("-1"), native_token)
        assert result.error_kind == BatchErrorKind.INVALID_RECIPIENT
        assert "'-1'" in result.error_message

    def test_case_differing_duplicates(self, executor, fake_settlement, native_token, sender):
        address = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0"
        recipients = [
            Recipient.create(address, "1"),
            Recipient.create(address.lower(), "2"),
        ]
        result = executor.execute(sender, recipients, native_token)

        assert result.error_kind == BatchErrorKind.DUPLICATE_ADDRESS
        assert result.error_details["duplicates"] == [address.lower()]
        assert fake_settlement.calls == []

    def test_accepts_plain_candidates(self, executor, native_token, sender):
        candidates = [RecipientCandidate("0x" + "1" * 40, "1")]
        assert executor.execute(sender, candidates, native_token).is_success is True

    def test_blank_actor_rejected(self, executor, native_token, three_recipients):
        with pytest.raises(ValueError):
            executor.execute("  ", three_recipients, native_token)

    def test_prepare_raises_batch_error(self, executor, native_token):
        with pytest.raises(BatchError) as exc_info:
            executor.prepare([], native_token)
        assert exc_info.value.kind == BatchErrorKind.NO_RECIPIENTS

    def test_prepare_returns_base_units(self, executor, usdc_token, three_recipients):
        prepared = executor.prepare(three_recipients, usdc_token)

        assert prepared.recipient_count == 3
        assert prepared.total_base_units == 10_000_000
        assert prepared.value_base_units == 0


@pytest.mark.unit
class TestDispatch:
    def test_on_dispatch_runs_before_settlement(self, executor, fake_settlement, native_token, sender, three_recipients):
        events = []
        fake_settlement.on_settle = lambda: events.append("settle")

        executor.execute(
            sender, three_recipients, native_token, on_dispatch=lambda: events.append("dispatch")
        )
        assert events == ["dispatch", "settle"]

    def test_on_dispatch_not_called_on_rejection(self, executor, native_token, sender):
        events = []
        executor.execute(sender, [], native_token, on_dispatch=lambda: events.append("dispatch"))
        assert events == []


@pytest.mark.unit
class TestSettlementFailures:
    def test_classified_error_passes_through(self, executor, fake_settlement, native_token, sender, three_recipients):
        fake_settlement.error = SettlementError(
            kind=BatchErrorKind.REFUND_FAILED,
            message="Refund of excess value failed",
            reference="0xfeed",
        )
        result = executor.execute(sender, three_recipients, native_token, value="12")

        assert result.error_kind == BatchErrorKind.REFUND_FAILED
        assert result.transaction_reference == "0xfeed"
        assert result.completion is None

    def test_timeout(self, executor, fake_settlement, native_token, sender, three_recipients):
        fake_settlement.error = TimeoutError("no receipt")
        result = executor.execute(sender, three_recipients, native_token)

        assert result.error_kind == BatchErrorKind.SETTLEMENT_TIMEOUT
        assert "no receipt" in result.error_message

    def test_unexpected_error_is_rejection(self, executor, fake_settlement, native_token, sender, three_recipients):
        fake_settlement.error = RuntimeError("execution reverted")
        result = executor.execute(sender, three_recipients, native_token)

        assert result.error_kind == BatchErrorKind.SETTLEMENT_REJECTED
        assert "execution reverted" in result.error_message

    def test_no_retry(self, executor, fake_settlement, native_token, sender, three_recipients):
        fake_settlement.error = RuntimeError("boom")
        executor.execute(sender, three_recipients, native_token)
        assert len(fake_settlement.calls) == 1

    def test_settled_total_mismatch(self, executor, fake_settlement, native_token, sender, three_recipients):
        fake_settlement.settled_total = 1
        result = executor.execute(sender, three_recipients, native_token)

        assert result.error_kind == BatchErrorKind.TOTAL_AMOUNT_MISMATCH
        assert result.transaction_reference == TX_HASH


@pytest.mark.unit
class TestCompletion:
    def test_single_record_per_success(self, fake_settlement, native_token, sender, three_recipients):
        records = []
        executor = BatchExecutor(fake_settlement, on_completion=records.append)

        executor.execute(sender, three_recipients, native_token)

        assert len(records) == 1
        assert isinstance(records[0], CompletionRecord)
        assert records[0].actor == sender
        assert records[0].reference == TX_HASH

    def test_no_record_on_failure(self, fake_settlement, native_token, sender, three_recipients):
        records = []
        executor = BatchExecutor(fake_settlement)
        executor.add_completion_listener(records.append)
        fake_settlement.error = RuntimeError("boom")

        executor.execute(sender, three_recipients, native_token)
        assert records == []

    def test_listener_error_does_not_fail_batch(self, fake_settlement, native_token, sender, three_recipients):
        def broken(record):
            raise RuntimeError("listener failed")

        executor = BatchExecutor(fake_settlement, on_completion=broken)
        assert executor.execute(sender, three_recipients, native_token).is_success is True


@pytest.mark.unit
class TestReentrancy:
    def test_nested_call_from_same_actor(self, executor, fake_settlement, native_token, sender, three_recipients):
        nested = []

        def reenter():
            if not nested:
                nested.append(executor.execute(sender, three_recipients, native_token))

        fake_settlement.on_settle = reenter
        result = executor.execute(sender, three_recipients, native_token)

        assert result.is_success is True
        assert nested[0].error_kind == BatchErrorKind.REENTRANT_CALL
        assert len(fake_settlement.calls) == 1

    def test_actor_match_is_case_insensitive(self, executor, fake_settlement, native_token, sender, three_recipients):
        nested = []

        def reenter():
            if not nested:
                nested.append(executor.execute(sender.upper().replace("0X", "0x"), three_recipients, native_token))

        fake_settlement.on_settle = reenter
        executor.execute(sender, three_recipients, native_token)
        assert nested[0].error_kind == BatchErrorKind.REENTRANT_CALL

    def test_other_actor_not_blocked(self, executor, fake_settlement, native_token, sender, three_recipients):
        nested = []

        def other():
            fake_settlement.on_settle = None
            nested.append(executor.execute("0x" + "b" * 40, three_recipients, native_token))

        fake_settlement.on_settle = other
        executor.execute(sender, three_recipients, native_token)
        assert nested[0].is_success is True

    def test_guard_released_after_attempt(self, executor, fake_settlement, native_token, sender, three_recipients):
        fake_settlement.error = RuntimeError("boom")
        executor.execute(sender, three_recipients, native_token)
        fake_settlement.error = None

        assert executor.execute(sender, three_recipients, native_token).is_success is True
        assert executor.guard.is_active(sender) is False

    def test_concurrent_attempt_is_rejected_immediately(self, executor, fake_settlement, native_token, sender, three_recipients):
        entered = threading.Event()
        release = threading.Event()

        def block():
            entered.set()
            release.wait(timeout=5)

        fake_settlement.on_settle = block
        results = {}
        worker = threading.Thread(
            target=lambda: results.setdefault(
                "first", executor.execute(sender, three_recipients, native_token)
            )
        )
        worker.start()
        assert entered.wait(timeout=5)

        fake_settlement.on_settle = None
        second = executor.execute(sender, three_recipients, native_token)
        release.set()
        worker.join(timeout=5)

        assert second.error_kind == BatchErrorKind.REENTRANT_CALL
        assert results["first"].is_success is True
