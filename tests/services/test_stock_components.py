"""
The building blocks under the engines: InventoryStore, TimelineRecorder,
StockMovement and BalanceLedger, driven directly inside the test session.
"""

from decimal import Decimal

import pytest

from pharmacy_kernel.domain.dtos import NewBatchFields
from pharmacy_kernel.domain.enums import (
    AccountTransactionType,
    LedgerEntryType,
    MovementType,
    PartyType,
)
from pharmacy_kernel.domain.settings import EngineSettings
from pharmacy_kernel.exceptions import (
    InsufficientStockError,
    StockInvariantError,
    ValidationError,
)
from pharmacy_kernel.services.balance_ledger import BalanceLedger
from pharmacy_kernel.services.inventory_store import InventoryStore
from pharmacy_kernel.services.sequence_service import SequenceAllocator
from pharmacy_kernel.services.stock_movement import StockMovement
from pharmacy_kernel.services.timeline_recorder import TimelineRecorder


@pytest.fixture
def store(session):
    return InventoryStore(session)


@pytest.fixture
def recorder(session):
    return TimelineRecorder(session, SequenceAllocator(session))


@pytest.fixture
def movement(store, recorder):
    return StockMovement(store, recorder)


def _fields(batch_number="LOT-1"):
    return NewBatchFields(
        batch_number=batch_number,
        expiry="10/27",
        mrp=Decimal("15"),
        gst_percent=Decimal("12"),
        purchase_rate=Decimal("8"),
        sale_rate=Decimal("11"),
    )


class TestInventoryStore:
    def test_positive_delta_creates_batch(self, store, make_product, tenant_id, test_actor_id):
        product = make_product()

        result = store.apply_delta(
            tenant_id, product.id, None, 40, new_batch_fields=_fields(), actor_id=test_actor_id
        )

        assert result.batch_created is True
        assert result.delta == 40
        assert result.batch_quantity == 40
        assert result.product_quantity == 40

    def test_same_batch_number_reuses_batch(self, store, make_product, tenant_id, test_actor_id):
        product = make_product()
        first = store.apply_delta(
            tenant_id, product.id, None, 10, new_batch_fields=_fields(), actor_id=test_actor_id
        )

        second = store.apply_delta(
            tenant_id, product.id, None, 5, new_batch_fields=_fields(), actor_id=test_actor_id
        )

        assert second.batch_created is False
        assert second.batch_id == first.batch_id
        assert second.batch_quantity == 15

    def test_negative_result_is_an_invariant_error(
        self, store, make_product, tenant_id, test_actor_id
    ):
        product = make_product()
        created = store.apply_delta(
            tenant_id, product.id, None, 3, new_batch_fields=_fields(), actor_id=test_actor_id
        )

        with pytest.raises(StockInvariantError):
            store.apply_delta(tenant_id, product.id, created.batch_id, -4)

    def test_new_batch_with_negative_stock_rejected(self, store, make_product, tenant_id):
        product = make_product()

        with pytest.raises(StockInvariantError):
            store.apply_delta(tenant_id, product.id, None, -1, new_batch_fields=_fields())

    def test_batch_or_fields_required(self, store, make_product, tenant_id):
        product = make_product()

        with pytest.raises(ValidationError):
            store.apply_delta(tenant_id, product.id, None, 1)


class TestStockMovement:
    def test_move_records_resulting_balances(
        self, movement, make_product, stock_selector, tenant_id, test_actor_id
    ):
        product = make_product()

        movement.move(
            tenant_id, test_actor_id, product.id, None, 12, MovementType.IMPORT,
            new_batch_fields=_fields(),
        )
        result = movement.move(
            tenant_id, test_actor_id, product.id, None, 8, MovementType.PURCHASE,
            new_batch_fields=_fields("LOT-2"),
        )

        entries = stock_selector.timeline(tenant_id, product.id)
        assert [e.balance for e in entries] == [12, 20]
        assert entries[-1].batch_balance == result.batch_quantity == 8

    def test_outgoing_move_checks_availability(
        self, movement, make_product, tenant_id, test_actor_id
    ):
        product = make_product()
        created = movement.move(
            tenant_id, test_actor_id, product.id, None, 2, MovementType.IMPORT,
            new_batch_fields=_fields(),
        )

        with pytest.raises(InsufficientStockError) as exc_info:
            movement.move(
                tenant_id, test_actor_id, product.id, created.batch_id, -3, MovementType.SALE
            )

        assert exc_info.value.requested == 3
        assert exc_info.value.available == 2


class TestTimelineRecorder:
    def test_wrong_resulting_balance_rejected(
        self, recorder, make_product, tenant_id, test_actor_id
    ):
        product = make_product()

        with pytest.raises(StockInvariantError):
            recorder.record(
                tenant_id, test_actor_id, product.id, None, MovementType.ADJUSTMENT, 5, 7
            )

    def test_zero_movement_rejected(self, recorder, make_product, tenant_id, test_actor_id):
        product = make_product()

        with pytest.raises(ValidationError):
            recorder.record(
                tenant_id, test_actor_id, product.id, None, MovementType.ADJUSTMENT, 0, 0
            )

    def test_account_row_checked_against_opening_balance(
        self, recorder, make_account, tenant_id, test_actor_id
    ):
        account = make_account(opening_balance=Decimal("100"))

        with pytest.raises(ValidationError):
            recorder.record_account_transaction(
                tenant_id, test_actor_id, account.id, Decimal("50"), Decimal("50")
            )

    def test_account_row_checked_against_previous_row(
        self, recorder, make_account, tenant_id, test_actor_id
    ):
        account = make_account(opening_balance=Decimal("100"))
        recorder.record_account_transaction(
            tenant_id, test_actor_id, account.id, Decimal("50"), Decimal("150")
        )

        with pytest.raises(ValidationError):
            recorder.record_account_transaction(
                tenant_id, test_actor_id, account.id, Decimal("-20"), Decimal("110")
            )


class TestBalanceLedger:
    @pytest.fixture
    def ledger(self, session, recorder):
        return BalanceLedger(session, recorder)

    def test_post_party_moves_balance_and_reconciles(
        self, ledger, make_party, party_service, ledger_selector, tenant_id, test_actor_id
    ):
        party = make_party(PartyType.CUSTOMER)

        ledger.post_party(
            tenant_id, test_actor_id, party.id, LedgerEntryType.SALE_INVOICE,
            debit=Decimal("500"),
        )
        ledger.post_party(
            tenant_id, test_actor_id, party.id, LedgerEntryType.PAYMENT_IN,
            credit=Decimal("120"),
        )

        assert party_service.get(tenant_id, party.id).current_balance == Decimal("380")
        assert [e.balance for e in ledger_selector.party_ledger(tenant_id, party.id)] == [
            Decimal("500"),
            Decimal("380"),
        ]
        assert ledger.reconcile_party(tenant_id, party.id).is_balanced

    def test_zero_post_records_nothing(self, ledger, make_party, ledger_selector, tenant_id, test_actor_id):
        party = make_party(PartyType.DISTRIBUTOR)

        assert ledger.post_party(tenant_id, test_actor_id, party.id, LedgerEntryType.PAYMENT_OUT) is None
        assert ledger_selector.party_ledger(tenant_id, party.id) == []

    def test_post_account_direction(
        self, ledger, make_account, account_service, ledger_selector, tenant_id, test_actor_id
    ):
        account = make_account(opening_balance=Decimal("100"))

        ledger.post_account(tenant_id, test_actor_id, account.id, Decimal("50"))
        ledger.post_account(tenant_id, test_actor_id, account.id, Decimal("-30"))

        statement = ledger_selector.account_statement(tenant_id, account.id)
        assert [t.transaction_type for t in statement] == [
            AccountTransactionType.CREDIT,
            AccountTransactionType.DEBIT,
        ]
        assert account_service.get(tenant_id, account.id).balance == Decimal("120")
        assert ledger.reconcile_account(tenant_id, account.id).is_balanced

    def test_overdraw_rejected_when_disallowed(
        self, session, recorder, make_account, tenant_id, test_actor_id
    ):
        strict = BalanceLedger(
            session, recorder, EngineSettings(allow_negative_account_balance=False)
        )
        account = make_account(opening_balance=Decimal("10"))

        with pytest.raises(ValidationError):
            strict.post_account(tenant_id, test_actor_id, account.id, Decimal("-11"))
