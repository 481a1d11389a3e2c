"""
Tests for PaymentService -- standalone payments, allocation, cheques.

Covers:
- create_payment(): account and party effects, bill allocation in order,
  unallocated remainder kept as an advance
- cheque payments stay PENDING without account effect until clear_cheque()
- delete_payment(): reverses account, party and allocations
- payments owned by an invoice cannot be deleted directly
- invoice delete/cancel detach standalone allocations
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from pharmacy_kernel.domain.dtos import CreatePaymentCommand, PaymentInput
from pharmacy_kernel.domain.enums import (
    AccountTransactionType,
    LedgerEntryType,
    PaymentMethod,
    PaymentRecordStatus,
    PaymentStatus,
    PaymentType,
)
from pharmacy_kernel.exceptions import AccountNotFoundError, InvalidInvoiceStateError, ValidationError


@pytest.fixture
def two_bills(stocked_product, customer, sell):
    product, batch = stocked_product
    first = sell(product.id, batch.id, 10, party_id=customer.id)  # 112.00
    second = sell(product.id, batch.id, 20, party_id=customer.id)  # 224.00
    return first, second


class TestCreatePayment:
    def test_payment_in_credits_account_and_party(
        self, customer, make_account, payment_service, account_service, party_service, ledger_selector, tenant_id, test_actor_id
    ):
        account = make_account(opening_balance=Decimal("1000"))

        payment = payment_service.create_payment(
            tenant_id,
            test_actor_id,
            CreatePaymentCommand(
                payment_type=PaymentType.IN,
                amount=Decimal("250"),
                method=PaymentMethod.UPI,
                party_id=customer.id,
                account_id=account.id,
            ),
        )

        assert payment.payment_number == "PAY/24/1"
        assert payment.status is PaymentRecordStatus.COMPLETED
        assert account_service.get(tenant_id, account.id).balance == Decimal("1250")
        assert party_service.get(tenant_id, customer.id).current_balance == Decimal("-250")
        statement = ledger_selector.account_statement(tenant_id, account.id)
        assert statement[-1].transaction_type is AccountTransactionType.CREDIT
        assert statement[-1].payment_number == "PAY/24/1"

    def test_payment_out_debits_account(
        self, distributor, make_account, payment_service, account_service, party_service, tenant_id, test_actor_id
    ):
        account = make_account("Bank", opening_balance=Decimal("1000"))

        payment_service.create_payment(
            tenant_id,
            test_actor_id,
            CreatePaymentCommand(
                payment_type=PaymentType.OUT,
                amount=Decimal("400"),
                method=PaymentMethod.BANK,
                party_id=distributor.id,
                account_id=account.id,
            ),
        )

        assert account_service.get(tenant_id, account.id).balance == Decimal("600")
        assert party_service.get(tenant_id, distributor.id).current_balance == Decimal("400")

    def test_settles_bills_in_order_and_keeps_advance(
        self, two_bills, customer, make_account, payment_service, invoice_selector, tenant_id, test_actor_id
    ):
        first, second = two_bills
        account = make_account()

        payment = payment_service.create_payment(
            tenant_id,
            test_actor_id,
            CreatePaymentCommand(
                payment_type=PaymentType.IN,
                amount=Decimal("400"),
                method=PaymentMethod.CASH,
                party_id=customer.id,
                account_id=account.id,
                bill_ids=(first.id, second.id),
            ),
        )

        assert invoice_selector.get(tenant_id, first.id).payment_status is PaymentStatus.PAID
        second_after = invoice_selector.get(tenant_id, second.id)
        assert second_after.payment_status is PaymentStatus.PAID
        assert payment.allocated_amount == Decimal("336.00")
        assert payment.unallocated_amount == Decimal("64.00")

    def test_partial_settlement_leaves_bill_due(
        self, two_bills, customer, make_account, payment_service, invoice_selector, tenant_id, test_actor_id
    ):
        first, second = two_bills
        account = make_account()

        payment_service.create_payment(
            tenant_id,
            test_actor_id,
            CreatePaymentCommand(
                payment_type=PaymentType.IN,
                amount=Decimal("150"),
                method=PaymentMethod.CASH,
                party_id=customer.id,
                account_id=account.id,
                bill_ids=(first.id, second.id),
            ),
        )

        assert invoice_selector.get(tenant_id, first.id).amount_due == Decimal("0")
        second_after = invoice_selector.get(tenant_id, second.id)
        assert second_after.amount_paid == Decimal("38.00")
        assert second_after.payment_status is PaymentStatus.DUE

    def test_payment_in_cannot_settle_purchase(
        self, make_product, distributor, purchase, make_account, payment_service, tenant_id, test_actor_id
    ):
        product = make_product()
        bill = purchase(product.id, distributor.id, "B1", 10)
        account = make_account()

        with pytest.raises(ValidationError):
            payment_service.create_payment(
                tenant_id,
                test_actor_id,
                CreatePaymentCommand(
                    payment_type=PaymentType.IN,
                    amount=Decimal("10"),
                    method=PaymentMethod.CASH,
                    party_id=distributor.id,
                    account_id=account.id,
                    bill_ids=(bill.id,),
                ),
            )

    def test_non_cheque_payment_needs_account(self, customer, payment_service, tenant_id, test_actor_id):
        with pytest.raises(ValidationError):
            payment_service.create_payment(
                tenant_id,
                test_actor_id,
                CreatePaymentCommand(
                    payment_type=PaymentType.IN,
                    amount=Decimal("10"),
                    method=PaymentMethod.CASH,
                    party_id=customer.id,
                ),
            )

    def test_zero_amount_rejected(self):
        with pytest.raises(ValidationError):
            CreatePaymentCommand(payment_type=PaymentType.IN, amount=Decimal("0"), method=PaymentMethod.CASH)


class TestCheques:
    def test_cheque_is_pending_until_cleared(
        self, customer, make_account, payment_service, account_service, party_service, tenant_id, test_actor_id
    ):
        account = make_account("Bank", opening_balance=Decimal("100"))

        cheque = payment_service.create_payment(
            tenant_id,
            test_actor_id,
            CreatePaymentCommand(
                payment_type=PaymentType.IN,
                amount=Decimal("500"),
                method=PaymentMethod.CHEQUE,
                party_id=customer.id,
                cheque_number="004512",
            ),
        )

        assert cheque.status is PaymentRecordStatus.PENDING
        assert account_service.get(tenant_id, account.id).balance == Decimal("100")
        assert party_service.get(tenant_id, customer.id).current_balance == Decimal("-500")

        cleared = payment_service.clear_cheque(tenant_id, test_actor_id, cheque.id, account.id)

        assert cleared.status is PaymentRecordStatus.COMPLETED
        assert cleared.account_id == account.id
        assert account_service.get(tenant_id, account.id).balance == Decimal("600")

        with pytest.raises(ValidationError):
            payment_service.clear_cheque(tenant_id, test_actor_id, cheque.id, account.id)

    def test_deleting_pending_cheque_leaves_account_untouched(
        self, customer, make_account, payment_service, account_service, party_service, tenant_id, test_actor_id
    ):
        account = make_account("Bank", opening_balance=Decimal("100"))
        cheque = payment_service.create_payment(
            tenant_id,
            test_actor_id,
            CreatePaymentCommand(
                payment_type=PaymentType.IN,
                amount=Decimal("500"),
                method=PaymentMethod.CHEQUE,
                party_id=customer.id,
                account_id=account.id,
            ),
        )

        payment_service.delete_payment(tenant_id, test_actor_id, cheque.id)

        assert account_service.get(tenant_id, account.id).balance == Decimal("100")
        assert party_service.get(tenant_id, customer.id).current_balance == Decimal("0")

    def test_cheque_with_unknown_account_rejected(
        self, customer, payment_service, invoice_selector, tenant_id, test_actor_id
    ):
        with pytest.raises(AccountNotFoundError):
            payment_service.create_payment(
                tenant_id,
                test_actor_id,
                CreatePaymentCommand(
                    payment_type=PaymentType.IN,
                    amount=Decimal("500"),
                    method=PaymentMethod.CHEQUE,
                    party_id=customer.id,
                    account_id=uuid4(),
                ),
            )

        assert invoice_selector.payments_for_party(tenant_id, customer.id) == []


class TestDeletePayment:
    def test_delete_reverses_allocations_and_balances(
        self,
        two_bills,
        customer,
        make_account,
        payment_service,
        account_service,
        invoice_selector,
        ledger_selector,
        tenant_id,
        test_actor_id,
    ):
        first, _ = two_bills
        account = make_account()
        payment = payment_service.create_payment(
            tenant_id,
            test_actor_id,
            CreatePaymentCommand(
                payment_type=PaymentType.IN,
                amount=Decimal("112"),
                method=PaymentMethod.CASH,
                party_id=customer.id,
                account_id=account.id,
                bill_ids=(first.id,),
            ),
        )

        payment_service.delete_payment(tenant_id, test_actor_id, payment.id)

        assert invoice_selector.get(tenant_id, first.id).payment_status is PaymentStatus.DUE
        assert account_service.get(tenant_id, account.id).balance == Decimal("0")
        assert ledger_selector.party_ledger(tenant_id, customer.id)[-1].entry_type is LedgerEntryType.PAYMENT_REVERSAL
        assert ledger_selector.reconcile_party(tenant_id, customer.id).is_balanced
        assert ledger_selector.reconcile_account(tenant_id, account.id).is_balanced

    def test_invoice_payment_cannot_be_deleted_directly(
        self, stocked_product, customer, make_account, sell, payment_service, invoice_selector, tenant_id, test_actor_id
    ):
        product, batch = stocked_product
        account = make_account()
        sell(
            product.id,
            batch.id,
            10,
            party_id=customer.id,
            payment=PaymentInput(amount=Decimal("50"), method=PaymentMethod.CASH, account_id=account.id),
        )
        owned = invoice_selector.payments_for_party(tenant_id, customer.id)[0]

        with pytest.raises(ValidationError):
            payment_service.delete_payment(tenant_id, test_actor_id, owned.id)


class TestAllocationsOnInvoiceChanges:
    def _settle(self, payment_service, tenant_id, actor_id, customer, account, bill, amount):
        return payment_service.create_payment(
            tenant_id,
            actor_id,
            CreatePaymentCommand(
                payment_type=PaymentType.IN,
                amount=amount,
                method=PaymentMethod.CASH,
                party_id=customer.id,
                account_id=account.id,
                bill_ids=(bill.id,),
            ),
        )

    def test_deleting_invoice_turns_allocation_into_advance(
        self, two_bills, customer, make_account, payment_service, invoice_engine, invoice_selector, account_service, tenant_id, test_actor_id
    ):
        first, _ = two_bills
        account = make_account()
        payment = self._settle(payment_service, tenant_id, test_actor_id, customer, account, first, Decimal("100"))

        invoice_engine.delete_invoice(tenant_id, test_actor_id, first.id)

        after = invoice_selector.get_payment(tenant_id, payment.id)
        assert after.allocated_amount == Decimal("0")
        assert after.unallocated_amount == Decimal("100")
        assert account_service.get(tenant_id, account.id).balance == Decimal("100")

    def test_cancelled_invoice_cannot_be_settled(
        self, two_bills, customer, make_account, payment_service, invoice_engine, tenant_id, test_actor_id
    ):
        first, _ = two_bills
        account = make_account()
        invoice_engine.cancel_invoice(tenant_id, test_actor_id, first.id)

        with pytest.raises(InvalidInvoiceStateError):
            self._settle(payment_service, tenant_id, test_actor_id, customer, account, first, Decimal("10"))
