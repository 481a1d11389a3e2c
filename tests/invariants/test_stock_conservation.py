"""
Property tests: stock conservation and running balances hold after any
sequence of purchases, sales, edits, returns and deletions.

After every generated history:
- Product.quantity == sum of its batches == last timeline balance
- every timeline row's balance follows from the row before it
- no batch is negative
- the customer's and distributor's balances reconcile with their ledgers
"""

from decimal import Decimal
from uuid import uuid4

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from pharmacy_kernel.domain.dtos import (
    CreateInvoiceCommand,
    CreateReturnCommand,
    EditInvoiceCommand,
    LineItemInput,
    ReturnLineInput,
)
from pharmacy_kernel.domain.enums import InvoiceType, PartyType
from pharmacy_kernel.exceptions import (
    ConflictingReturnError,
    InsufficientStockError,
    ReturnQuantityExceededError,
)

_EXPECTED_REJECTIONS = (InsufficientStockError, ReturnQuantityExceededError, ConflictingReturnError)

operations = st.lists(
    st.one_of(
        st.tuples(st.just("buy"), st.integers(1, 40), st.integers(0, 5), st.sampled_from(["L1", "L2"])),
        st.tuples(st.just("sell"), st.integers(1, 40), st.sampled_from(["L1", "L2"])),
        st.tuples(st.just("edit"), st.integers(1, 40)),
        st.tuples(st.just("return"), st.integers(1, 10)),
        st.tuples(st.just("delete")),
    ),
    min_size=1,
    max_size=12,
)


class _History:
    """Drives the services for one generated example."""

    def __init__(self, engine, returns, stock, tenant_id, actor_id, product_id, customer_id, distributor_id):
        self.engine = engine
        self.returns = returns
        self.stock = stock
        self.tenant_id = tenant_id
        self.actor_id = actor_id
        self.product_id = product_id
        self.customer_id = customer_id
        self.distributor_id = distributor_id
        self.invoices = []

    def _batch_id(self, number):
        for batch in self.stock.batches(self.tenant_id, self.product_id):
            if batch.batch_number == number:
                return batch.id
        return None

    def buy(self, quantity, free, number):
        line = LineItemInput(
            product_id=self.product_id,
            batch_number=number,
            quantity=quantity,
            free=free,
            purchase_rate=Decimal("5"),
            sale_rate=Decimal("8"),
        )
        self.invoices.append(
            self.engine.create_invoice(
                self.tenant_id,
                self.actor_id,
                CreateInvoiceCommand(
                    invoice_type=InvoiceType.PURCHASE, party_id=self.distributor_id, lines=(line,)
                ),
            )
        )

    def _sale_line(self, quantity, batch_id):
        return LineItemInput(product_id=self.product_id, batch_id=batch_id, quantity=quantity)

    def sell(self, quantity, number):
        batch_id = self._batch_id(number)
        if batch_id is None:
            return
        self.invoices.append(
            self.engine.create_invoice(
                self.tenant_id,
                self.actor_id,
                CreateInvoiceCommand(
                    invoice_type=InvoiceType.SALE,
                    party_id=self.customer_id,
                    lines=(self._sale_line(quantity, batch_id),),
                ),
            )
        )

    def edit(self, quantity):
        if not self.invoices:
            return
        invoice = self.invoices[-1]
        line = invoice.lines[0]
        if invoice.invoice_type is InvoiceType.PURCHASE:
            new_line = LineItemInput(
                product_id=self.product_id,
                batch_number=line.batch_number,
                quantity=quantity,
                purchase_rate=Decimal("5"),
                sale_rate=Decimal("8"),
            )
        else:
            new_line = self._sale_line(quantity, line.batch_id)
        self.invoices[-1] = self.engine.edit_invoice(
            self.tenant_id, self.actor_id, EditInvoiceCommand(invoice_id=invoice.id, lines=(new_line,))
        )

    def return_(self, quantity):
        if not self.invoices:
            return
        invoice = self.invoices[-1]
        self.returns.create_return(
            self.tenant_id,
            self.actor_id,
            CreateReturnCommand(
                original_invoice_id=invoice.id,
                lines=(ReturnLineInput(invoice_line_id=invoice.lines[0].id, quantity=quantity),),
            ),
        )

    def delete(self):
        if not self.invoices:
            return
        self.engine.delete_invoice(self.tenant_id, self.actor_id, self.invoices[-1].id)
        self.invoices.pop()

    def run(self, op):
        name, *args = op
        handler = self.return_ if name == "return" else getattr(self, name)
        try:
            handler(*args)
        except _EXPECTED_REJECTIONS:
            pass


@settings(
    max_examples=40,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)
@given(ops=operations)
def test_conservation_after_any_history(
    ops,
    invoice_engine,
    return_service,
    product_service,
    party_service,
    stock_selector,
    ledger_selector,
    tenant_id,
    test_actor_id,
):
    product = product_service.create_product(
        tenant_id, test_actor_id, f"Prop {uuid4().hex[:8]}", gst_percent=Decimal("12")
    )
    customer = party_service.create_party(tenant_id, test_actor_id, PartyType.CUSTOMER, "Prop Customer")
    distributor = party_service.create_party(tenant_id, test_actor_id, PartyType.DISTRIBUTOR, "Prop Supplier")
    history = _History(
        invoice_engine,
        return_service,
        stock_selector,
        tenant_id,
        test_actor_id,
        product.id,
        customer.id,
        distributor.id,
    )

    for op in ops:
        history.run(op)

    conservation = stock_selector.check_conservation(tenant_id, product.id)[0]
    assert conservation.is_consistent, conservation
    assert stock_selector.verify_timeline(tenant_id, product.id) == []
    assert all(b.quantity >= 0 for b in stock_selector.batches(tenant_id, product.id))
    assert ledger_selector.reconcile_party(tenant_id, customer.id).is_balanced
    assert ledger_selector.reconcile_party(tenant_id, distributor.id).is_balanced
