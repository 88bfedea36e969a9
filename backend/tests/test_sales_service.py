"""Tests for the sale transaction engine."""

import re

import pytest

from imeipos.errors import (
    CustomerNotFoundError,
    ImeiFormatError,
    ImeiMismatchError,
    InvalidAmountError,
    InventoryUnitNotFoundError,
    PayloadError,
    SalesOrderNotFoundError,
    UnitStatusConflictError,
)
from imeipos.models import Customer, InventoryUnit, SalesOrder, StockMovement
from imeipos.services import sales_service, stock_ledger_service
from imeipos.services.sales_service import CartItem, CustomerInfo, SaleInput, compute_totals

IMEI_A = "123456789012345"
IMEI_B = "123456789012346"


def _unit(session, imei):
    return session.query(InventoryUnit).filter_by(imei=imei).one()


def test_compute_totals_rounds_tax_half_up():
    totals = compute_totals([35_000_000], tax_rate_bps=1000, discount=0, shipping=0)
    assert totals.tax == 3_500_000
    assert totals.total == 38_500_000

    # 15 * 0.5% = 0.075 -> 0; 100 * 0.5% = 0.5 -> 1
    assert compute_totals([15], tax_rate_bps=50, discount=0, shipping=0).tax == 0
    assert compute_totals([100], tax_rate_bps=50, discount=0, shipping=0).tax == 1


def test_compute_totals_identity():
    totals = compute_totals([10_000, 20_000], tax_rate_bps=800, discount=1_500, shipping=30_000)
    assert totals.subtotal == 30_000
    assert totals.tax == 2_400
    assert totals.total == totals.subtotal + totals.tax - totals.discount + totals.shipping


class TestSaleHappyPath:
    def test_single_unit_cash_sale_with_tax(self, db_session, variant, receive, sell):
        receive([IMEI_A])
        unit = _unit(db_session, IMEI_A)

        order = sell([unit], tax_rate_bps=1000)

        assert re.match(r"^SO-\d{8}-0001$", order.order_number)
        assert order.subtotal_amount == 35_000_000
        assert order.tax_amount == 3_500_000
        assert order.total_amount == 38_500_000
        assert order.status == "completed"
        assert order.payment_status == "paid"
        assert order.amount_received == 38_500_000
        assert order.change_given == 0
        assert order.staff_id == "staff-001"
        assert order.staff_name == "Tran Thi B"
        assert order.total_items == 1

        unit = _unit(db_session, IMEI_A)
        assert unit.status == "sold"
        assert unit.sales_order_id == order.id
        assert unit.actual_sale_price == 35_000_000
        assert unit.sale_date is not None
        assert unit.warranty_start_date is not None

    def test_sale_writes_negative_movement(self, db_session, variant, receive, sell):
        receive([IMEI_A])
        order = sell([_unit(db_session, IMEI_A)])

        movement = (
            db_session.query(StockMovement)
            .filter_by(imei=IMEI_A, movement_type="sale")
            .one()
        )
        assert movement.quantity_change == -1
        assert movement.previous_status == "in_stock"
        assert movement.new_status == "sold"
        assert movement.related_order_id == order.id
        assert movement.related_document_type == "sale"
        assert movement.from_location == "Main Store"
        assert movement.to_location == "Sold"
        assert _unit(db_session, IMEI_A).current_location == "Main Store"
        assert stock_ledger_service.ledger_presence(IMEI_A) == 0
        assert stock_ledger_service.reconcile() == []

    def test_lines_snapshot_unit_data(self, db_session, variant, receive, sell):
        receive([IMEI_A, IMEI_B], unit_cost=30_000_000)
        order = sell([_unit(db_session, IMEI_A), _unit(db_session, IMEI_B)])

        data = sales_service.get_sales_order_with_lines(order.id)
        assert [line["imei"] for line in data["lines"]] == [IMEI_A, IMEI_B]
        for line in data["lines"]:
            assert line["unit_cost"] == 30_000_000
            assert line["sale_price"] == 35_000_000
            assert line["quantity"] == 1
        assert data["subtotal_amount"] == 70_000_000

    def test_cash_change(self, db_session, variant, receive, sell):
        receive([IMEI_A])
        order = sell([_unit(db_session, IMEI_A)], amount_received=40_000_000)

        assert order.amount_received == 40_000_000
        assert order.change_given == 5_000_000

    def test_non_cash_records_exact_amount(self, db_session, variant, receive, sell):
        receive([IMEI_A])
        order = sell([_unit(db_session, IMEI_A)], payment_method="credit_card", amount_received=50_000_000)

        assert order.amount_received == order.total_amount
        assert order.change_given == 0

    def test_discount_and_shipping(self, db_session, variant, receive, sell):
        receive([IMEI_A])
        order = sell(
            [_unit(db_session, IMEI_A)],
            tax_rate_bps=1000,
            discount_amount=1_000_000,
            shipping_amount=50_000,
        )
        assert order.total_amount == 35_000_000 + 3_500_000 - 1_000_000 + 50_000

    def test_order_numbers_are_sequential(self, db_session, variant, receive, sell):
        receive([IMEI_A, IMEI_B])
        first = sell([_unit(db_session, IMEI_A)])
        second = sell([_unit(db_session, IMEI_B)])

        assert first.order_number.endswith("-0001")
        assert second.order_number.endswith("-0002")


class TestSaleRejections:
    def test_second_sale_of_same_unit(self, db_session, variant, receive, sell):
        receive([IMEI_A])
        unit = _unit(db_session, IMEI_A)
        sell([unit])

        with pytest.raises(UnitStatusConflictError) as exc:
            sell([unit])

        assert exc.value.details["status"] == "sold"
        assert db_session.query(SalesOrder).count() == 1
        assert db_session.query(StockMovement).filter_by(movement_type="sale").count() == 1

    def test_one_bad_line_aborts_whole_cart(self, db_session, variant, receive, sell):
        receive([IMEI_A, IMEI_B])
        sold = _unit(db_session, IMEI_B)
        sell([sold])

        with pytest.raises(UnitStatusConflictError):
            sell([_unit(db_session, IMEI_A), sold])

        assert _unit(db_session, IMEI_A).status == "in_stock"
        assert db_session.query(SalesOrder).count() == 1

    def test_imei_mismatch(self, db_session, variant, receive):
        receive([IMEI_A, IMEI_B])
        unit = _unit(db_session, IMEI_A)
        sale = SaleInput(items=[CartItem(inventory_unit_id=unit.id, imei=IMEI_B)], payment_method="cash")

        with pytest.raises(ImeiMismatchError):
            sales_service.create_sale_order(sale, actor_id="staff-001")
        assert _unit(db_session, IMEI_A).status == "in_stock"

    def test_unknown_unit(self, db_session, variant):
        sale = SaleInput(items=[CartItem(inventory_unit_id=9999, imei=IMEI_A)], payment_method="cash")
        with pytest.raises(InventoryUnitNotFoundError):
            sales_service.create_sale_order(sale, actor_id="staff-001")

    def test_malformed_cart_imei(self, db_session):
        sale = SaleInput(items=[CartItem(inventory_unit_id=1, imei="abc")], payment_method="cash")
        with pytest.raises(ImeiFormatError):
            sales_service.create_sale_order(sale, actor_id="staff-001")

    def test_empty_cart(self, db_session):
        with pytest.raises(PayloadError):
            sales_service.create_sale_order(SaleInput(items=[], payment_method="cash"), actor_id="staff-001")

    def test_same_unit_twice_in_cart(self, db_session, variant, receive, sell):
        receive([IMEI_A])
        unit = _unit(db_session, IMEI_A)
        with pytest.raises(PayloadError):
            sell([unit, unit])

    def test_unknown_payment_method(self, db_session, variant, receive, sell):
        receive([IMEI_A])
        with pytest.raises(PayloadError) as exc:
            sell([_unit(db_session, IMEI_A)], payment_method="barter")
        assert "cash" in exc.value.details["allowed"]

    def test_discount_larger_than_order(self, db_session, variant, receive, sell):
        receive([IMEI_A])
        with pytest.raises(InvalidAmountError):
            sell([_unit(db_session, IMEI_A)], discount_amount=40_000_000)
        assert _unit(db_session, IMEI_A).status == "in_stock"

    def test_insufficient_cash(self, db_session, variant, receive, sell):
        receive([IMEI_A])
        with pytest.raises(InvalidAmountError):
            sell([_unit(db_session, IMEI_A)], amount_received=1_000)
        assert db_session.query(SalesOrder).count() == 0

    @pytest.mark.parametrize("field, value", [
        ("tax_rate_bps", -1),
        ("tax_rate_bps", 10_001),
        ("discount_amount", -5),
        ("shipping_amount", 1.5),
    ])
    def test_amount_fields_are_checked(self, db_session, variant, receive, sell, field, value):
        receive([IMEI_A])
        with pytest.raises(InvalidAmountError):
            sell([_unit(db_session, IMEI_A)], **{field: value})

    def test_unknown_customer(self, db_session, variant, receive, sell):
        receive([IMEI_A])
        with pytest.raises(CustomerNotFoundError):
            sell([_unit(db_session, IMEI_A)], customer_id=9999)
        assert _unit(db_session, IMEI_A).status == "in_stock"


class TestCustomerAggregates:
    def test_existing_customer_aggregates(self, db_session, variant, receive, sell, customer):
        receive([IMEI_A, IMEI_B])
        sell([_unit(db_session, IMEI_A)], customer_id=customer.id)
        sell([_unit(db_session, IMEI_B)], customer_id=customer.id, discount_amount=1)

        customer = db_session.get(Customer, customer.id)
        assert customer.total_orders == 2
        assert customer.total_spent == 69_999_999
        # 34,999,999.5 rounds half up
        assert customer.average_order_value == 35_000_000
        assert customer.first_purchase_date is not None
        assert customer.last_purchase_date >= customer.first_purchase_date

    def test_walk_in_customer_created_from_phone(self, db_session, variant, receive, sell):
        receive([IMEI_A])
        order = sell(
            [_unit(db_session, IMEI_A)],
            customer_info=CustomerInfo(name="Le Van C", phone="090 111 2222"),
        )

        customer = db_session.query(Customer).filter_by(phone="0901112222").one()
        assert customer.name == "Le Van C"
        assert customer.total_orders == 1
        assert customer.total_spent == order.total_amount
        assert customer.acquisition_channel == "walk_in"
        assert order.customer_id == customer.id

    def test_walk_in_phone_reuses_customer(self, db_session, variant, receive, sell, customer):
        receive([IMEI_A])
        order = sell(
            [_unit(db_session, IMEI_A)],
            customer_info=CustomerInfo(name="Someone Else", phone="0901234567"),
        )

        assert order.customer_id == customer.id
        assert order.customer_name == "Nguyen Van A"
        assert db_session.query(Customer).count() == 1

    def test_walk_in_phone_without_name_stays_on_order(self, db_session, variant, receive, sell):
        receive([IMEI_A])
        order = sell([_unit(db_session, IMEI_A)], customer_info=CustomerInfo(phone="0933333333"))

        assert db_session.query(Customer).count() == 0
        assert order.customer_id is None
        assert order.customer_phone == "0933333333"

    def test_blank_name_creates_no_customer(self, db_session, variant, receive, sell):
        receive([IMEI_A])
        sell([_unit(db_session, IMEI_A)], customer_info=CustomerInfo(name="   ", phone="0933333333"))

        assert db_session.query(Customer).count() == 0

    def test_phone_alone_finds_existing_customer(self, db_session, variant, receive, sell, customer):
        receive([IMEI_A])
        order = sell([_unit(db_session, IMEI_A)], customer_info=CustomerInfo(phone="0901234567"))

        assert order.customer_id == customer.id
        assert db_session.get(Customer, customer.id).total_orders == 1

    def test_anonymous_sale_creates_no_customer(self, db_session, variant, receive, sell):
        receive([IMEI_A])
        order = sell([_unit(db_session, IMEI_A)], customer_info=CustomerInfo(name="No Phone"))

        assert order.customer_id is None
        assert order.customer_name == "No Phone"
        assert db_session.query(Customer).count() == 0

    def test_failed_sale_leaves_aggregates(self, db_session, variant, receive, sell, customer):
        receive([IMEI_A])
        with pytest.raises(InvalidAmountError):
            sell([_unit(db_session, IMEI_A)], customer_id=customer.id, amount_received=1)

        customer = db_session.get(Customer, customer.id)
        assert customer.total_orders == 0
        assert customer.total_spent == 0


class TestSalesQueries:
    def test_orders_for_customer(self, db_session, variant, receive, sell, customer):
        receive([IMEI_A, IMEI_B])
        sell([_unit(db_session, IMEI_A)], customer_id=customer.id)
        sell([_unit(db_session, IMEI_B)])

        orders = sales_service.list_sales_orders_for_customer(customer.id)
        assert len(orders) == 1

    def test_orders_for_unknown_customer(self, db_session):
        with pytest.raises(CustomerNotFoundError):
            sales_service.list_sales_orders_for_customer(9999)

    def test_unknown_order(self, db_session):
        with pytest.raises(SalesOrderNotFoundError):
            sales_service.get_sales_order(9999)
