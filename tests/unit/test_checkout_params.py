import pytest
from fastapi import HTTPException

from compass_billing.payments.checkout import (
    BELOW_MINIMUM_MESSAGE,
    build_session_params,
    parse_installment_weeks,
    parse_weekly_amount,
)
from compass_billing.payments.models import CheckoutRequest


def _request(mode="payment", metadata=None, line_items=None) -> CheckoutRequest:
    return CheckoutRequest(
        mode=mode,
        line_items=line_items or [{"price": "price_123", "quantity": 1}],
        success_url="http://localhost:3000/success.html?session_id={CHECKOUT_SESSION_ID}",
        cancel_url="http://localhost:3000/booking_package.html",
        metadata=metadata or {},
    )


def test_payment_mode_always_creates_customer():
    params = build_session_params(_request(metadata={"package": "single"}), shipping_countries=("CA",))
    assert params["mode"] == "payment"
    assert params["customer_creation"] == "always"
    assert "subscription_data" not in params
    assert params["metadata"] == {"package": "single"}


def test_common_collection_options():
    params = build_session_params(_request(), shipping_countries=("CA",))
    assert params["payment_method_types"] == ["card"]
    assert params["billing_address_collection"] == "required"
    assert params["shipping_address_collection"] == {"allowed_countries": ["CA"]}
    assert params["phone_number_collection"] == {"enabled": True}
    # line_items transmis sans champs vides
    assert params["line_items"] == [{"price": "price_123", "quantity": 1}]


def test_price_data_line_item_is_forwarded():
    item = {
        "price_data": {"currency": "cad", "unit_amount": 12500, "product_data": {"name": "Coaching"}},
        "quantity": 2,
    }
    params = build_session_params(_request(line_items=[item]), shipping_countries=("CA",))
    assert params["line_items"] == [item]


@pytest.mark.parametrize("weeks", ["1", "4", "12"])
def test_subscription_seeds_first_installment(weeks):
    metadata = {"weekly_amount": "25.00", "installment_weeks": weeks, "final_total": "300.00"}
    params = build_session_params(_request("subscription", metadata), shipping_countries=("CA",))

    seeded = params["subscription_data"]["metadata"]
    assert seeded["installment_number"] == "1"
    assert seeded["total_installments"] == weeks
    assert seeded["auto_cancel_after"] == weeks
    assert seeded["total_amount"] == "300.00"
    assert "customer_creation" not in params


def test_subscription_at_minimum_is_accepted():
    metadata = {"weekly_amount": "1", "installment_weeks": "8"}
    params = build_session_params(_request("subscription", metadata), shipping_countries=("CA",))
    assert "total_amount" not in params["subscription_data"]["metadata"]


def test_subscription_below_minimum_is_rejected():
    metadata = {"weekly_amount": "0.99", "installment_weeks": "8", "final_total": "7.92"}
    with pytest.raises(HTTPException) as exc:
        build_session_params(_request("subscription", metadata), shipping_countries=("CA",))
    assert exc.value.status_code == 400
    assert exc.value.detail == BELOW_MINIMUM_MESSAGE


@pytest.mark.parametrize("raw", [None, "", "abc", "NaN"])
def test_weekly_amount_must_be_a_number(raw):
    with pytest.raises(HTTPException) as exc:
        parse_weekly_amount({"weekly_amount": raw})
    assert exc.value.status_code == 400


@pytest.mark.parametrize("raw", [None, "0", "-2", "2.5", "deux"])
def test_installment_weeks_must_be_positive_integer(raw):
    with pytest.raises(HTTPException) as exc:
        parse_installment_weeks({"installment_weeks": raw})
    assert exc.value.status_code == 400


def test_installment_weeks_accepts_json_integer():
    assert parse_installment_weeks({"installment_weeks": 6}) == 6


def test_shipping_countries_come_from_configuration():
    params = build_session_params(_request(), shipping_countries=("CA", "US"))
    assert params["shipping_address_collection"] == {"allowed_countries": ["CA", "US"]}
