import json

import pytest

from storefront.errors import FulfillmentError
from storefront.fulfillment import FulfillmentService, build_order, parse_cart_metadata


def make_session(**overrides):
    session = {
        "id": "cs_test_abc",
        "payment_status": "paid",
        "currency": "eur",
        "amount_subtotal": 5000,
        "amount_total": 5499,
        "total_details": {"amount_shipping": 499},
        "metadata": {
            "cart": json.dumps([{"variantId": 501, "quantity": 2}]),
            "order_ref": "a" * 32,
        },
        "customer_details": {"name": "Ada Lovelace", "email": "ada@example.com", "phone": "+31600000000"},
        "shipping_details": {
            "name": "Ada Lovelace",
            "address": {
                "line1": "Damrak 1",
                "line2": None,
                "city": "Amsterdam",
                "state": None,
                "country": "NL",
                "postal_code": "1012 LG",
            },
        },
    }
    session.update(overrides)
    return session


def event(event_type, session):
    return {"type": event_type, "data": {"object": session}}


@pytest.fixture
def service(fake_printful):
    return FulfillmentService(fake_printful)


def test_build_order():
    order = build_order(make_session())
    assert order["external_id"] == "a" * 32
    assert order["items"] == [{"sync_variant_id": 501, "quantity": 2}]
    assert order["recipient"]["city"] == "Amsterdam"
    assert order["recipient"]["address2"] == ""
    assert order["recipient"]["email"] == "ada@example.com"
    assert order["retail_costs"] == {"currency": "EUR", "subtotal": "50.00", "shipping": "4.99", "total": "54.99"}


def test_build_order_reads_collected_information():
    session = make_session()
    details = session.pop("shipping_details")
    session["collected_information"] = {"shipping_details": details}
    assert build_order(session)["recipient"]["country_code"] == "NL"


def test_build_order_without_address():
    with pytest.raises(FulfillmentError):
        build_order(make_session(shipping_details=None))


@pytest.mark.parametrize("raw", [None, "not json", "[]", json.dumps([{"variantId": 1}])])
def test_bad_cart_metadata(raw):
    with pytest.raises(FulfillmentError):
        parse_cart_metadata({"metadata": {"cart": raw}})


def test_paid_session_creates_and_confirms_order(service, fake_printful):
    result = service.handle_event(event("checkout.session.completed", make_session()))
    assert result == "created"
    assert len(fake_printful.orders) == 1
    assert fake_printful.confirmed == [9001]


def test_duplicate_delivery_creates_one_order(service, fake_printful):
    e = event("checkout.session.completed", make_session())
    service.handle_event(e)
    assert service.handle_event(e) == "duplicate"
    assert len(fake_printful.orders) == 1


def test_unpaid_session_waits_for_async_payment(service, fake_printful):
    session = make_session(payment_status="unpaid")
    assert service.handle_event(event("checkout.session.completed", session)) == "pending"
    assert fake_printful.orders == []

    assert service.handle_event(event("checkout.session.async_payment_succeeded", session)) == "created"
    assert len(fake_printful.orders) == 1


def test_async_payment_failure_creates_nothing(service, fake_printful):
    result = service.handle_event(event("checkout.session.async_payment_failed", make_session(payment_status="unpaid")))
    assert result == "payment_failed"
    assert fake_printful.orders == []


def test_other_events_are_ignored(service, fake_printful):
    assert service.handle_event({"type": "payment_intent.created", "data": {"object": {}}}) == "ignored"


def test_order_failure_is_logged_not_raised(service, fake_printful, caplog):
    fake_printful.fail_orders = True
    assert service.handle_event(event("checkout.session.completed", make_session())) == "failed"
    assert "Failed to create Printful order" in caplog.text

    # the session can be replayed once the provider recovers
    fake_printful.fail_orders = False
    assert service.handle_event(event("checkout.session.completed", make_session())) == "created"


def test_confirm_failure_keeps_order(service, fake_printful):
    from storefront.errors import PrintfulAPIError

    def refuse(order_id):
        raise PrintfulAPIError("cannot confirm", status=400)

    fake_printful.confirm_order = refuse
    assert service.handle_event(event("checkout.session.completed", make_session())) == "created"
    assert len(fake_printful.orders) == 1


def test_unexpected_error_releases_session_for_replay(service, fake_printful):
    calls = []
    create_order = fake_printful.create_order

    def flaky(order):
        calls.append(order)
        if len(calls) == 1:
            raise RuntimeError("PRINTFUL_API_KEY is not set")
        return create_order(order)

    fake_printful.create_order = flaky
    e = event("checkout.session.completed", make_session())

    assert service.handle_event(e) == "failed"
    assert service.handle_event(e) == "created"
    assert len(fake_printful.orders) == 1


def test_non_dict_order_response_is_a_failure(service, fake_printful):
    fake_printful.create_order = lambda order: "oops"
    assert service.handle_event(event("checkout.session.completed", make_session())) == "failed"
