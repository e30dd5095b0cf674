import logging

from compass_billing.payments import webhooks


def _event(event_type, obj):
    return {"id": "evt_1", "type": event_type, "data": {"object": obj}}


def test_known_types_have_handlers():
    assert set(webhooks.EVENT_HANDLERS) == {
        "checkout.session.completed",
        "invoice.payment_succeeded",
        "customer.subscription.deleted",
    }


def test_invoice_paid_runs_installment_policy(fake_stripe, settings):
    fake_stripe.subscriptions["sub_1"] = {
        "total_installments": "2",
        "installment_number": "1",
        "auto_cancel_after": "2",
    }

    details = webhooks.dispatch_event(
        _event("invoice.payment_succeeded", {"id": "in_1", "subscription": "sub_1", "amount_paid": 2500}),
        settings,
    )

    assert details["installment"] == "advanced"
    [update] = fake_stripe.calls_to("update_subscription_metadata")
    assert update["api_key"] == settings.stripe_secret_key


def test_checkout_completed_only_logs(fake_stripe, settings, caplog):
    caplog.set_level(logging.INFO, logger="compass_billing.payments.webhooks")
    session = {"id": "cs_test_123", "mode": "subscription", "customer": "cus_1", "payment_status": "paid"}

    assert webhooks.dispatch_event(_event("checkout.session.completed", session), settings) is None
    assert fake_stripe.calls == []
    assert "cs_test_123" in caplog.text


def test_subscription_deleted_only_logs(fake_stripe, settings):
    assert webhooks.dispatch_event(_event("customer.subscription.deleted", {"id": "sub_1"}), settings) is None
    assert fake_stripe.calls == []


def test_unknown_type_is_acknowledged(fake_stripe, settings, caplog):
    caplog.set_level(logging.INFO, logger="compass_billing.payments.webhooks")
    assert webhooks.dispatch_event(_event("payment_intent.created", {"id": "pi_1"}), settings) is None
    assert fake_stripe.calls == []
    assert "payment_intent.created" in caplog.text


def test_event_without_data_object(fake_stripe, settings):
    details = webhooks.dispatch_event({"id": "evt_2", "type": "invoice.payment_succeeded"}, settings)
    assert details["installment"] == "not_tracked"
    assert fake_stripe.calls == []
