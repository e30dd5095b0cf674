"""
Module 'payments' (feature-first): point d'entrée public.
Réunit composition Checkout, suivi des versements, client Stripe, webhooks et services.
"""

from .checkout import build_session_params, parse_weekly_amount, parse_installment_weeks
from .installments import seed_metadata, subscription_id_from_invoice, next_transition, apply_installment_payment
from .stripe_client import PaymentProviderError, WebhookSignatureError, construct_event
from .webhooks import EVENT_HANDLERS, dispatch_event
from .service import (
    create_checkout_session,
    create_setup_intent,
    resolve_session_id,
    get_checkout_session,
    create_portal_session,
    handle_webhook,
)

__all__ = [
    # checkout
    "build_session_params",
    "parse_weekly_amount",
    "parse_installment_weeks",
    # installments
    "seed_metadata",
    "subscription_id_from_invoice",
    "next_transition",
    "apply_installment_payment",
    # stripe
    "PaymentProviderError",
    "WebhookSignatureError",
    "construct_event",
    # webhooks
    "EVENT_HANDLERS",
    "dispatch_event",
    # services
    "create_checkout_session",
    "create_setup_intent",
    "resolve_session_id",
    "get_checkout_session",
    "create_portal_session",
    "handle_webhook",
]
