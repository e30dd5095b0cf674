"""
Webhook Stripe: aiguillage par type d'événement.

Ensemble fermé de types reconnus; tout autre type tombe dans _on_unhandled
(journalisé, jamais rejeté) pour rester compatible avec les futurs événements.
"""
import logging
from typing import Any, Callable, Dict, Optional

from compass_billing.config import Settings
from . import installments

logger = logging.getLogger(__name__)

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
CUSTOMER_SUBSCRIPTION_DELETED = "customer.subscription.deleted"


def _data_object(event: Dict[str, Any]) -> Dict[str, Any]:
    return (event.get("data") or {}).get("object") or {}


def _on_checkout_completed(event: Dict[str, Any], settings: Settings) -> Optional[Dict[str, Any]]:
    session = _data_object(event)
    logger.info(
        "webhook.checkout_completed session=%s mode=%s customer=%s payment_status=%s",
        session.get("id"), session.get("mode"), session.get("customer"), session.get("payment_status"),
    )
    return None


def _on_invoice_payment_succeeded(event: Dict[str, Any], settings: Settings) -> Optional[Dict[str, Any]]:
    invoice = _data_object(event)
    logger.info("webhook.invoice_paid invoice=%s amount_paid=%s", invoice.get("id"), invoice.get("amount_paid"))
    status, details = installments.apply_installment_payment(invoice, api_key=settings.stripe_secret_key)
    return {"installment": status, **details}


def _on_subscription_deleted(event: Dict[str, Any], settings: Settings) -> Optional[Dict[str, Any]]:
    subscription = _data_object(event)
    logger.info(
        "webhook.subscription_deleted subscription=%s customer=%s",
        subscription.get("id"), subscription.get("customer"),
    )
    return None


def _on_unhandled(event: Dict[str, Any], settings: Settings) -> Optional[Dict[str, Any]]:
    logger.info("webhook.unhandled type=%s", event.get("type"))
    return None


EVENT_HANDLERS: Dict[str, Callable[[Dict[str, Any], Settings], Optional[Dict[str, Any]]]] = {
    CHECKOUT_SESSION_COMPLETED: _on_checkout_completed,
    INVOICE_PAYMENT_SUCCEEDED: _on_invoice_payment_succeeded,
    CUSTOMER_SUBSCRIPTION_DELETED: _on_subscription_deleted,
}


# module compass_billing.payments.webhooks
def dispatch_event(event: Dict[str, Any], settings: Settings) -> Optional[Dict[str, Any]]:
    """
    Exécute le handler associé à event.type (ou _on_unhandled).
    Retour: détails de traitement éventuels (journalisation/tests), jamais renvoyés à Stripe.
    """
    handler = EVENT_HANDLERS.get(event.get("type") or "", _on_unhandled)
    return handler(event, settings)
