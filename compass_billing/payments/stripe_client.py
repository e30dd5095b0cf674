"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.

Chaque fonction reçoit la clé API explicitement (pas d'état global partagé entre requêtes)
et convertit toute stripe.StripeError en PaymentProviderError portant le message Stripe.
"""
import json
import logging
from typing import Any, Dict, List, Optional

import stripe

logger = logging.getLogger(__name__)


class PaymentProviderError(Exception):
    """Échec d'un appel Stripe; message = message lisible renvoyé par Stripe."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class WebhookSignatureError(Exception):
    """Payload webhook illisible ou signature Stripe-Signature invalide."""


def _provider_error(e: Exception) -> PaymentProviderError:
    message = getattr(e, "user_message", None) or str(e) or e.__class__.__name__
    return PaymentProviderError(message, original_error=e)


# module compass_billing.payments.stripe_client
def require_stripe(max_network_retries: int = 2):
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Configure les retries réseau du SDK (Stripe ajoute une clé d'idempotence aux POST rejoués).
    - La clé API n'est jamais posée globalement: elle est passée à chaque appel.
    """
    stripe.max_network_retries = max_network_retries
    return stripe


def create_checkout_session(*, api_key: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """
    Crée une session Stripe Checkout à partir des paramètres déjà composés.
    Retour: dict session (ex: {"id": "cs_test_...", "url": "https://..."})
    """
    try:
        session = stripe.checkout.Session.create(api_key=api_key, **params)
    except stripe.StripeError as e:
        raise _provider_error(e)
    # stripe retourne un objet; on le traite comme dict-compatible
    return dict(session)


def get_checkout_session(session_id: str, *, api_key: str) -> Dict[str, Any]:
    """
    Récupère une session Stripe Checkout par son identifiant.
    Retour: dict session complet (payment_status, customer_details, metadata, ...).
    """
    try:
        session = stripe.checkout.Session.retrieve(session_id, api_key=api_key)
    except stripe.StripeError as e:
        raise _provider_error(e)
    return dict(session)


def create_setup_intent(
    *,
    api_key: str,
    metadata: Dict[str, Any],
    payment_method_types: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Crée un SetupIntent (autorisation à 0 $) utilisable ensuite hors session."""
    try:
        intent = stripe.SetupIntent.create(
            api_key=api_key,
            usage="off_session",
            payment_method_types=payment_method_types or ["card"],
            metadata=metadata,
        )
    except stripe.StripeError as e:
        raise _provider_error(e)
    return dict(intent)


def retrieve_subscription(subscription_id: str, *, api_key: str) -> Dict[str, Any]:
    try:
        subscription = stripe.Subscription.retrieve(subscription_id, api_key=api_key)
    except stripe.StripeError as e:
        raise _provider_error(e)
    return dict(subscription)


def update_subscription_metadata(
    subscription_id: str,
    metadata: Dict[str, str],
    *,
    api_key: str,
    idempotency_key: Optional[str] = None,
) -> Dict[str, Any]:
    try:
        subscription = stripe.Subscription.modify(
            subscription_id,
            api_key=api_key,
            idempotency_key=idempotency_key,
            metadata=metadata,
        )
    except stripe.StripeError as e:
        raise _provider_error(e)
    return dict(subscription)


def cancel_subscription(
    subscription_id: str,
    *,
    api_key: str,
    idempotency_key: Optional[str] = None,
) -> Dict[str, Any]:
    """Annulation immédiate (pas en fin de période)."""
    try:
        subscription = stripe.Subscription.cancel(
            subscription_id,
            api_key=api_key,
            idempotency_key=idempotency_key,
        )
    except stripe.StripeError as e:
        raise _provider_error(e)
    return dict(subscription)


def create_portal_session(*, api_key: str, customer_id: str, return_url: str) -> Dict[str, Any]:
    try:
        portal = stripe.billing_portal.Session.create(
            api_key=api_key,
            customer=customer_id,
            return_url=return_url,
        )
    except stripe.StripeError as e:
        raise _provider_error(e)
    return dict(portal)


def construct_event(payload: bytes, sig_header: Optional[str], *, secret: str):
    """
    Valide et parse un événement Stripe signé (webhook).
    - payload: corps brut, non parsé (la signature porte sur les octets exacts)
    - sig_header: valeur de l'en-tête Stripe-Signature
    Retour: événement sous forme de dict, parsé seulement après vérification de la signature.
    """
    if not sig_header:
        raise WebhookSignatureError("No signatures found matching the expected signature for payload")
    try:
        text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        stripe.WebhookSignature.verify_header(text, sig_header, secret, stripe.Webhook.DEFAULT_TOLERANCE)
        return json.loads(text)
    except stripe.SignatureVerificationError as e:
        raise WebhookSignatureError(getattr(e, "user_message", None) or str(e))
    except ValueError as e:
        raise WebhookSignatureError(f"Invalid payload: {e}")
