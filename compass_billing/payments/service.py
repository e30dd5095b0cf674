"""
Cas d'usage 'payments': orchestre composition checkout, client Stripe et webhooks.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException

from compass_billing.config import Settings
from . import checkout
from . import stripe_client
from . import webhooks
from .models import CheckoutRequest, PortalSessionRequest, SetupIntentRequest

logger = logging.getLogger(__name__)

# Dernier segment de /checkout-session quand aucun identifiant n'est fourni
SESSION_ROUTE_SEGMENT = "checkout-session"


def create_checkout_session(req: CheckoutRequest, settings: Settings) -> Dict[str, Any]:
    """
    Crée la session Stripe Checkout et retourne {id, url}.
    - Les validations (montant minimal, métadonnées d'abonnement) ont lieu avant tout appel Stripe.
    """
    params = checkout.build_session_params(req, shipping_countries=settings.shipping_countries)
    logger.info("payments.checkout mode=%s items=%s metadata=%s", req.mode, len(params["line_items"]), req.metadata)
    stripe_client.require_stripe(settings.stripe_max_network_retries)
    session = stripe_client.create_checkout_session(api_key=settings.stripe_secret_key, params=params)
    logger.info("payments.checkout created session=%s", session.get("id"))
    return {"id": session.get("id"), "url": session.get("url")}


def create_setup_intent(req: SetupIntentRequest, settings: Settings) -> Dict[str, Any]:
    """
    Autorisation à 0 $ pour une séance unique: la carte sera débitée plus tard, hors session.
    Les métadonnées de l'appelant sont complétées par booking_type et customer_email.
    """
    metadata = {
        **req.metadata,
        "booking_type": "single_session",
        "customer_email": req.customer_email or "",
    }
    logger.info("payments.setup_intent metadata=%s", req.metadata)
    stripe_client.require_stripe(settings.stripe_max_network_retries)
    intent = stripe_client.create_setup_intent(api_key=settings.stripe_secret_key, metadata=metadata)
    return {"client_secret": intent.get("client_secret"), "setup_intent_id": intent.get("id")}


def resolve_session_id(path: str) -> str:
    """
    Extrait l'identifiant de session du dernier segment du chemin.
    - Refuse un segment vide ("/checkout-session/") ou le nom de la route elle-même.
    """
    session_id = (path or "").split("/")[-1].strip()
    if not session_id or session_id == SESSION_ROUTE_SEGMENT:
        raise HTTPException(status_code=400, detail="Session ID is required")
    return session_id


def get_checkout_session(session_id: str, settings: Settings) -> Dict[str, Any]:
    """Retourne la session complète (page de confirmation côté front)."""
    stripe_client.require_stripe(settings.stripe_max_network_retries)
    return stripe_client.get_checkout_session(session_id, api_key=settings.stripe_secret_key)


def default_return_url(origin: Optional[str], settings: Settings) -> str:
    return f"{(origin or '').rstrip('/')}{settings.portal_return_path}"


def create_portal_session(req: PortalSessionRequest, settings: Settings, *, origin: Optional[str]) -> Dict[str, Any]:
    """
    Portail de facturation Stripe (gestion des moyens de paiement/abonnements).
    - return_url par défaut: <origin>/custom_package_stripe.html (PORTAL_RETURN_PATH)
    """
    return_url = req.return_url or default_return_url(origin, settings)
    stripe_client.require_stripe(settings.stripe_max_network_retries)
    portal = stripe_client.create_portal_session(
        api_key=settings.stripe_secret_key,
        customer_id=req.customer_id,
        return_url=return_url,
    )
    return {"url": portal.get("url")}


def handle_webhook(payload: bytes, sig_header: Optional[str], settings: Settings) -> Dict[str, Any]:
    """
    Vérifie la signature puis aiguille l'événement.
    - ConfigurationError si le secret webhook est absent/placeholder (aucune vérification tentée)
    - WebhookSignatureError si la signature ne correspond pas (aucun handler exécuté)
    - Sinon acquittement {"received": True}, quel que soit le résultat métier
    """
    secret = settings.require_webhook_secret()
    stripe_client.require_stripe(settings.stripe_max_network_retries)
    event = stripe_client.construct_event(payload, sig_header, secret=secret)
    details = webhooks.dispatch_event(event, settings)
    logger.info("payments.webhook type=%s id=%s details=%s", event.get("type"), event.get("id"), details)
    return {"received": True}
