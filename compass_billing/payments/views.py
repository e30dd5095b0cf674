import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from compass_billing.config import ConfigurationError, Settings, get_settings
from compass_billing.utils.rate_limit import optional_rate_limit
from compass_billing.payments import service as payments_service
from compass_billing.payments import stripe_client
from compass_billing.payments.models import CheckoutRequest, PortalSessionRequest, SetupIntentRequest

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Payments"])
# Mêmes fonctions exposées sous les chemins des fonctions serverless (front déployé sur Netlify)
serverless_router = APIRouter(prefix="/.netlify/functions", tags=["Payments (serverless paths)"])


# module compass_billing.payments.views
@router.post("/create-checkout-session", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
@serverless_router.post("/create-checkout-session", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_checkout_session(req: CheckoutRequest, settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    """
    Crée une session Stripe Checkout (paiement unique ou versements hebdomadaires).
    - Entrée JSON: { mode, line_items, success_url, cancel_url, metadata }
    - mode=subscription: metadata.weekly_amount (>= 1) et metadata.installment_weeks requis
    - Réponses: {id, url}; 400 si demande invalide (aucun appel Stripe); 500 {error} si Stripe échoue
    """
    try:
        return payments_service.create_checkout_session(req, settings)
    except stripe_client.PaymentProviderError as e:
        logger.exception("Error creating checkout session")
        raise HTTPException(status_code=500, detail=e.message)


@router.post("/create-setup-intent", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
@serverless_router.post("/create-setup-intent", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_setup_intent(req: SetupIntentRequest, settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    """
    Autorisation de carte à 0 $ (réservation d'une séance unique).
    - Entrée JSON: { customer_email?, metadata }
    - Réponse: { client_secret, setup_intent_id }
    """
    try:
        return payments_service.create_setup_intent(req, settings)
    except stripe_client.PaymentProviderError as e:
        logger.exception("Setup Intent Error")
        raise HTTPException(status_code=500, detail=e.message)


@router.get("/checkout-session", include_in_schema=False)
@router.get("/checkout-session/", include_in_schema=False)
@router.get("/checkout-session/{session_id}")
@serverless_router.get("/checkout-session", include_in_schema=False)
@serverless_router.get("/checkout-session/{path:path}")
def get_checkout_session(request: Request, settings: Settings = Depends(get_settings)):
    """
    Retourne la session Checkout complète pour la page de confirmation.
    - L'identifiant est le dernier segment du chemin; vide ou "checkout-session" -> 400
    - 500 {error} si Stripe échoue (y compris session introuvable)
    """
    session_id = payments_service.resolve_session_id(request.url.path)
    try:
        session = payments_service.get_checkout_session(session_id, settings)
    except stripe_client.PaymentProviderError as e:
        logger.exception("Error retrieving session %s", session_id)
        raise HTTPException(status_code=500, detail=e.message)
    return JSONResponse(session)


@router.post("/create-portal-session", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
def create_portal_session(
    req: PortalSessionRequest,
    request: Request,
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """
    Portail client Stripe (gestion des abonnements et moyens de paiement).
    - Entrée JSON: { customer_id, return_url? }
    - Réponse: { url }
    """
    origin = request.headers.get("origin") or str(request.base_url)
    try:
        return payments_service.create_portal_session(req, settings, origin=origin)
    except stripe_client.PaymentProviderError as e:
        logger.exception("Error creating portal session customer=%s", req.customer_id)
        raise HTTPException(status_code=500, detail=e.message)


@router.post("/webhook", include_in_schema=False)
async def stripe_webhook(request: Request, settings: Settings = Depends(get_settings)):
    """
    Webhook Stripe.
    - Corps brut (non parsé) + en-tête Stripe-Signature, vérifiés avec STRIPE_WEBHOOK_SECRET
    - 400 {error} si la signature est invalide: aucun traitement
    - 500 {error} si le secret n'est pas configuré
    - Sinon {"received": true}, même si le suivi des versements a échoué (journalisé)
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    try:
        result = await run_in_threadpool(payments_service.handle_webhook, payload, sig_header, settings)
    except ConfigurationError as e:
        logger.error("Webhook rejected: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    except stripe_client.WebhookSignatureError as e:
        logger.warning("Webhook signature verification failed. %s", e)
        raise HTTPException(status_code=400, detail=f"Webhook Error: {e}")
    return JSONResponse(result)
