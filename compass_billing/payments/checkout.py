"""
Composition des paramètres Checkout (pas d'appel Stripe ici).
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Sequence

from fastapi import HTTPException

from .installments import seed_metadata
from .models import CheckoutRequest

# Montant récurrent minimal accepté par Stripe (unités entières de la devise, CAD)
MINIMUM_WEEKLY_AMOUNT = Decimal("1")

BELOW_MINIMUM_MESSAGE = (
    "Subscription amounts under $1 CAD are not supported by Stripe. "
    "Please use the one-time payment option."
)


# module compass_billing.payments.checkout
def parse_weekly_amount(metadata: Dict[str, Any]) -> Decimal:
    """
    Lit metadata.weekly_amount (chaîne décimale, ex "12.50").
    - Soulève HTTPException(400) si absent ou non numérique.
    """
    raw = str(metadata.get("weekly_amount") or "").strip()
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        raise HTTPException(status_code=400, detail="weekly_amount must be a decimal amount")
    if not amount.is_finite():
        raise HTTPException(status_code=400, detail="weekly_amount must be a decimal amount")
    return amount


def parse_installment_weeks(metadata: Dict[str, Any]) -> int:
    """
    Lit metadata.installment_weeks (entier >= 1).
    - Accepte "8" ou 8; refuse "8.5", "0", "abc".
    """
    raw = metadata.get("installment_weeks")
    try:
        weeks = int(str(raw).strip())
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="installment_weeks must be a positive integer")
    if weeks < 1:
        raise HTTPException(status_code=400, detail="installment_weeks must be a positive integer")
    return weeks


def build_session_params(req: CheckoutRequest, *, shipping_countries: Sequence[str]) -> Dict[str, Any]:
    """
    Construit les paramètres stripe.checkout.Session.create.
    - Toujours: carte, adresse de facturation obligatoire, livraison limitée aux pays autorisés,
      collecte du téléphone.
    - mode=payment: customer_creation="always" (client identifiable même sans compte).
    - mode=subscription: garde-fou montant minimal puis subscription_data.metadata
      (suivi des versements, voir installments.seed_metadata).
    Soulève HTTPException(400) avant tout appel Stripe si la demande est invalide.
    """
    params: Dict[str, Any] = {
        "payment_method_types": ["card"],
        "line_items": [li.model_dump(exclude_none=True) for li in req.line_items],
        "mode": req.mode,
        "success_url": req.success_url,
        "cancel_url": req.cancel_url,
        "metadata": dict(req.metadata),
        "billing_address_collection": "required",
        "shipping_address_collection": {"allowed_countries": list(shipping_countries)},
        "phone_number_collection": {"enabled": True},
    }

    if req.mode == "payment":
        params["customer_creation"] = "always"
        return params

    weekly_amount = parse_weekly_amount(req.metadata)
    if weekly_amount < MINIMUM_WEEKLY_AMOUNT:
        raise HTTPException(status_code=400, detail=BELOW_MINIMUM_MESSAGE)
    weeks = parse_installment_weeks(req.metadata)

    params["subscription_data"] = {
        "metadata": seed_metadata(installment_weeks=weeks, total_amount=req.metadata.get("final_total")),
    }
    return params
