"""
Paiement en versements: un abonnement hebdomadaire Stripe annulé automatiquement
après N prélèvements.

L'état vit uniquement dans subscription.metadata (aucune base locale):
- total_installments: nombre total de versements
- installment_number: versement en cours (commence à 1)
- total_amount: montant total de la commande
- auto_cancel_after: copie de total_installments, marque un abonnement suivi
- last_invoice_id, last_invoice_created: dernière facture comptabilisée (id et date de création);
  toute facture déjà vue ou antérieure est ignorée (webhooks rejoués)
"""
import logging
from typing import Any, Dict, Optional, Tuple

from . import stripe_client

logger = logging.getLogger(__name__)

ADVANCED = "advanced"
CANCELLED = "cancelled"
NOT_TRACKED = "not_tracked"
DUPLICATE = "duplicate"
INVALID = "invalid"
FAILED = "failed"


# module compass_billing.payments.installments
def seed_metadata(*, installment_weeks: int, total_amount: Any = None) -> Dict[str, str]:
    """
    Métadonnées posées à la création de l'abonnement (subscription_data.metadata).
    installment_number vaut toujours "1", quel que soit installment_weeks.
    """
    metadata = {
        "total_installments": str(installment_weeks),
        "installment_number": "1",
        "auto_cancel_after": str(installment_weeks),
    }
    if total_amount is not None and str(total_amount) != "":
        metadata["total_amount"] = str(total_amount)
    return metadata


def subscription_id_from_invoice(invoice: Dict[str, Any]) -> Optional[str]:
    """
    Identifiant d'abonnement référencé par une facture.
    - invoice.subscription (versions d'API historiques)
    - invoice.parent.subscription_details.subscription (versions récentes)
    Une valeur développée (objet) est acceptée: on lit alors son id.
    """
    ref = invoice.get("subscription")
    if not ref:
        parent = invoice.get("parent") or {}
        ref = (parent.get("subscription_details") or {}).get("subscription")
    if isinstance(ref, dict):
        ref = ref.get("id")
    return ref or None


def next_transition(metadata: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
    """
    Décide la transition à appliquer pour un versement réussi (sans appel Stripe).
    Retourne l'un des statuts:
      - ("not_tracked", {}) si auto_cancel_after est absent
      - ("invalid", {...}) si les compteurs ne sont pas des entiers
      - ("cancelled", {...}) si installment_number >= total_installments (transition terminale)
      - ("advanced", {...}) sinon, avec next_number = installment_number + 1
    """
    if not metadata.get("auto_cancel_after"):
        return (NOT_TRACKED, {})
    try:
        total = int(str(metadata.get("total_installments")).strip())
        current = int(str(metadata.get("installment_number") or 1).strip())
    except (TypeError, ValueError):
        return (INVALID, {
            "total_installments": metadata.get("total_installments"),
            "installment_number": metadata.get("installment_number"),
        })
    if current >= total:
        return (CANCELLED, {"installment_number": current, "total_installments": total})
    return (ADVANCED, {"installment_number": current, "total_installments": total, "next_number": current + 1})


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _idempotency_key(action: str, subscription_id: str, invoice_id: str) -> Optional[str]:
    # Sans id de facture, deux factures distinctes partageraient la même clé
    if not invoice_id:
        return None
    return f"installment-{action}-{subscription_id}-{invoice_id}"


def already_counted(metadata: Dict[str, Any], invoice_id: str, invoice_created: Optional[int]) -> bool:
    """
    Vrai si la facture a déjà été comptabilisée pour cet abonnement.
    - même id que last_invoice_id (rejeu immédiat)
    - ou facture pas plus récente que last_invoice_created (rejeu d'une facture antérieure)
    """
    if invoice_id and metadata.get("last_invoice_id") == invoice_id:
        return True
    last_created = _as_int(metadata.get("last_invoice_created"))
    return invoice_created is not None and last_created is not None and invoice_created <= last_created


def apply_installment_payment(invoice: Dict[str, Any], *, api_key: str) -> Tuple[str, Dict[str, Any]]:
    """
    Applique la règle d'annulation automatique pour un invoice.payment_succeeded.
    - Lit l'abonnement référencé, puis annule (dernier versement) ou incrémente installment_number.
    - Les erreurs Stripe sont journalisées et absorbées: le webhook doit toujours être acquitté.
    - Les écritures portent une clé d'idempotence (abonnement + facture): un rejeu client
      ne peut pas incrémenter deux fois.
    """
    subscription_id = subscription_id_from_invoice(invoice)
    invoice_id = invoice.get("id") or ""
    invoice_created = _as_int(invoice.get("created"))
    if not subscription_id:
        return (NOT_TRACKED, {"invoice_id": invoice_id})

    try:
        subscription = stripe_client.retrieve_subscription(subscription_id, api_key=api_key)
        metadata = dict(subscription.get("metadata") or {})

        if already_counted(metadata, invoice_id, invoice_created):
            logger.info("installments.duplicate invoice=%s subscription=%s", invoice_id, subscription_id)
            return (DUPLICATE, {"subscription_id": subscription_id, "invoice_id": invoice_id})

        status, details = next_transition(metadata)
        details["subscription_id"] = subscription_id

        if status == NOT_TRACKED:
            return (status, details)

        if status == INVALID:
            logger.warning(
                "installments.invalid_metadata subscription=%s total=%r number=%r",
                subscription_id, details.get("total_installments"), details.get("installment_number"),
            )
            return (status, details)

        logger.info(
            "installments.payment subscription=%s installment=%s/%s",
            subscription_id, details["installment_number"], details["total_installments"],
        )

        if status == CANCELLED:
            stripe_client.cancel_subscription(
                subscription_id,
                api_key=api_key,
                idempotency_key=_idempotency_key("cancel", subscription_id, invoice_id),
            )
            logger.info(
                "installments.cancelled subscription=%s after=%s payments",
                subscription_id, details["total_installments"],
            )
            return (status, details)

        new_metadata = {**metadata, "installment_number": str(details["next_number"])}
        if invoice_id:
            new_metadata["last_invoice_id"] = invoice_id
        if invoice_created is not None:
            new_metadata["last_invoice_created"] = str(invoice_created)
        stripe_client.update_subscription_metadata(
            subscription_id,
            new_metadata,
            api_key=api_key,
            idempotency_key=_idempotency_key("advance", subscription_id, invoice_id),
        )
        return (status, details)
    except stripe_client.PaymentProviderError as e:
        logger.exception(
            "installments.failed subscription=%s invoice=%s error=%s", subscription_id, invoice_id, e.message
        )
        return (FAILED, {"subscription_id": subscription_id, "invoice_id": invoice_id, "error": e.message})
