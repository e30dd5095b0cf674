"""
Modèles d'entrée (JSON) des endpoints de paiement.
Les objets Stripe renvoyés restent des dicts: ils appartiennent au fournisseur.
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class LineItem(BaseModel):
    # Champs Stripe additionnels (adjustable_quantity, tax_rates, ...) transmis tels quels
    model_config = ConfigDict(extra="allow")

    price: Optional[str] = None
    price_data: Optional[Dict[str, Any]] = None
    quantity: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def price_or_amount(self) -> "LineItem":
        if not self.price and not self.price_data:
            raise ValueError("line item requires price or price_data")
        return self


class CheckoutRequest(BaseModel):
    mode: Literal["payment", "subscription"]
    line_items: List[LineItem] = Field(min_length=1)
    success_url: str = Field(min_length=1)
    cancel_url: str = Field(min_length=1)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SetupIntentRequest(BaseModel):
    customer_email: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class PortalSessionRequest(BaseModel):
    customer_id: str = Field(min_length=1)
    return_url: Optional[str] = None
