"""
Registre central des routers.
- Paiements: chemins historiques (/create-checkout-session, /webhook, ...)
- Paiements: variantes serverless (/.netlify/functions/...)
- Health
"""
from fastapi import FastAPI
from compass_billing.payments import views as payments_views
from compass_billing.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    """
    Agrège tous les routers de l'application.
    - L'ordre n'a pas d'impact sauf conflits de chemins (évités par préfixes).
    """
    app.include_router(payments_views.router)
    app.include_router(payments_views.serverless_router)
    # Health & monitoring
    app.include_router(health_router)
