"""
Factory d'application recommandée pour les entrypoints (ex: compass_billing.asgi).
Ordonne les étapes d'initialisation de manière lisible et testable.
"""
from typing import Optional

from fastapi import FastAPI
from compass_billing.config import Settings
from .lifespan import lifespan
from .middlewares import register_basic_middlewares, register_security_middleware
from .exceptions import register_exception_handlers
from .routers import register_routers

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - la configuration (app.state.settings), lue depuis l'environnement si non fournie
      - middlewares CORS/proxy et en-têtes de sécurité
      - gestionnaires d'exceptions ({"error": ...})
      - tous les routers (paiements, variantes serverless, health)
    La clé Stripe est validée au démarrage (lifespan), pas à la construction.
    """
    settings = settings or Settings.from_env()
    app = FastAPI(title="Inner Compass Stripe API", lifespan=lifespan)
    app.state.settings = settings
    register_basic_middlewares(app, settings)
    register_security_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    return app
