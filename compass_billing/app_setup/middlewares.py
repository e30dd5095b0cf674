"""
Middlewares transverses de l'application.
- CORS: origines de production ou de développement local (Settings.cors_origins).
- X-Forwarded-*: réécrit l'IP cliente seulement pour les proxys de confiance (clé du rate limiting).
- En-têtes de sécurité sur toutes les réponses.
Le préflight OPTIONS est traité par CORSMiddleware; le webhook Stripe n'envoie pas d'Origin.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from compass_billing.config import Settings

CORS_ALLOW_METHODS = ["GET", "POST", "OPTIONS"]
CORS_ALLOW_HEADERS = ["Content-Type", "Stripe-Signature"]

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "no-referrer",
}


def register_basic_middlewares(app: FastAPI, settings: Settings) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=CORS_ALLOW_METHODS,
        allow_headers=CORS_ALLOW_HEADERS,
    )
    # X-Forwarded-For accepté seulement depuis les proxys de FORWARDED_ALLOW_IPS
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=list(settings.forwarded_allow_ips))


def register_security_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response
