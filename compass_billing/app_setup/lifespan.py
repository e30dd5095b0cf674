"""
Lifespan FastAPI: initialisation/arrêt des ressources partagées.
- Valide la configuration: STRIPE_SECRET_KEY absente => le démarrage échoue (ConfigurationError).
- Signale un secret webhook absent/placeholder (les webhooks répondront 500 tant qu'il manque).
- Initialise FastAPILimiter (Redis) avec options de test (fakeredis).
- Variables d'environnement supportées:
  - DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: désactive complètement (tests)
  - USE_FAKE_REDIS_FOR_TESTS=1: utilise fakeredis (tests)
  - LOCAL_RATE_LIMIT_FALLBACK=1: active un fallback local si l'init échoue
"""
import os
import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter

from compass_billing.config import Settings


def load_app_settings(app: FastAPI) -> Settings:
    """
    Charge (si besoin) puis valide la configuration attachée à l'application.
    Soulève ConfigurationError si la clé secrète Stripe est absente.
    """
    logger = logging.getLogger("uvicorn.error")
    settings = getattr(app.state, "settings", None)
    if settings is None:
        settings = Settings.from_env()
        app.state.settings = settings

    logger.info("Environment: %s", settings.environment)
    logger.info("STRIPE_SECRET_KEY present: %s", bool(settings.stripe_secret_key))
    if not settings.stripe_secret_key:
        logger.error("STRIPE_SECRET_KEY is missing from environment variables")
    settings.require_api_key()

    if not settings.webhook_secret_configured:
        logger.error("STRIPE_WEBHOOK_SECRET missing or placeholder: /webhook will reject every event")
    return settings


def _limiter_redis():
    """Client Redis du limiteur: fakeredis en test (USE_FAKE_REDIS_FOR_TESTS=1), sinon RATE_LIMIT_REDIS_URL."""
    if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1":
        # Extra [test] uniquement
        from fakeredis import FakeAsyncRedis
        return FakeAsyncRedis(decode_responses=True)
    url = os.getenv("RATE_LIMIT_REDIS_URL", "redis://127.0.0.1:6379/0")
    return aioredis.from_url(url, encoding="utf-8", decode_responses=True)


async def init_rate_limiter(app: FastAPI) -> None:
    """
    Active fastapi-limiter sur les endpoints de création.
    Redis injoignable: fenêtre mémoire si LOCAL_RATE_LIMIT_FALLBACK=1, sinon limitation coupée.
    """
    logger = logging.getLogger("uvicorn.error")
    if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
        app.state.rate_limit_enabled = False
        logger.info("Rate limiting disabled by DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS")
        return

    try:
        await FastAPILimiter.init(_limiter_redis())
    except Exception as e:
        fallback = os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1"
        app.state.rate_limit_enabled = fallback
        logger.warning(
            "Rate limiter init failed (%s): %s",
            "using in-memory window" if fallback else "rate limiting disabled", e,
        )
        return
    app.state.rate_limit_enabled = True
    logger.info("Rate limiting enabled (redis)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    load_app_settings(app)
    await init_rate_limiter(app)
    logging.getLogger("uvicorn.error").info("Stripe server ready to process payments")
    yield
    if getattr(app.state, "rate_limit_enabled", False) and getattr(FastAPILimiter, "redis", None) is not None:
        await FastAPILimiter.close()
