"""
Limitation de débit des endpoints de création (checkout, setup intent, portail).
- Redis via fastapi-limiter quand le lifespan l'a initialisé (app.state.rate_limit_enabled)
- LOCAL_RATE_LIMIT_FALLBACK=1: fenêtre glissante en mémoire, par process
- Clé: IP cliente + chemin (le front n'a pas de session serveur). L'IP est request.client.host,
  déjà réécrite par ProxyHeadersMiddleware pour les seuls proxys de confiance.
"""
from typing import Dict, Any
from urllib.parse import urlparse
import os
import time

from fastapi import Request, Response, HTTPException
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter


def _client_key_from_request(req: Request) -> str:
    # Jamais l'en-tête X-Forwarded-For brut: il est fourni par le client
    ip = req.client.host if req.client else "local"
    return f"ip:{ip}:{req.url.path}"


async def _identifier(req: Request) -> str:
    return _client_key_from_request(req)


def _memory_hit(request: Request, times: int, seconds: int) -> None:
    now = time.time()
    key = _client_key_from_request(request)
    store = getattr(request.app.state, "_rl_store", {})
    # store[key] = (fenêtre, horodatages); les clés expirées sont purgées
    for k, (window, stamps) in list(store.items()):
        if not stamps or now - stamps[-1] >= window:
            del store[k]
    hits = [t for t in store.get(key, (seconds, []))[1] if now - t < seconds]
    if len(hits) >= times:
        store[key] = (seconds, hits)
        request.app.state._rl_store = store
        raise HTTPException(status_code=429, detail="Too Many Requests")
    hits.append(now)
    store[key] = (seconds, hits)
    request.app.state._rl_store = store


# module compass_billing.utils.rate_limit
def optional_rate_limit(times: int, seconds: int):
    """
    Dépendance FastAPI: `times` requêtes par `seconds` secondes et par clé.
    Jamais de 429 si Redis est indisponible et que le fallback mémoire n'est pas demandé.
    """
    async def _dep(request: Request, response: Response):
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            _memory_hit(request, times, seconds)
            return

        if getattr(request.app.state, "rate_limit_enabled", None) is not True:
            return

        try:
            await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request, response)
        except HTTPException:
            raise
        except Exception:
            # Redis tombé après le démarrage: on laisse passer
            return
    return _dep


def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    """État effectif du rate limiting (exposé par /health/rate-limit)."""
    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    limiter_ready = getattr(FastAPILimiter, "redis", None) is not None
    backend = "redis" if limiter_ready else None

    if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1" and not limiter_ready:
        backend = "memory"

    info: Dict[str, Any] = {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": limiter_ready,
        "backend": backend,
    }

    if backend == "redis":
        redis_url = os.getenv("RATE_LIMIT_REDIS_URL")
        if redis_url:
            p = urlparse(redis_url)
            info["redis"] = {
                "scheme": p.scheme,
                "host": p.hostname,
                "port": p.port,
            }

    return info
