"""
Lancement direct: python -m compass_billing

Variables lues:
- PORT (3000 par défaut)
- UVICORN_RELOAD=1|true|yes pour le rechargement auto en local
- LOG_LEVEL (info par défaut)
"""
import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "compass_billing.asgi:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", "3000")),
        reload=os.environ.get("UVICORN_RELOAD", "").lower() in ("1", "true", "yes"),
        log_level=os.environ.get("LOG_LEVEL", "info"),
    )


if __name__ == "__main__":
    main()
