"""
Entrée ASGI des process managers: `uvicorn compass_billing.asgi:app`
(ou `gunicorn -k uvicorn.workers.UvicornWorker compass_billing.asgi:app`).
La construction de l'app est centralisée dans compass_billing.app_setup.factory.
"""
from compass_billing.app import app

__all__ = ["app"]
