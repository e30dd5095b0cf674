# module compass_billing.app
"""
Instance globale de l'application (construite par la factory).
La validation de STRIPE_SECRET_KEY a lieu au démarrage du serveur, via le lifespan.
"""
from compass_billing.app_setup.factory import create_app

app = create_app()
