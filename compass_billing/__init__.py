"""
Serveur HTTP devant Stripe: sessions Checkout, SetupIntents, portail client
et webhooks (annulation automatique des abonnements en versements).
"""

__version__ = "1.0.0"
