# module compass_billing.config
"""
Configuration centrale du serveur de paiement.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets Stripe, les origines CORS et les chemins de retour
- Produit une valeur immuable (Settings) injectée dans les handlers via get_settings
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple
import os

from dotenv import load_dotenv
from fastapi import Request

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH)

PRODUCTION_ORIGINS = ("https://innercompassparenting.netlify.app",)
DEVELOPMENT_ORIGINS = (
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5000",
)

# Valeurs laissées par les modèles de déploiement, jamais de vrais secrets
PLACEHOLDER_WEBHOOK_SECRETS = {
    "whsec_your_webhook_secret_here",
    "replace_me",
    "changeme",
    "whsec_xxx",
}


class ConfigurationError(RuntimeError):
    """Configuration manquante ou invalide (clé Stripe, secret webhook)."""


def _clean_env(v: Optional[str]) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")


def _split_csv(v: str) -> Tuple[str, ...]:
    return tuple(p.strip() for p in (v or "").split(",") if p.strip())


@dataclass(frozen=True)
class Settings:
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    environment: str = "development"
    cors_origins: Tuple[str, ...] = DEVELOPMENT_ORIGINS
    shipping_countries: Tuple[str, ...] = ("CA",)
    portal_return_path: str = "/custom_package_stripe.html"
    stripe_max_network_retries: int = 2
    forwarded_allow_ips: Tuple[str, ...] = ("127.0.0.1",)

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Lit l'environnement du process une seule fois.
        - APP_ENV (ou NODE_ENV) = production sélectionne la liste d'origines de production
        - CORS_ORIGINS remplace la liste par défaut si renseigné
        - FORWARDED_ALLOW_IPS: proxys dont on accepte X-Forwarded-For (comme uvicorn)
        """
        environment = (_clean_env(os.getenv("APP_ENV") or os.getenv("NODE_ENV")) or "development").lower()
        default_origins = PRODUCTION_ORIGINS if environment == "production" else DEVELOPMENT_ORIGINS
        cors_origins = _split_csv(os.getenv("CORS_ORIGINS", "")) or default_origins
        shipping = tuple(c.upper() for c in _split_csv(os.getenv("SHIPPING_COUNTRIES", "CA"))) or ("CA",)
        try:
            retries = int(os.getenv("STRIPE_MAX_NETWORK_RETRIES", "2"))
        except ValueError:
            raise ConfigurationError("STRIPE_MAX_NETWORK_RETRIES doit être un entier")
        return cls(
            stripe_secret_key=_clean_env(os.getenv("STRIPE_SECRET_KEY")),
            stripe_webhook_secret=_clean_env(os.getenv("STRIPE_WEBHOOK_SECRET")),
            environment=environment,
            cors_origins=cors_origins,
            shipping_countries=shipping,
            portal_return_path=_clean_env(os.getenv("PORTAL_RETURN_PATH")) or "/custom_package_stripe.html",
            stripe_max_network_retries=max(retries, 0),
            forwarded_allow_ips=_split_csv(os.getenv("FORWARDED_ALLOW_IPS", "127.0.0.1")) or ("127.0.0.1",),
        )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def webhook_secret_configured(self) -> bool:
        secret = self.stripe_webhook_secret
        return bool(secret) and secret not in PLACEHOLDER_WEBHOOK_SECRETS and secret.startswith("whsec_")

    def require_api_key(self) -> str:
        if not self.stripe_secret_key:
            raise ConfigurationError(
                "Missing STRIPE_SECRET_KEY. Set it in your deployment env or in a local .env file."
            )
        return self.stripe_secret_key

    def require_webhook_secret(self) -> str:
        if not self.webhook_secret_configured:
            raise ConfigurationError("Webhook signing secret is not configured")
        return self.stripe_webhook_secret


def get_settings(request: Request) -> Settings:
    """
    Dépendance FastAPI: retourne la configuration attachée à l'application.
    - Construite paresseusement depuis l'environnement si create_app n'en a pas reçu.
    """
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        settings = Settings.from_env()
        request.app.state.settings = settings
    return settings
