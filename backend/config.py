# backend.config
from decimal import Decimal
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du backend.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe), sécurité cookies, CORS/hosts
- Expose la grille de livraison (standard/express) et la devise du checkout
- Fournit les chemins de retour du paiement hébergé (succès/annulation)
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _decimal_env(name: str, default: str) -> Decimal:
    """Lit un montant décimal (ex: "10.00"); retombe sur la valeur par défaut si invalide."""
    raw = _clean_env(os.getenv(name) or "")
    try:
        return Decimal(raw) if raw else Decimal(default)
    except Exception:
        return Decimal(default)

# Supabase: URL et clés (anon/service)
# - SUPABASE_URL peut parfois être sans schéma: on préfixe en https:// si nécessaire
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or os.getenv("VITE_SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("VITE_SUPABASE_ANON_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Cookies / sécurité
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")

# CORS (dev)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]

# Stripe: clés publique/privée
STRIPE_PUBLIC_KEY = _clean_env(os.getenv("STRIPE_PUBLIC_KEY") or "")
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")

# Processeur de paiement direct: "stripe" (réel) ou "mock" (bac à sable local)
PAYMENT_PROVIDER = _clean_env(os.getenv("PAYMENT_PROVIDER") or "stripe").lower()
CURRENCY = _clean_env(os.getenv("CURRENCY") or "usd").lower()

# Grille de livraison (express > standard)
STANDARD_DELIVERY_FEE = _decimal_env("STANDARD_DELIVERY_FEE", "10.00")
EXPRESS_DELIVERY_FEE = _decimal_env("EXPRESS_DELIVERY_FEE", "20.00")

# Pages de retour du checkout hébergé
CHECKOUT_SUCCESS_PATH = os.getenv("CHECKOUT_SUCCESS_PATH", "/payment-success")
CHECKOUT_CANCEL_PATH = os.getenv("CHECKOUT_CANCEL_PATH", "/payment-cancel")

BASE_URL = _clean_env(os.getenv("BASE_URL") or "http://localhost:8000")
