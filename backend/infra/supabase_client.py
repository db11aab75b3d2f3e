"""
Clients Supabase du backend:
- anon partagé (auth, catalogue, sonde health)
- service-role partagé (stripe_customers / stripe_subscriptions, écrits côté serveur uniquement)
- anon authentifié par requête (RLS: paniers et commandes de l'utilisateur)
"""
from typing import Optional
from supabase import create_client, Client
from backend.config import SUPABASE_URL, SUPABASE_ANON, SUPABASE_SERVICE_KEY

_clients: dict = {}

def _shared(name: str, key: str) -> Client:
    client: Optional[Client] = _clients.get(name)
    if client is None:
        client = _clients[name] = create_client(SUPABASE_URL, key)
    return client

def get_supabase() -> Client:
    return _shared("anon", SUPABASE_ANON)

def get_service_supabase() -> Client:
    """RuntimeError si la clé service-role n'est pas configurée."""
    if not SUPABASE_SERVICE_KEY:
        raise RuntimeError("SUPABASE_SERVICE_KEY manquant pour get_service_supabase()")
    return _shared("service", SUPABASE_SERVICE_KEY)

def get_user_supabase(user_token: str) -> Client:
    """Nouveau client anon porteur du jeton utilisateur (jamais mis en cache: un jeton par requête)."""
    if not user_token:
        raise ValueError("user_token is required")
    client = create_client(SUPABASE_URL, SUPABASE_ANON)
    client.postgrest.auth(user_token)
    return client
