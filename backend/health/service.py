from urllib.parse import urlparse
import socket
from typing import Any, Dict

from backend.config import SUPABASE_URL
from backend.infra.supabase_client import get_supabase

# products est lisible en anon; les autres tables sont protégées par RLS (0 ligne attendu)
PROBED_TABLES = ("products", "carts", "orders")

def _check_table(client, name: str) -> Dict[str, Any]:
    try:
        res = client.table(name).select("id").limit(1).execute()
        return {"ok": True, "rows": len(res.data or [])}
    except Exception as e:
        return {"ok": False, "error": str(e)}

def _resolve(hostname: str) -> Dict[str, Any]:
    try:
        socket.getaddrinfo(hostname, 443)
        return {"dns_ok": True, "dns_error": None}
    except OSError as e:
        return {"dns_ok": False, "dns_error": str(e)}

def health_supabase_info() -> Dict[str, Any]:
    """Sonde datastore: résolution DNS de l'hôte Supabase puis lecture d'une ligne par table."""
    hostname = urlparse(SUPABASE_URL).hostname if SUPABASE_URL else None
    info: Dict[str, Any] = {
        "supabase_url": SUPABASE_URL,
        "hostname": hostname,
        "dns_ok": None,
        "dns_error": None,
        "connect_ok": False,
        "error": None,
        "tables": {},
    }
    if hostname:
        info.update(_resolve(hostname))
    try:
        client = get_supabase()
        for table in PROBED_TABLES:
            info["tables"][table] = _check_table(client, table)
        info["connect_ok"] = True
    except Exception as e:
        info["error"] = str(e)
    return info
