from supabase import create_client, Client
from yachtexpense.config import settings

def get_supabase_client() -> Client:
    """
    Create and return a Supabase client for the learned keyword table.
    Uses the service role key; the table is not exposed to end users.
    """
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_KEY:
        raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set for the supabase keyword store")

    supabase: Client = create_client(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_KEY
    )
    return supabase
