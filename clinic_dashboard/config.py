"""Runtime settings read from the environment (and a local .env file)."""
from __future__ import annotations
import os
from zoneinfo import ZoneInfo
from dotenv import load_dotenv

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL", "https://localhost.supabase.co").rstrip("/")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")
REST_URL = f"{SUPABASE_URL}/rest/v1"

CLINIC_TZ = ZoneInfo(os.getenv("CLINIC_TIMEZONE", "America/Lima"))
STRICT_STATUS_TRANSITIONS = os.getenv("STRICT_STATUS_TRANSITIONS", "0") == "1"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
