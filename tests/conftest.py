from zoneinfo import ZoneInfo
from clinic_dashboard import config

# point the client at a fixed fake project regardless of the local .env
config.SUPABASE_KEY = "test-key"
config.REST_URL = "https://clinic.supabase.co/rest/v1"
config.CLINIC_TZ = ZoneInfo("America/Lima")
config.STRICT_STATUS_TRANSITIONS = False
