"""Internal constants shared across the library."""

DEFAULT_API_BASE_URL = "https://spynetwork.ru"
RPC_PATH = "/api/trpc"

# ------------------------------------------------------------------
# Credential keys (flat key-value namespace)
# ------------------------------------------------------------------

USER_PHONE_KEY = "user_phone"
USER_SESSION_TOKEN_KEY = "user_session_token"
ADMIN_TOKEN_KEY = "admin_auth_token"
TUTORIAL_COMPLETED_KEY = "tutorial_completed"
APP_DATA_CACHE_KEY = "app_data_cache_v1"

# ------------------------------------------------------------------
# Outgoing auth headers
# ------------------------------------------------------------------

USER_AUTH_HEADER = "x-user-auth"
USER_PHONE_HEADER = "x-user-phone"
ADMIN_AUTH_HEADER = "x-admin-auth"

# Remote key-value store
KV_NAMESPACE_HEADER = "x-rork-namespace"

# ------------------------------------------------------------------
# Navigation
# ------------------------------------------------------------------

AUTH_SEGMENT = "auth"
ADMIN_SEGMENT = "admin"
AUTH_ROUTE = "/auth"
WEB_AUTH_ROUTE = "/app/auth"
HOME_ROUTE = "/(tabs)"

#: Seconds to wait before presenting the onboarding tutorial.
TUTORIAL_DELAY = 0.5

#: Seconds between a local-tier mutation and the file write it triggers.
PERSIST_DEBOUNCE = 0.5

#: Characters of an error body kept for diagnostics.
ERROR_BODY_SNIPPET = 300
