"""Constants shared across authmimic: endpoint paths, cookie and storage names."""

# Backend endpoints (paths relative to the API origin)
AUTH_ME_PATH = "/api/auth/me"
AUTH_PROFILE_PATH = "/api/auth/profile"
USERS_ME_PATH = "/api/users/me"
LOGIN_PATH = "/api/auth/login"
LOGOUT_PATH = "/api/auth/logout"
REGISTER_PATH = "/api/auth/register"
CSRF_TOKEN_PATH = "/api/csrf-token"
GAMIFICATION_PROFILE_PATH = "/api/gamification/profile*"

OWNER_ESTABLISHMENTS_PATH = "/api/establishments/my-owned"
OWNER_REQUESTS_PATH = "/api/ownership-requests/my"
OWNERSHIP_REQUESTS_PATH = "/api/ownership-requests"
ADMIN_ESTABLISHMENTS_PATH = "/api/admin/establishments"
ADMIN_ESTABLISHMENT_APPROVE_PATH = "/api/admin/establishments/*/approve"
ADMIN_EMPLOYEES_PATH = "/api/admin/employees"
ADMIN_OWNERSHIP_REQUESTS_PATH = "/api/ownership-requests/admin/all"
FAVORITES_PATH = "/api/favorites"
COMMENTS_PATH = "/api/comments"

# Supabase client endpoints
SUPABASE_TOKEN_PATH = "*/auth/v1/token*"
SUPABASE_SIGNUP_PATH = "*/auth/v1/signup"
SUPABASE_USER_PATH = "*/auth/v1/user"
SUPABASE_LOGOUT_PATH = "*/auth/v1/logout"

API_PATH_PREFIX = "/api/"
API_RESOURCE_TYPES = {"xhr", "fetch"}

# Cookies issued by the backend
SESSION_COOKIE = "auth-token"
SESSION_ID_COOKIE = "pattamap.sid"
CSRF_COOKIE = "csrf-token"
CSRF_HEADER = "x-csrf-token"

# localStorage keys read by the Supabase client on bootstrap
SUPABASE_STORAGE_KEY = "sb-pattamap-auth-token"
SUPABASE_LEGACY_STORAGE_KEY = "supabase.auth.token"

DEFAULT_SESSION_LIFETIME_S = 3600
DEFAULT_LIVE_LOGIN_TIMEOUT_S = 5.0
DEFAULT_NAVIGATION_TIMEOUT_MS = 15_000
DEFAULT_VISIBILITY_TIMEOUT_MS = 3_000

DEFAULT_VIEWPORT_WIDTH = 1280
DEFAULT_VIEWPORT_HEIGHT = 720

GENERATED_EMAIL_DOMAIN = "pattamap.test"
