"""Internal constants shared across the library."""

API_URL = "https://developer-api.nest.com"
AUTH_URL = "https://api.home.nest.com/oauth2/access_token"
USER_AGENT = "pynest"

# Marker that opens every event header on the stream. Chunks without it are
# continuation fragments of a chunked ``put`` body.
EVENT_MARKER = "event: "
DATA_PREFIX = "data:"

# Redirects are always followed over HTTPS; the API refuses plain HTTP.
REDIRECT_SCHEME = "https://"

DEFAULT_MAX_REDIRECTS = 5
