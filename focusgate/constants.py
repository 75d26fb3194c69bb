"""Shared constants for focusgate.

Default addresses, paths, and timing values used across modules are defined
here. No magic numbers in other modules; import from here.
"""

# ─── Listen addresses ─────────────────────────────────────────────────────────

# Forward proxy listen address. An empty host binds all interfaces.
DEFAULT_PROXY_ADDR: str = ":8080"

# Redirect-target page server listen address.
DEFAULT_WEB_ADDR: str = ":8081"

# Substituted for an empty host when building the redirect target address.
LOOPBACK_HOST: str = "127.0.0.1"

# ─── Policy inputs ────────────────────────────────────────────────────────────

# Blacklist file, relative to the working directory.
DEFAULT_BLACKLIST_PATH: str = "blacklist"

# Seconds between two clock-state scans of the time-tracking directory.
CLOCK_POLL_INTERVAL_S: float = 10.0

# Path marker of tracked time-tracking files (org-mode).
TRACKED_FILE_MARKER: str = ".org"

# ─── Proxy client ─────────────────────────────────────────────────────────────

POOL_MAX_CONNECTIONS: int = 100
POOL_MAX_KEEPALIVE: int = 20
POOL_KEEPALIVE_EXPIRY: float = 30.0  # seconds
PROXY_TIMEOUT: float = 30.0  # total upstream request timeout

# Fallback page served by the redirect server for unknown paths.
INDEX_PAGE: str = "index.html"
