"""
Shared constants used across all engine modules.

Centralises endpoints, default headers, and tunables so they live in
exactly one place.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/144.0.0.0 Safari/537.36"
)

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.9",
}

# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

DOWNLOAD_URL = "http://speedtest.tele2.net/100MB.zip"
UPLOAD_URL = "https://httpbin.org/post"
PING_HOST = "8.8.8.8"

# ---------------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------------

BYTES_PER_MB = 1024 * 1024

# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------

UPDATE_INTERVAL = 0.2            # download report throttle, seconds
UPLOAD_UPDATE_INTERVAL = 0.05    # streaming upload report throttle
DOWNLOAD_RESTART_PAUSE = 0.1
STREAMING_UPLOAD_PAUSE = 0.1
BUFFERED_UPLOAD_PAUSE = 2.0
PING_INTERVAL = 0.5
MIN_INTERVAL = 0.01
MAX_INTERVAL = 60.0

CONNECT_TIMEOUT = 10.0
SOCK_READ_TIMEOUT = 30.0
PROBE_TERMINATE_GRACE = 2.0      # wait for ping to exit before SIGKILL
PROBE_STDERR_LINES = 20          # stderr tail kept for error messages
DRAIN_TIMEOUT = 2.0              # wait for a superseded loop to unwind

# ---------------------------------------------------------------------------
# Data transfer
# ---------------------------------------------------------------------------

DOWNLOAD_CHUNK_SIZE = 64 * 1024
UPLOAD_SIZE = 5 * 1024 * 1024    # 5 MiB per upload iteration
UPLOAD_CHUNK_SIZE = 64 * 1024    # 64 KiB per generated chunk
PROBE_READ_SIZE = 4096

UPLOAD_STRATEGIES = ("streaming", "buffered")

# ---------------------------------------------------------------------------
# Latency
# ---------------------------------------------------------------------------

PING_WINDOW = 10                 # samples kept for the rolling average

# ---------------------------------------------------------------------------
# Status text
# ---------------------------------------------------------------------------

NO_METRIC = "--"
STATUS_CANCELLED = "Test cancelled"
STATUS_STOPPED = "Test stopped"
