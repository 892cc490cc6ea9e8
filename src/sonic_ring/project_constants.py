"""
Fixed parameters for the Sonic Odyssey ring lottery.

Batch size and delays are defaults only; every run can override them
through the environment or the command line.
"""

# Remote lottery service
SONIC_API_URL = "https://odyssey-api-beta.sonic.game"

# Sonic devnet (SVM) RPC used for broadcast and confirmation
DEVNET_URL = "https://devnet.sonic.game/"

COMMITMENT = "confirmed"

# The service rejects requests that don't look like they came from the dApp.
HEADERS = {
    "Accept": "*/*",
    # Only codecs httpx decodes without optional extras.
    "Accept-Encoding": "gzip, deflate",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Origin": "https://odyssey.sonic.game",
    "Pragma": "no-cache",
    "Priority": "u=1, i",
    "Referer": "https://odyssey.sonic.game/",
    "Sec-Ch-Ua": '"Not/A)Brand";v="8", "Chromium";v="126", "Brave";v="126"',
    "Sec-Ch-Ua-Mobile": "?0",
    "Sec-Ch-Ua-Platform": '"macOS"',
    "Sec-Fetch-Dest": "empty",
    "Sec-Fetch-Mode": "cors",
    "Sec-Fetch-Site": "same-site",
    "Sec-Gpc": "1",
    "User-Agent": (
        "Mozilla/5.0 (Linux; Android 11; SM-T870) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/93.0.4577.62 Safari/537.36"
    ),
}

# HTTP statuses the service uses for an expired or rejected session token
AUTH_FAILURE_STATUSES = (401, 403)

DRAWS_PER_BATCH = 50
BATCH_DELAY_S = 59.0

# A pending result is re-queried this many times, this far apart
POLL_RETRY_DELAY_S = 5.0
POLL_RETRIES = 1

# Pause after a successful draw before its report is closed
SETTLE_DELAY_S = 1.0

HTTP_TIMEOUT_S = 60.0

REPORT_TRAILER = "Powered by sonic-ring"
