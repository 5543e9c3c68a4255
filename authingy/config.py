"""
Library defaults. Overridable from env; no secrets here (the sealing secret is passed to Authingy).
"""
import os

# Timeout (seconds) for the default httpx client used for discovery, token and userinfo calls.
# Callers that pass their own httpx.Client control this themselves.
HTTP_TIMEOUT = float(os.environ.get("AUTHINGY_HTTP_TIMEOUT", "10"))

# Sent on every outbound request; some providers (GitHub) reject requests without one.
USER_AGENT = os.environ.get("AUTHINGY_USER_AGENT", "authingy/0.1")

# Key inside the sealed state that holds the CSRF value; reserved (callers cannot use it).
CSRF_STATE_KEY = "csrfState"
