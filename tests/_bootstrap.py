"""Test helper that normalizes sys.path and environment defaults."""

from __future__ import annotations

import json
import os
import sys
import tempfile
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


def _app(name: str, scopes: str) -> dict[str, str]:
    return {"client_id": f"{name}-client", "client_secret": f"{name}-secret", "scopes": scopes}


TEST_TENANTS = {
    "default": {
        "youtube": _app("yt", "https://www.googleapis.com/auth/youtube.upload"),
        "x": _app("x", "tweet.read,tweet.write,offline.access"),
        "facebook": _app("fb", "pages_manage_posts"),
        "tiktok": _app("tt", "video.upload"),
        "instagram": _app("ig", "instagram_business_basic"),
    },
    "tenant-x": {
        "x": _app("x-tenant", "tweet.read,offline.access"),
    },
}

_DEFAULT_ENV_VARS: dict[str, str] = {
    "TOKEN_ENCRYPTION_SECRET": "test-secret",
    "OAUTH_TENANTS": json.dumps(TEST_TENANTS),
    "OAUTH_DEFAULT_REDIRECT_URI": "https://broker.example.com/api/auth/callback",
    "CREDENTIAL_STORE_BACKEND": "sqlite",
    "CREDENTIAL_STORE_PATH": os.path.join(tempfile.gettempdir(), "oauth-broker-tests.db"),
}

for key, value in _DEFAULT_ENV_VARS.items():
    os.environ.setdefault(key, value)
