# balikbayani/config.py
from __future__ import annotations
import os
from pathlib import Path

# ===================================================================
# ENVIRONMENT-DRIVEN SETTINGS
# ===================================================================

# Base URL of the portal REST backend (everything under /api in the original deployment).
API_BASE_URL: str = os.environ.get('BALIKBAYANI_API_URL', 'http://localhost:3000/api')

# Seconds; unset means "whatever httpx does by default".
_timeout_raw: str | None = os.environ.get('BALIKBAYANI_HTTP_TIMEOUT')
HTTP_TIMEOUT: float | None = float(_timeout_raw) if _timeout_raw else None

# Render provides a persistent disk at '/var/data'. Server-side drafts live there.
DATA_DIR: Path = Path(os.environ.get('RENDER_DISK_PATH', '.'))
DRAFT_DB_PATH: Path = DATA_DIR / 'drafts.db'

# 'browser' keeps drafts in app.storage.user, 'sqlite' keeps them in DRAFT_DB_PATH.
DRAFT_BACKEND: str = os.environ.get('BALIKBAYANI_DRAFT_BACKEND', 'browser')

PORT: int = int(os.environ.get('PORT', 8080))
STORAGE_SECRET: str = os.environ.get('STORAGE_SECRET', 'a_very_secure_secret_key_for_local_dev')

LOGIN_ROUTE: str = os.environ.get('BALIKBAYANI_LOGIN_ROUTE', '/login')
STATUS_ROUTE: str = '/applicant/status'
# The notification has to be readable before the page goes away.
REDIRECT_DELAY_MS: int = int(os.environ.get('BALIKBAYANI_REDIRECT_DELAY_MS', 2000))

AUTH_COOKIE: str = 'bb_auth_token'
