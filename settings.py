"""App settings.

Flask loads this module on startup via ``app.config.from_pyfile(...)``.

ETL settings (paths, domain suffix, batch sizes, timeouts) live in the YAML
config read by ``config.py``; this file only covers the reporting API.
"""

import os

SETTINGS: dict[str, object] = {
    "SECRET_KEY": os.getenv("FINDINGS_API_SECRET_KEY", "dev-not-secret"),
    "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO"),
    # /api/v1/findings paging
    "FINDINGS_DEFAULT_LIMIT": 100,
    "FINDINGS_MAX_LIMIT": 500,
    # Requests slower than this are logged; 0 disables.
    "SLOW_REQUEST_MS": int(os.getenv("SLOW_REQUEST_MS", "250") or "250"),
}

# Flask only reads UPPERCASE module names.
SECRET_KEY = SETTINGS["SECRET_KEY"]
LOG_LEVEL = SETTINGS["LOG_LEVEL"]
FINDINGS_DEFAULT_LIMIT = SETTINGS["FINDINGS_DEFAULT_LIMIT"]
FINDINGS_MAX_LIMIT = SETTINGS["FINDINGS_MAX_LIMIT"]
SLOW_REQUEST_MS = SETTINGS["SLOW_REQUEST_MS"]
