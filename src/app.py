"""Marketplace FastAPI application.

Commands are processed synchronously inside each request; the domain context
is pushed per request by the app's middleware.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# PROTEAN_ENV selects the domain.toml overlay:
#   - "test"/unset → memory providers, event handlers run inside the request
#   - "production" → PostgreSQL, event handlers run in the Engine (server.py)
from marketplace.api import create_app
from marketplace.domain import marketplace

marketplace.init()

app = create_app()
