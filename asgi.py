"""
asgi.py -- Application assembly for Watch Tracker.

The one place the process environment is read for the server: Settings are
built here and handed to create_app(). Everything below receives its
configuration as an argument.

Run with:  uvicorn asgi:app --reload
"""

from api.main import create_app
from core.config import get_settings

app = create_app(get_settings())
