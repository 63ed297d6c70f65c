"""
asgi.py -- ASGI entry point for CampaignHub.

Run with:  uvicorn asgi:app --reload

api/main.py builds the application; this module is the stable import path
that process managers point at.
"""

from api.main import app

__all__ = ["app"]
