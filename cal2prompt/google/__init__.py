"""Google source: OAuth2 credentials and the Calendar REST API

Components:
    models.py: Token, RawEvent, EventLink
    oauth_manager.py: Loopback PKCE authorization flow, refresh, token files
    accounts.py: Account store and per-account token lifecycle
    calendar_client.py: Event listing and insertion over aiohttp
"""

from cal2prompt.google.models import EventLink, RawEvent, Token

__all__ = ["EventLink", "RawEvent", "Token"]
