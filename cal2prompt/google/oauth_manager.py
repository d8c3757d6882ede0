"""
Tool: OAuth Manager
Purpose: OAuth 2.0 authorization code flow (PKCE) for Google Calendar

Handles:
- Authorization URL generation
- One-shot loopback listener for the browser redirect
- Token exchange (auth code -> tokens)
- Token refresh
- Token file persistence

Usage:
    client = OAuth2Client.from_config(config.oauth2)
    token = await client.run_authorization_flow(login_hint="me@example.com")
    token = await client.refresh(token.refresh_token)

Dependencies:
    - aiohttp (pip install aiohttp)
"""

from __future__ import annotations

import asyncio
import base64
import errno
import hashlib
import json
import logging
import os
import secrets
import webbrowser
from collections.abc import Callable
from pathlib import Path
from typing import Any
from urllib.parse import urlencode, urlsplit

import aiohttp
from aiohttp import web

from cal2prompt.config_models import DEFAULT_REDIRECT_URL, DEFAULT_SCOPES, OAuth2Config
from cal2prompt.errors import (
    AuthorizationError,
    AuthorizationTimeoutError,
    ConsentDeniedError,
    PortInUseError,
    TokenExchangeError,
)
from cal2prompt.google.models import Token

logger = logging.getLogger(__name__)


# OAuth endpoints
GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

REDIRECT_OK_BODY = "Go back to your terminal :)"

_ADDR_IN_USE = {errno.EADDRINUSE, getattr(errno, "WSAEADDRINUSE", errno.EADDRINUSE)}


def _generate_pkce_pair() -> tuple[str, str]:
    """
    Generate PKCE code verifier and challenge pair per RFC 7636.

    Returns:
        Tuple of (code_verifier, code_challenge)
    """
    verifier_bytes = secrets.token_bytes(43)
    code_verifier = base64.urlsafe_b64encode(verifier_bytes).rstrip(b"=").decode("ascii")

    challenge_bytes = hashlib.sha256(code_verifier.encode("ascii")).digest()
    code_challenge = base64.urlsafe_b64encode(challenge_bytes).rstrip(b"=").decode("ascii")

    return code_verifier, code_challenge


class OAuth2Client:
    """
    Google OAuth2 client for an installed (desktop) application.

    One instance is shared by every account. The loopback listener is
    guarded by a lock so two accounts never try to bind the redirect port
    at the same time.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_url: str = DEFAULT_REDIRECT_URL,
        scopes: list[str] | None = None,
        timeout: float | None = None,
        open_browser: Callable[[str], Any] = webbrowser.open,
        auth_url: str = GOOGLE_AUTH_URL,
        token_url: str = GOOGLE_TOKEN_URL,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_url = redirect_url
        self.scopes = list(scopes or DEFAULT_SCOPES)
        self.timeout = timeout
        self.auth_url = auth_url
        self.token_url = token_url
        self._open_browser = open_browser
        self._listener_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, oauth2: OAuth2Config) -> OAuth2Client:
        return cls(
            client_id=oauth2.client_id,
            client_secret=oauth2.client_secret,
            redirect_url=oauth2.redirect_url,
            scopes=oauth2.scopes,
            timeout=oauth2.timeout_seconds,
        )

    @property
    def redirect_address(self) -> tuple[str, int]:
        parts = urlsplit(self.redirect_url)
        return parts.hostname or "127.0.0.1", parts.port or 80

    @property
    def redirect_path(self) -> str:
        return urlsplit(self.redirect_url).path or "/"

    def build_authorization_url(
        self,
        code_challenge: str,
        state: str,
        login_hint: str | None = None,
    ) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_url,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "state": state,
            "access_type": "offline",  # Get refresh token
            "prompt": "consent",  # Force consent to ensure refresh token
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        if login_hint:
            params["login_hint"] = login_hint
        return f"{self.auth_url}?{urlencode(params)}"

    async def run_authorization_flow(self, login_hint: str | None = None) -> Token:
        """
        Run the interactive browser flow and return a fresh token.

        Raises:
            PortInUseError: Redirect port already bound
            ConsentDeniedError: User declined consent
            AuthorizationTimeoutError: No redirect within ``timeout``
            TokenExchangeError: Token endpoint rejected the code
            AuthorizationError: Missing code or mismatched state
        """
        code_verifier, code_challenge = _generate_pkce_pair()
        state = secrets.token_urlsafe(24)
        url = self.build_authorization_url(code_challenge, state, login_hint)

        async with self._listener_lock:
            params = await self._receive_redirect(url)

        if "error" in params:
            raise ConsentDeniedError(params["error"])
        if params.get("state") != state:
            raise AuthorizationError("OAuth state mismatch in redirect; aborting authorization")
        code = params.get("code")
        if not code:
            raise AuthorizationError("Authorization code not found in redirect")

        return await self.exchange_code(code, code_verifier)

    async def _receive_redirect(self, url: str) -> dict[str, str]:
        host, port = self.redirect_address
        received: asyncio.Future[dict[str, str]] = asyncio.get_running_loop().create_future()

        async def handle_redirect(request: web.Request) -> web.StreamResponse:
            response = web.Response(text=REDIRECT_OK_BODY)
            response.force_close()
            await response.prepare(request)
            await response.write_eof()
            if not received.done():
                received.set_result({key: request.query[key] for key in request.query})
            return response

        app = web.Application()
        app.router.add_get(self.redirect_path, handle_redirect)
        runner = web.AppRunner(app, access_log=None)
        await runner.setup()
        try:
            site = web.TCPSite(runner, host, port)
            try:
                await site.start()
            except OSError as e:
                if e.errno in _ADDR_IN_USE:
                    raise PortInUseError(host, port) from e
                raise AuthorizationError(f"Could not listen on {host}:{port}: {e}") from e

            logger.info(f"Open this URL in your browser to authorize cal2prompt:\n{url}")
            try:
                opened = self._open_browser(url)
            except Exception as e:
                logger.warning(f"Could not launch a browser: {e}")
                opened = False
            if opened is False:
                logger.warning("No browser was opened; open the URL above manually")

            try:
                if self.timeout is None:
                    return await received
                return await asyncio.wait_for(received, self.timeout)
            except asyncio.TimeoutError as e:
                raise AuthorizationTimeoutError(self.timeout or 0) from e
        finally:
            await runner.cleanup()

    async def exchange_code(self, code: str, code_verifier: str) -> Token:
        token_data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "redirect_uri": self.redirect_url,
            "grant_type": "authorization_code",
            "code_verifier": code_verifier,
        }
        tokens = await self._post_token(token_data, "exchange")
        return Token.from_token_response(tokens)

    async def refresh(self, refresh_token: str) -> Token:
        """Refresh-token grant. Keeps ``refresh_token`` when Google does not rotate it."""
        token_data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        tokens = await self._post_token(token_data, "refresh")
        return Token.from_token_response(tokens, previous_refresh_token=refresh_token)

    async def _post_token(self, token_data: dict[str, str], action: str) -> dict[str, Any]:
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(self.token_url, data=token_data) as resp:
                    if resp.status != 200:
                        error = await resp.text()
                        raise TokenExchangeError(
                            f"Token {action} failed: {error}", status=resp.status
                        )
                    tokens = await resp.json(content_type=None)
        except aiohttp.ClientError as e:
            raise TokenExchangeError(f"Token {action} error: {e!s}") from e

        if not isinstance(tokens, dict) or not tokens.get("access_token"):
            raise TokenExchangeError(f"Token {action} returned no access_token")
        return tokens


# =============================================================================
# Token files
# =============================================================================


def save_token(token: Token, path: Path) -> None:
    """Write the credential as pretty JSON, creating parent directories."""
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(token.to_json())
    try:
        os.chmod(path, 0o600)
    except OSError:
        logger.debug(f"Could not restrict permissions on {path}")


def load_token(path: Path) -> Token | None:
    """
    Read a credential file.

    Returns None when the file does not exist or cannot be parsed; the
    caller treats both as "no credential" and re-authorizes.
    """
    path = Path(path).expanduser()
    if not path.exists():
        return None
    try:
        with open(path, encoding="utf-8") as f:
            return Token.from_dict(json.load(f))
    except (OSError, ValueError, TypeError) as e:
        logger.warning(f"Ignoring unreadable credential file {path}: {e}")
        return None
