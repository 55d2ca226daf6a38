import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/auth"


class AuthClientError(Exception):
    def __init__(self, status: int, code: Optional[str] = None, message: Optional[str] = None):
        self.status = status
        self.code = code
        self.message = message or "Request failed"
        super().__init__(f"{status} {code}: {self.message}")


class TokenStore:
    """In-memory token holder; swap for persistent storage on devices."""

    def __init__(self) -> None:
        self.access_token: Optional[str] = None
        self.refresh_token: Optional[str] = None
        self.user: Optional[Dict[str, Any]] = None

    def set_session(self, access_token: str, refresh_token: str, user: Optional[Dict[str, Any]] = None) -> None:
        self.access_token = access_token
        self.refresh_token = refresh_token
        if user is not None:
            self.user = user

    def clear(self) -> None:
        self.access_token = None
        self.refresh_token = None
        self.user = None


class AuthClient:
    """Client for the auth endpoints.

    Concurrent ``refresh_access_token`` calls presenting the same refresh
    token share one request: sending it twice would look like token reuse
    to the server and revoke the session.
    """

    def __init__(self, base_url: str, session: Optional[aiohttp.ClientSession] = None,
                 store: Optional[TokenStore] = None, timeout: float = 15) -> None:
        self.base_url = base_url.rstrip("/")
        self.store = store or TokenStore()
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._inflight: Dict[str, asyncio.Task] = {}

    async def __aenter__(self) -> "AuthClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def _post(self, path: str, payload: Optional[Dict[str, Any]] = None,
                    access_token: Optional[str] = None) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        async with self._get_session().post(f"{self.base_url}{API_PREFIX}{path}", json=payload or {}, headers=headers) as response:
            try:
                body = await response.json(content_type=None) or {}
            except ValueError:
                # e.g. an HTML error page from a proxy
                logger.warning(f"Non-JSON response from {path}: HTTP {response.status}")
                raise AuthClientError(response.status, message="Invalid response body")
            if response.status >= 400:
                raise AuthClientError(response.status, body.get("code"), body.get("error"))
            return body

    async def request_otp(self, phone_number: str) -> Dict[str, Any]:
        return await self._post("/request-otp", {"phoneNumber": phone_number})

    async def verify_otp(self, phone_number: str, code: str, request_id: Optional[str] = None,
                         name: Optional[str] = None) -> Dict[str, Any]:
        payload = {"phoneNumber": phone_number, "code": code}
        if request_id:
            payload["requestId"] = request_id
        if name:
            payload["name"] = name
        data = await self._post("/verify-otp", payload)
        tokens = data["tokens"]
        self.store.set_session(tokens["accessToken"], tokens["refreshToken"], data.get("user"))
        return data

    async def refresh_access_token(self) -> Optional[str]:
        """Return a fresh access token, or None when there is no session."""
        refresh_token = self.store.refresh_token
        if not refresh_token:
            return None

        task = self._inflight.get(refresh_token)
        if task is None:
            task = asyncio.create_task(self._refresh(refresh_token))
            self._inflight[refresh_token] = task
            task.add_done_callback(lambda _t, key=refresh_token: self._inflight.pop(key, None))
        # shield: one caller giving up must not cancel the shared refresh
        return await asyncio.shield(task)

    async def _refresh(self, refresh_token: str) -> str:
        try:
            data = await self._post("/refresh", {"refreshToken": refresh_token})
        except AuthClientError:
            logger.info("Refresh rejected; clearing stored session")
            self.store.clear()
            raise
        self.store.set_session(data["accessToken"], data["refreshToken"])
        return data["accessToken"]

    async def post_authenticated(self, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """POST with the bearer token, refreshing once on 401."""
        try:
            return await self._post(path, payload, access_token=self.store.access_token)
        except AuthClientError as e:
            if e.status != 401 or not self.store.refresh_token:
                raise
        access_token = await self.refresh_access_token()
        return await self._post(path, payload, access_token=access_token)

    async def logout(self, everywhere: bool = False) -> bool:
        payload = {} if everywhere else {"refreshToken": self.store.refresh_token}
        try:
            data = await self.post_authenticated("/logout", payload)
        finally:
            self.store.clear()
        return bool(data.get("success"))
