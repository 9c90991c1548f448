"""
Explicit API session for feed clients.

Holds the bearer token and the logged-in user instead of global state: a
session starts empty, ``login``/``register`` fill it and ``logout``/``close``
tear it down. It is also an async context manager.
"""

from typing import Any, Callable, Dict, Optional
import logging

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.core.exceptions import TransientIOError, UnauthenticatedError, error_from_response
from app.modules.user_management.schemas.user import User

logger = logging.getLogger(__name__)

class ApiSession:
    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
        retry_attempts: int = 3,
        retry_min_wait: float = 0.5,
        retry_max_wait: float = 5.0,
        on_unauthorized: Optional[Callable[[], None]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.user: Optional[User] = None
        self.retry_attempts = retry_attempts
        self.retry_min_wait = retry_min_wait
        self.retry_max_wait = retry_max_wait
        self.on_unauthorized = on_unauthorized
        self._client = httpx.AsyncClient(base_url=self.base_url, transport=transport, timeout=timeout)

    async def __aenter__(self) -> "ApiSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _start(self, body: Dict[str, Any]) -> User:
        self.token = body["token"]
        self.user = User.model_validate(body["user"])
        logger.info(f"Session started for user {self.user.id}")
        return self.user

    def _teardown(self) -> None:
        self.token = None
        self.user = None

    async def register(self, first_name: str, last_name: str, email: str, password: str) -> User:
        body = await self.request("POST", "/auth/user/register", json={
            "first_name": first_name,
            "last_name": last_name,
            "email": email,
            "password": password,
        })
        return self._start(body)

    async def login(self, email: str, password: str) -> User:
        body = await self.request("POST", "/auth/user/login", json={"email": email, "password": password})
        return self._start(body)

    async def logout(self) -> None:
        """End the session; the local token is dropped even if the server call fails"""
        if not self.token:
            return
        try:
            await self.request("POST", "/auth/user/logout")
        except (TransientIOError, UnauthenticatedError) as e:
            logger.warning(f"Logout request failed, dropping session anyway: {e}")
        finally:
            self._teardown()

    async def close(self) -> None:
        self._teardown()
        await self._client.aclose()

    async def request(self, method: str, path: str, **kwargs) -> Any:
        """
        Send a request and return the decoded JSON body.

        Error responses raise the matching app.core.exceptions error. GETs are
        retried with exponential backoff on transient failures; mutations are
        sent exactly once since replaying a like toggle would undo it.
        """
        if method.upper() != "GET":
            return await self._send(method, path, **kwargs)

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=self.retry_min_wait, min=self.retry_min_wait, max=self.retry_max_wait),
            retry=retry_if_exception_type(TransientIOError),
            reraise=True,
        ):
            with attempt:
                return await self._send(method, path, **kwargs)

    async def _send(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.TransportError as e:
            logger.warning(f"{method} {path} failed: {e!r}")
            raise TransientIOError(f"Network error: {e}") from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            error = error_from_response(response.status_code, body)
            if response.status_code == 401 and self.token:
                logger.info("Token rejected, tearing down session")
                self._teardown()
                if self.on_unauthorized:
                    self.on_unauthorized()
            raise error

        if not response.content:
            return None
        return response.json()
