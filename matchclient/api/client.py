"""
HTTP access to the authority.

GameApi is the contract the engine depends on; AiohttpGameApi implements it on top of aiohttp.
Every request carries the bearer token handed out by the auth session at call time.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Optional, Protocol, TypeVar

import aiohttp
from pydantic import BaseModel, ValidationError

from matchclient.api.models import ClockView, GameDetails, MoveItem, PostMoveRequest
from matchclient.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    MalformedResponseError,
    NetworkError,
    SubmissionRejectedError,
    TransientNetworkError,
)

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Optional[str]]
ModelT = TypeVar("ModelT", bound=BaseModel)


class GameApi(Protocol):
    """Request/response endpoints of the authority for a single game."""

    async def get_details(self, game_id: int) -> GameDetails: ...

    async def get_clock(self, game_id: int) -> ClockView: ...

    async def get_moves(self, game_id: int) -> list[MoveItem]: ...

    async def post_move(self, game_id: int, move: PostMoveRequest) -> None: ...

    async def resign(self, game_id: int) -> None: ...

    async def offer_draw(self, game_id: int) -> None: ...

    async def accept_draw(self, game_id: int) -> None: ...

    async def decline_draw(self, game_id: int) -> None: ...


def coerce_moves(payload: Any) -> list[MoveItem]:
    """
    A payload that is not a list counts as an empty ledger. A list with a broken record is
    rejected as a whole: the merger must never see a ledger with holes in it.
    """
    if not isinstance(payload, list):
        if payload:
            logger.warning("Move list payload is not a list: %r", type(payload))
        return []
    try:
        return [MoveItem.model_validate(item) for item in payload]
    except ValidationError as exc:
        raise MalformedResponseError(f"Invalid move list payload: {exc}") from exc


class AiohttpGameApi:
    """GameApi backed by an aiohttp ClientSession (created lazily inside the running loop)."""

    def __init__(
        self,
        api_base: str,
        token_provider: TokenProvider,
        timeout_s: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.api_base = api_base.rstrip("/")
        self._token_provider = token_provider
        self._timeout = aiohttp.ClientTimeout(total=timeout_s)
        self._session = session
        self._owns_session = session is None

    # -- GameApi --
    async def get_details(self, game_id: int) -> GameDetails:
        payload = await self._request("GET", f"/games/{game_id}/details")
        return self._parse(GameDetails, payload)

    async def get_clock(self, game_id: int) -> ClockView:
        payload = await self._request("GET", f"/games/{game_id}/clock")
        return self._parse(ClockView, payload or {})

    async def get_moves(self, game_id: int) -> list[MoveItem]:
        payload = await self._request("GET", f"/games/{game_id}/moves")
        return coerce_moves(payload)

    async def post_move(self, game_id: int, move: PostMoveRequest) -> None:
        await self._request(
            "POST", f"/games/{game_id}/move", body=move.model_dump(by_alias=True)
        )

    async def resign(self, game_id: int) -> None:
        await self._request("POST", f"/games/{game_id}/resign", body={})

    async def offer_draw(self, game_id: int) -> None:
        await self._request("POST", f"/games/{game_id}/draw/offer", body={})

    async def accept_draw(self, game_id: int) -> None:
        await self._request("POST", f"/games/{game_id}/draw/accept", body={})

    async def decline_draw(self, game_id: int) -> None:
        await self._request("POST", f"/games/{game_id}/draw/decline", body={})

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    # -- Internal helpers --
    def _headers(self) -> dict[str, str]:
        token = self._token_provider()
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _client(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def _request(
        self, method: str, path: str, body: Optional[dict[str, Any]] = None
    ) -> Any:
        """Send one request and return the decoded JSON body (None when empty)."""
        url = self.api_base + path
        try:
            async with self._client().request(
                method, url, json=body, headers=self._headers()
            ) as response:
                text = await response.text()
                if response.status >= 400:
                    raise self._error_for(method, path, response.status, text)
        except NetworkError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransientNetworkError(f"{method} {path} failed: {exc!r}") from exc

        if not text.strip():
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedResponseError(
                f"{method} {path} returned a body that is not JSON", response.status
            ) from exc

    @staticmethod
    def _error_for(method: str, path: str, status: int, text: str) -> NetworkError:
        detail = _error_detail(text)
        message = f"{method} {path} -> {status}: {detail}"
        if status == 403:
            return AuthorizationError(message, status)
        if status == 401:
            return AuthenticationError(message, status)
        if method == "POST" and 400 <= status < 500:
            return SubmissionRejectedError(detail or f"Rejected ({status})", status)
        return TransientNetworkError(message, status)

    @staticmethod
    def _parse(model: type[ModelT], payload: Any) -> ModelT:
        if not isinstance(payload, dict):
            raise MalformedResponseError(
                f"Expected an object for {model.__name__}, got {type(payload).__name__}"
            )
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise MalformedResponseError(
                f"Invalid {model.__name__} payload: {exc}"
            ) from exc


def _error_detail(text: str) -> str:
    """Pull a readable message out of an error body (JSON {message|error|detail} or plain text)."""
    try:
        decoded = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return text.strip()
    if isinstance(decoded, dict):
        for key in ("message", "error", "detail"):
            if decoded.get(key):
                return str(decoded[key])
    return text.strip()
