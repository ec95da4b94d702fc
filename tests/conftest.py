"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures and fakes required for testing multiple layers.
"""

import base64
import json
from typing import Awaitable, Callable, Generator, Optional

import pytest
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from matchclient.api.models import ClockView, GameDetails, MoveItem, PostMoveRequest
from matchclient.core.exceptions import NetworkError
from matchclient.core.shared_types import GameStatus, Side
from matchclient.db.schema import Base

WHITE_ID = 1
BLACK_ID = 2
GAME_ID = 42

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)


@pytest.fixture
def db_session_repo() -> Generator[Session, None, None]:
    """Connection to a test database. Tables are removed at teardown to keep repository tests independent."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        Base.metadata.drop_all(bind=engine)
        db.close()


# --- BUILDERS ---
def make_details(
    status: GameStatus = GameStatus.ONGOING,
    next_to_move: Optional[Side] = Side.WHITE,
    white_ms: int = 300_000,
    black_ms: int = 300_000,
    running: bool = True,
    game_id: int = GAME_ID,
    draw_offer_by: Optional[int] = None,
) -> GameDetails:
    return GameDetails(
        id=game_id,
        white_id=WHITE_ID,
        black_id=BLACK_ID,
        white_username="whitey",
        black_username="blackbeard",
        status=status,
        white_ms=white_ms,
        black_ms=black_ms,
        running=running,
        next_to_move=next_to_move,
        draw_offer_by=draw_offer_by,
    )


def make_move(ply: int, san: str = "", uci: str = "", fen_after: str = "") -> MoveItem:
    return MoveItem(id=ply, ply=ply, san=san, uci=uci, fen_after=fen_after, played_ms=0)


def make_token(claims: dict) -> str:
    """Unsigned JWT carrying the given claims."""

    def encode(part: dict) -> str:
        raw = json.dumps(part).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    return f"{encode({'alg': 'none'})}.{encode(claims)}.signature"


# --- MOCK DEPENDENCIES ---
class FakeClock:
    """Monotonic clock in milliseconds that only moves when told to."""

    def __init__(self, start: float = 10_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class MockTokenRepository:
    """Mock the TokenRepository using a dictionary."""

    def __init__(self) -> None:
        self.tokens: dict[str, str] = {}

    def get_token(self, key: str) -> str | None:
        return self.tokens.get(key)

    def set_token(self, key: str, token: str) -> None:
        self.tokens[key] = token

    def delete_token(self, key: str) -> None:
        self.tokens.pop(key, None)


class FakeGameApi:
    """
    In-memory authority.

    Records every call by endpoint name; an entry in `errors` makes that endpoint raise.
    Accepted moves are appended to the ledger and flip the side to move, like the real service.
    """

    def __init__(self, details: Optional[GameDetails] = None) -> None:
        self.details = details if details is not None else make_details()
        self.clock = ClockView(
            white_ms=self.details.white_ms,
            black_ms=self.details.black_ms,
            running=self.details.running,
            status=self.details.status,
        )
        self.moves: list[MoveItem] = []
        self.errors: dict[str, NetworkError] = {}
        self.calls: list[str] = []
        self.posted: list[PostMoveRequest] = []
        self.post_hook: Optional[Callable[[], Awaitable[None]]] = None

    async def get_details(self, game_id: int) -> GameDetails:
        self._record("details")
        return self.details

    async def get_clock(self, game_id: int) -> ClockView:
        self._record("clock")
        return self.clock

    async def get_moves(self, game_id: int) -> list[MoveItem]:
        self._record("moves")
        return list(self.moves)

    async def post_move(self, game_id: int, move: PostMoveRequest) -> None:
        if self.post_hook is not None:
            await self.post_hook()
        self._record("move")
        self.posted.append(move)
        ply = len(self.moves) + 1
        self.moves.append(make_move(ply, move.san, move.uci, move.fen_after))
        if self.details.next_to_move is not None:
            self.details = self.details.model_copy(
                update={"next_to_move": self.details.next_to_move.opponent}
            )

    async def resign(self, game_id: int) -> None:
        self._record("resign")

    async def offer_draw(self, game_id: int) -> None:
        self._record("draw/offer")

    async def accept_draw(self, game_id: int) -> None:
        self._record("draw/accept")

    async def decline_draw(self, game_id: int) -> None:
        self._record("draw/decline")

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.errors:
            raise self.errors[name]


@pytest.fixture
def fake_api() -> FakeGameApi:
    return FakeGameApi()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token_repository() -> MockTokenRepository:
    return MockTokenRepository()
