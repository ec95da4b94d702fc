"""
Boundary layer data model(s).

Plain dataclasses shared by the engine, the services and the tests.
(Decouples the wire format of the authority from what the engine reasons about.)
"""

from dataclasses import dataclass
from typing import Optional

from matchclient.core.shared_types import EndKind, GameStatus, Side

# Type aliases to make the models easier to read
Milliseconds = float
SquareName = str


@dataclass(frozen=True)
class ClockBaseline:
    """Last authoritative clock reading plus the monotonic instant it was captured."""

    white_ms: Milliseconds
    black_ms: Milliseconds
    running: bool
    side_to_move: Optional[Side]
    anchor_ms: Milliseconds

    def stored_for(self, side: Side) -> Milliseconds:
        return self.white_ms if side == Side.WHITE else self.black_ms


@dataclass(frozen=True)
class PendingLocalMove:
    """A move shown to the player before the authority confirmed it."""

    from_square: SquareName
    to_square: SquareName
    promotion: Optional[str]
    san: str
    uci: str
    fen_after: str
    fen_before: str


@dataclass(frozen=True)
class EndState:
    kind: EndKind
    winner: Optional[Side] = None


@dataclass(frozen=True)
class EndNotice:
    """Payload of the one-shot end-of-game signal."""

    game_id: int
    status: GameStatus
    reason: str
    white: str
    black: str


@dataclass(frozen=True)
class AuthUser:
    id: int
    username: str
    email: str


@dataclass
class Messages:
    """User-visible feedback: at most one error and one informational line."""

    error: Optional[str] = None
    info: Optional[str] = None

    def set_error(self, message: str) -> None:
        self.error = message
        self.info = None

    def set_info(self, message: str) -> None:
        self.info = message

    def clear(self) -> None:
        self.error = None
        self.info = None
