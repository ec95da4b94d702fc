"""
Type definitions used across layers
"""

from enum import StrEnum


class GameStatus(StrEnum):
    CREATED = "CREATED"
    ONGOING = "ONGOING"
    WHITE_WIN = "WHITE_WIN"
    BLACK_WIN = "BLACK_WIN"
    DRAW = "DRAW"
    TIMEOUT = "TIMEOUT"
    RESIGN = "RESIGN"

    @property
    def is_ended(self) -> bool:
        return self in ENDED_STATUSES


ENDED_STATUSES: frozenset[GameStatus] = frozenset(
    {
        GameStatus.WHITE_WIN,
        GameStatus.BLACK_WIN,
        GameStatus.DRAW,
        GameStatus.TIMEOUT,
        GameStatus.RESIGN,
    }
)


class Side(StrEnum):
    WHITE = "WHITE"
    BLACK = "BLACK"

    @property
    def opponent(self) -> "Side":
        return Side.BLACK if self == Side.WHITE else Side.WHITE


class EndKind(StrEnum):
    CHECKMATE = "checkmate"
    STALEMATE = "stalemate"
    DRAW = "draw"
    RESIGNATION = "resignation"
    TIMEOUT = "timeout"


class Channel(StrEnum):
    """The independently polled feeds of the authority."""

    DETAILS = "details"
    CLOCK = "clock"
    MOVES = "moves"
