"""Requests and Response models (wire format of the authority, camelCase on the wire)"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from matchclient.core.shared_types import GameStatus, Side


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


# --- RESPONSE MODELS ---
class GameDetails(WireModel):
    """Full snapshot of one game. Replaced wholesale on every successful fetch."""

    id: int
    white_id: Optional[int] = None
    black_id: Optional[int] = None
    white_username: Optional[str] = None
    black_username: Optional[str] = None
    status: GameStatus
    white_ms: int = 0
    black_ms: int = 0
    running: bool = False
    next_to_move: Optional[Side] = None
    draw_offer_by: Optional[int] = None

    def side_of(self, user_id: Optional[int]) -> Optional[Side]:
        """Seat of the given identity in this game, if any."""
        if user_id is None:
            return None
        if self.white_id == user_id:
            return Side.WHITE
        if self.black_id == user_id:
            return Side.BLACK
        return None

    def display_name(self, side: Side) -> str:
        name, user_id = (
            (self.white_username, self.white_id)
            if side == Side.WHITE
            else (self.black_username, self.black_id)
        )
        if name:
            return name
        return str(user_id) if user_id is not None else "-"


class ClockView(WireModel):
    """Clock-only snapshot. Fields left out by the authority stay None."""

    white_ms: Optional[int] = None
    black_ms: Optional[int] = None
    running: Optional[bool] = None
    status: Optional[str] = None


class MoveItem(WireModel):
    id: int
    ply: int
    san: str = ""
    uci: str = ""
    fen_after: str = ""
    played_ms: int = 0

    @field_validator("san", "uci", "fen_after", mode="before")
    @classmethod
    def none_to_empty(cls, value: Optional[str]) -> str:
        return value or ""


# --- REQUEST MODELS ---
class PostMoveRequest(WireModel):
    san: str
    uci: str
    fen_after: str
    played_ms: int = 0

    @field_validator("uci")
    @classmethod
    def validate_uci(cls, value: str) -> str:
        if len(value) not in (4, 5):
            raise ValueError(f"Cannot interpret {value!r} as a move in UCI notation.")
        return value.lower()
