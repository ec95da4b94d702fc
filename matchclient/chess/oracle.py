"""
Rules-engine oracle.

The engine never talks to a chess library directly: it goes through RulesOracle.
Each supported rules engine gets exactly one implementation, picked by name once at startup.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Self

import chess

from matchclient.core.exceptions import ConfigurationError, IllegalMoveError
from matchclient.core.models import EndState
from matchclient.core.shared_types import EndKind, Side

# Promotion choice when a pawn reaches the last rank (no under-promotion prompt)
DEFAULT_PROMOTION = "q"


@dataclass(frozen=True)
class LegalMove:
    from_square: str
    to_square: str
    san: str
    uci: str
    promotion: Optional[str] = None


@dataclass(frozen=True)
class AppliedMove:
    san: str
    uci: str
    fen_after: str
    promotion: Optional[str] = None


@dataclass(frozen=True)
class BoardPiece:
    side: Side
    symbol: str  # FEN letter: upper case white, lower case black


class RulesOracle(ABC):
    """Contract consumed from the rules engine."""

    @abstractmethod
    def reset(self) -> None:
        """Back to the standard starting position."""

    @abstractmethod
    def load(self, fen: str) -> None: ...

    @abstractmethod
    def fen(self) -> str: ...

    @abstractmethod
    def legal_moves(self, square: str) -> list[LegalMove]:
        """All legal moves starting on the given square."""

    @abstractmethod
    def apply_move(
        self, from_square: str, to_square: str, promotion: Optional[str] = None
    ) -> AppliedMove:
        """Play a move given in coordinates. Raises IllegalMoveError if it is not legal."""

    @abstractmethod
    def play_san(self, san: str) -> AppliedMove: ...

    @abstractmethod
    def piece_at(self, square: str) -> Optional[BoardPiece]: ...

    @abstractmethod
    def side_to_move(self) -> Side: ...

    @abstractmethod
    def is_checkmate(self) -> bool: ...

    @abstractmethod
    def is_stalemate(self) -> bool: ...

    @abstractmethod
    def is_draw(self) -> bool: ...

    @abstractmethod
    def is_game_over(self) -> bool: ...

    @abstractmethod
    def copy(self) -> Self:
        """Independent position; changes to the copy never reach the original."""

    def end_state(self) -> Optional[EndState]:
        """Outcome of the current position, None while the game can continue."""
        if not self.is_game_over():
            return None
        if self.is_checkmate():
            # the side to move has just been mated
            return EndState(EndKind.CHECKMATE, winner=self.side_to_move().opponent)
        if self.is_stalemate():
            return EndState(EndKind.STALEMATE)
        return EndState(EndKind.DRAW)


class PythonChessOracle(RulesOracle):
    """RulesOracle on top of python-chess."""

    def __init__(self, board: Optional[chess.Board] = None) -> None:
        self.board = board if board is not None else chess.Board()

    def reset(self) -> None:
        self.board.reset()

    def load(self, fen: str) -> None:
        try:
            self.board.set_fen(fen)
        except ValueError as exc:
            raise IllegalMoveError(f"Cannot load position {fen!r}: {exc}") from exc

    def fen(self) -> str:
        return self.board.fen()

    def legal_moves(self, square: str) -> list[LegalMove]:
        origin = _parse_square(square)
        return [
            LegalMove(
                from_square=chess.square_name(move.from_square),
                to_square=chess.square_name(move.to_square),
                san=self.board.san(move),
                uci=move.uci(),
                promotion=chess.piece_symbol(move.promotion) if move.promotion else None,
            )
            for move in self.board.legal_moves
            if move.from_square == origin
        ]

    def apply_move(
        self, from_square: str, to_square: str, promotion: Optional[str] = None
    ) -> AppliedMove:
        origin, target = _parse_square(from_square), _parse_square(to_square)
        candidates = [
            move
            for move in self.board.legal_moves
            if move.from_square == origin and move.to_square == target
        ]
        if not candidates:
            raise IllegalMoveError(f"Move not allowed: {from_square}{to_square}")

        move = candidates[0]
        if len(candidates) > 1 or move.promotion:
            wanted = chess.PIECE_SYMBOLS.index((promotion or DEFAULT_PROMOTION).lower())
            move = next((m for m in candidates if m.promotion == wanted), None)
            if move is None:
                raise IllegalMoveError(
                    f"Cannot promote to {promotion!r} on {from_square}{to_square}"
                )
        return self._push(move)

    def play_san(self, san: str) -> AppliedMove:
        try:
            move = self.board.parse_san(san)
        except ValueError as exc:
            raise IllegalMoveError(f"Cannot play {san!r}: {exc}") from exc
        return self._push(move)

    def piece_at(self, square: str) -> Optional[BoardPiece]:
        piece = self.board.piece_at(_parse_square(square))
        if piece is None:
            return None
        side = Side.WHITE if piece.color == chess.WHITE else Side.BLACK
        return BoardPiece(side=side, symbol=piece.symbol())

    def side_to_move(self) -> Side:
        return Side.WHITE if self.board.turn == chess.WHITE else Side.BLACK

    def is_checkmate(self) -> bool:
        return self.board.is_checkmate()

    def is_stalemate(self) -> bool:
        return self.board.is_stalemate()

    def is_draw(self) -> bool:
        return (
            self.board.is_stalemate()
            or self.board.is_insufficient_material()
            or self.board.is_seventyfive_moves()
            or self.board.is_fivefold_repetition()
            or self.board.can_claim_draw()
        )

    def is_game_over(self) -> bool:
        return self.board.is_checkmate() or self.is_draw()

    def copy(self) -> Self:
        return type(self)(self.board.copy())

    def _push(self, move: chess.Move) -> AppliedMove:
        san = self.board.san(move)
        self.board.push(move)
        return AppliedMove(
            san=san,
            uci=move.uci(),
            fen_after=self.board.fen(),
            promotion=chess.piece_symbol(move.promotion) if move.promotion else None,
        )


def _parse_square(square: str) -> chess.Square:
    try:
        return chess.parse_square(square.lower())
    except ValueError as exc:
        raise IllegalMoveError(f"Cannot interpret {square!r} as a square name.") from exc


ORACLES: dict[str, type[RulesOracle]] = {
    "python-chess": PythonChessOracle,
}


def select_oracle(name: str) -> type[RulesOracle]:
    """Resolve the rules-engine implementation once, at startup."""
    try:
        return ORACLES[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown rules engine {name!r}. Pick one from {', '.join(ORACLES)}"
        ) from None
