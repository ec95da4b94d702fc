"""
Optimistic move pipeline.

IDLE -> SELECTING -> MOVE_CHOSEN -> SUBMITTING -> IDLE

A chosen move is played on a private copy of the working position. The working position
itself only changes once the authority confirmed the move and the ledger was merged again.
"""

import logging
from enum import Enum, auto
from typing import Awaitable, Callable, Optional

from matchclient.api.client import GameApi
from matchclient.api.models import PostMoveRequest
from matchclient.core.exceptions import (
    AuthorizationError,
    GameNotOngoingError,
    IllegalActionError,
    IllegalMoveError,
    NetworkError,
    NoSelectionError,
    NotAPlayerError,
    NotYourPieceError,
    NotYourTurnError,
    SubmissionInProgressError,
)
from matchclient.core.models import Messages, PendingLocalMove
from matchclient.core.shared_types import GameStatus, Side
from matchclient.engine.merger import SnapshotMerger

logger = logging.getLogger(__name__)

SettledCallback = Callable[[], Awaitable[None]]


class MoveState(Enum):
    IDLE = auto()
    SELECTING = auto()
    MOVE_CHOSEN = auto()
    SUBMITTING = auto()


class MovePipeline:
    def __init__(
        self,
        merger: SnapshotMerger,
        api: GameApi,
        game_id: int,
        me_id: Optional[int],
        messages: Messages,
        on_confirmed: SettledCallback,
    ) -> None:
        self.merger = merger
        self.api = api
        self.game_id = game_id
        self.me_id = me_id
        self.messages = messages
        self.on_confirmed = on_confirmed

        self.state = MoveState.IDLE
        self.selected: Optional[str] = None
        self.legal_targets: set[str] = set()
        self.pending: Optional[PendingLocalMove] = None

    def my_side(self) -> Optional[Side]:
        """Seat of the local identity in the current view (recomputed every time)."""
        view = self.merger.view
        return view.side_of(self.me_id) if view else None

    # --- BOARD INTERACTION ---
    async def click(self, square: str) -> None:
        """A square was clicked: select, re-select, or try to move there."""
        try:
            self._assert_may_move()
            own = self._is_own_piece(square)
            if self.selected is None:
                if not own:
                    raise NotYourPieceError("Select one of your pieces first.")
                self.select(square)
                return
            if own:
                self.select(square)
                return
            await self.submit_move(self.selected, square)
        except IllegalActionError as exc:
            self.messages.set_info(str(exc))

    def select(self, square: str) -> None:
        self._assert_may_move()
        if not self._is_own_piece(square):
            raise NotYourPieceError("Select one of your pieces first.")
        self.selected = square
        self.legal_targets = {
            move.to_square for move in self.merger.position.legal_moves(square)
        }
        self.state = MoveState.SELECTING
        self.messages.error = None
        self.messages.set_info("Choose a target square.")

    def clear_selection(self) -> None:
        if self.state == MoveState.SUBMITTING:
            return
        self.selected = None
        self.legal_targets = set()
        self.state = MoveState.IDLE

    # --- SUBMISSION ---
    async def submit_move(self, from_square: Optional[str], to_square: str) -> bool:
        """
        Play from_square -> to_square optimistically and send it to the authority.

        Local guards raise IllegalActionError before anything is sent.
        Returns True once the authority accepted the move, False when it was rolled back.
        """
        if from_square is None:
            raise NoSelectionError("No piece selected.")
        self._assert_may_move()
        if not self._is_own_piece(from_square):
            raise NotYourPieceError(f"No piece of yours on {from_square}.")

        targets = {m.to_square for m in self.merger.position.legal_moves(from_square)}
        if to_square not in targets:
            raise IllegalMoveError(f"Illegal move: {from_square}{to_square}.")

        candidate = self.merger.position.copy()
        applied = candidate.apply_move(from_square, to_square)
        self.state = MoveState.MOVE_CHOSEN
        self.pending = PendingLocalMove(
            from_square=from_square,
            to_square=to_square,
            promotion=applied.promotion,
            san=applied.san,
            uci=applied.uci,
            fen_after=applied.fen_after,
            fen_before=self.merger.position.fen(),
        )
        request = PostMoveRequest(
            san=applied.san, uci=applied.uci, fen_after=applied.fen_after, played_ms=0
        )

        self.state = MoveState.SUBMITTING
        try:
            await self.api.post_move(self.game_id, request)
        except NetworkError as exc:
            self._roll_back(exc)
            return False

        logger.info("Move %s accepted for game %s", applied.uci, self.game_id)
        self.pending = None
        self.state = MoveState.IDLE
        self.clear_selection()
        self.messages.error = None
        self.messages.set_info("Move sent.")
        await self.on_confirmed()
        return True

    @property
    def display_fen(self) -> str:
        """What the board shows: the candidate while a submission is in flight."""
        if self.pending is not None:
            return self.pending.fen_after
        return self.merger.position.fen()

    # --- Internal helpers ---
    def _assert_may_move(self) -> None:
        if self.state == MoveState.SUBMITTING:
            raise SubmissionInProgressError("A move is already being submitted.")
        view = self.merger.view
        if view is None or view.status != GameStatus.ONGOING:
            raise GameNotOngoingError("The game is not in progress.")
        side = self.my_side()
        if side is None:
            raise NotAPlayerError("Only players can move.")
        if view.next_to_move != side:
            raise NotYourTurnError("It is not your turn.")

    def _is_own_piece(self, square: str) -> bool:
        piece = self.merger.position.piece_at(square)
        return piece is not None and piece.side == self.my_side()

    def _roll_back(self, exc: NetworkError) -> None:
        if isinstance(exc, AuthorizationError):
            message = "No access to this game."
        else:
            message = str(exc) or "Move failed."
        logger.warning("Move rejected for game %s: %s", self.game_id, exc)
        # working position was never advanced; dropping the candidate is the rollback
        self.pending = None
        self.state = MoveState.IDLE
        self.clear_selection()
        self.messages.set_error(message)
