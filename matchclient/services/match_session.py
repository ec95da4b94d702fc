"""
Orchestration of the live match engine for one viewed game.

A MatchSession owns the view, the clock baseline, the ledger, the working position and all
timers of exactly one game. Switching games means stopping the session and building a new one
(MatchViewer does that); a session is never pointed at another game.
"""

import logging
from typing import Awaitable, Callable, Optional

from matchclient.api.client import GameApi
from matchclient.api.models import GameDetails
from matchclient.chess.oracle import PythonChessOracle, RulesOracle
from matchclient.core.config import ClientSettings
from matchclient.core.exceptions import (
    AuthorizationError,
    ConfigurationError,
    DrawAlreadyOfferedError,
    GameNotOngoingError,
    IllegalActionError,
    NetworkError,
    NoDrawOfferError,
    NotAPlayerError,
)
from matchclient.core.models import EndState, Messages, Milliseconds
from matchclient.core.shared_types import Channel, EndKind, GameStatus, Side
from matchclient.engine.clock import MonotonicClock, format_ms, monotonic_ms, remaining
from matchclient.engine.merger import SnapshotMerger
from matchclient.engine.moves import MovePipeline
from matchclient.engine.notifier import EndListener, TerminalNotifier
from matchclient.engine.scheduler import PollIntervals, PollScheduler
from matchclient.services.auth import AuthSession

logger = logging.getLogger(__name__)

NO_ACCESS = "No access to this game."
NO_MOVES_ACCESS = "You do not have permission to see the moves of this game."

WINNERS: dict[GameStatus, Side] = {
    GameStatus.WHITE_WIN: Side.WHITE,
    GameStatus.BLACK_WIN: Side.BLACK,
}


def parse_game_id(raw: int | str) -> int:
    """Resolve the game identity once. Anything that is not a positive integer is fatal."""
    try:
        game_id = int(raw)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Cannot resolve game id {raw!r}.") from None
    if game_id <= 0:
        raise ConfigurationError(f"Cannot resolve game id {raw!r}.")
    return game_id


def intervals_from(settings: ClientSettings) -> PollIntervals:
    return PollIntervals(
        fast_s=settings.fast_tick_s,
        medium_s=settings.medium_tick_s,
        slow_s=settings.slow_tick_s,
        watchdog_s=settings.watchdog_tick_s,
        watchdog_cooldown_s=settings.watchdog_cooldown_s,
    )


class MatchSession:
    """Session-scoped live match engine."""

    def __init__(
        self,
        game_id: int | str,
        api: GameApi,
        auth: AuthSession,
        *,
        oracle: Optional[RulesOracle] = None,
        intervals: PollIntervals = PollIntervals(),
        clock: MonotonicClock = monotonic_ms,
        on_end: Optional[EndListener] = None,
        on_render: Optional[Callable[["MatchSession"], None]] = None,
    ) -> None:
        self.game_id = parse_game_id(game_id)
        self.api = api
        user = auth.user()
        self.me_id = user.id if user else None
        self.clock = clock
        self.on_render = on_render

        self.messages = Messages()
        self.halted: set[Channel] = set()
        self.notifier = TerminalNotifier(on_end)
        self.merger = SnapshotMerger(oracle or PythonChessOracle(), self.notifier, clock)
        self.pipeline = MovePipeline(
            self.merger,
            api,
            self.game_id,
            self.me_id,
            self.messages,
            on_confirmed=self._after_confirmed_move,
        )
        self.scheduler = PollScheduler(self, intervals)

    # --- LIFECYCLE ---
    async def start(self) -> None:
        await self.initial_load()
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()

    async def initial_load(self) -> None:
        await self.refresh_details()
        await self.refresh_moves()

    # --- READ SIDE ---
    @property
    def view(self) -> Optional[GameDetails]:
        return self.merger.view

    @property
    def my_side(self) -> Optional[Side]:
        return self.pipeline.my_side()

    @property
    def display_fen(self) -> str:
        return self.pipeline.display_fen

    def remaining_ms(self, side: Side) -> Milliseconds:
        view, baseline = self.merger.view, self.merger.baseline
        if view is None or baseline is None:
            return 0.0
        return remaining(side, baseline, self.clock(), view.status)

    def clock_text(self, side: Side) -> str:
        return format_ms(self.remaining_ms(side))

    def active_remaining_ms(self) -> Optional[Milliseconds]:
        view = self.merger.view
        if view is None or view.status != GameStatus.ONGOING or view.next_to_move is None:
            return None
        return self.remaining_ms(view.next_to_move)

    def end_state(self) -> Optional[EndState]:
        """
        How the game ended, None while it goes on.

        An ended status from the authority is final; the working position only tells how.
        A win without mate on the board was a resignation. TIMEOUT is lost by the side to
        move. RESIGN does not say who resigned, so it carries no winner.
        """
        position_end = self.merger.position.end_state() if self.merger.has_position else None
        view = self.merger.view
        if view is None or not view.status.is_ended:
            return position_end

        if view.status in WINNERS:
            winner = WINNERS[view.status]
            if position_end is not None and position_end.kind == EndKind.CHECKMATE:
                return EndState(EndKind.CHECKMATE, winner=winner)
            return EndState(EndKind.RESIGNATION, winner=winner)
        if view.status == GameStatus.DRAW:
            if position_end is not None and position_end.kind == EndKind.STALEMATE:
                return position_end
            return EndState(EndKind.DRAW)
        if view.status == GameStatus.TIMEOUT:
            loser = view.next_to_move
            return EndState(EndKind.TIMEOUT, winner=loser.opponent if loser else None)
        return EndState(EndKind.RESIGNATION)

    def render(self) -> None:
        if self.on_render is not None:
            self.on_render(self)

    # --- POLLING ---
    async def refresh_details_and_clock(self) -> None:
        await self.refresh_details()
        await self.refresh_clock()

    async def refresh_details(self) -> None:
        if Channel.DETAILS in self.halted:
            return
        epoch = self.merger.issue_epoch()
        try:
            details = await self.api.get_details(self.game_id)
        except AuthorizationError:
            self._halt(Channel.DETAILS, NO_ACCESS)
            return
        except NetworkError as exc:
            logger.warning("Details refresh for game %s failed: %s", self.game_id, exc)
            return
        self.merger.on_details(details, epoch)

    async def refresh_clock(self) -> None:
        if Channel.CLOCK in self.halted:
            return
        epoch = self.merger.issue_epoch()
        try:
            clock = await self.api.get_clock(self.game_id)
        except AuthorizationError:
            self._halt(Channel.CLOCK, NO_ACCESS)
            return
        except NetworkError as exc:
            logger.warning("Clock refresh for game %s failed: %s", self.game_id, exc)
            return
        self.merger.on_clock_only(clock, epoch)

    async def refresh_moves(self) -> None:
        if Channel.MOVES in self.halted or self.merger.view is None:
            return
        epoch = self.merger.issue_epoch()
        try:
            moves = await self.api.get_moves(self.game_id)
        except AuthorizationError:
            self._halt(Channel.MOVES, NO_MOVES_ACCESS)
            return
        except NetworkError as exc:
            logger.warning("Move refresh for game %s failed: %s", self.game_id, exc)
            return
        if self.merger.on_moves(moves, epoch):
            self.pipeline.clear_selection()

    # --- PLAYER ACTIONS ---
    async def click(self, square: str) -> None:
        await self.pipeline.click(square)

    async def move(self, from_square: str, to_square: str) -> bool:
        """Submit a move directly. Local rejections end up in messages.info."""
        try:
            return await self.pipeline.submit_move(from_square, to_square)
        except IllegalActionError as exc:
            self.messages.set_info(str(exc))
            return False

    async def resign(self) -> bool:
        return await self._terminal_action(self.api.resign, "resign")

    async def offer_draw(self) -> bool:
        return await self._terminal_action(
            self.api.offer_draw, "offer a draw", offer_pending=False
        )

    async def accept_draw(self) -> bool:
        return await self._terminal_action(
            self.api.accept_draw, "accept the draw", offer_pending=True
        )

    async def decline_draw(self) -> bool:
        return await self._terminal_action(
            self.api.decline_draw, "decline the draw", offer_pending=True
        )

    # --- Internal helpers ---
    async def _after_confirmed_move(self) -> None:
        await self.refresh_moves()
        await self.refresh_details()

    async def _terminal_action(
        self,
        call: Callable[[int], Awaitable[None]],
        label: str,
        offer_pending: Optional[bool] = None,
    ) -> bool:
        try:
            self._assert_may_act(offer_pending)
        except IllegalActionError as exc:
            self.messages.set_info(str(exc))
            return False
        try:
            await call(self.game_id)
        except AuthorizationError:
            self.messages.set_error(NO_ACCESS)
            return False
        except NetworkError as exc:
            logger.warning("Could not %s in game %s: %s", label, self.game_id, exc)
            self.messages.set_error(f"Could not {label}: {exc}")
            return False
        await self.refresh_details()
        return True

    def _assert_may_act(self, offer_pending: Optional[bool]) -> None:
        """offer_pending: True needs an offer from the opponent, False needs no open offer."""
        view = self.merger.view
        if view is None or view.status != GameStatus.ONGOING:
            raise GameNotOngoingError("The game is not in progress.")
        if view.side_of(self.me_id) is None:
            raise NotAPlayerError("Only players can do that.")
        if offer_pending is True and (
            view.draw_offer_by is None or view.draw_offer_by == self.me_id
        ):
            raise NoDrawOfferError("There is no draw offer from your opponent.")
        if offer_pending is False and view.draw_offer_by is not None:
            raise DrawAlreadyOfferedError("A draw offer is already open.")

    def _halt(self, channel: Channel, message: str) -> None:
        if channel not in self.halted:
            logger.warning("403 on %s for game %s, polling stopped", channel, self.game_id)
        self.halted.add(channel)
        self.messages.set_error(message)


SessionFactory = Callable[[int | str], MatchSession]


class MatchViewer:
    """Holds the one live session. Opening another game tears the current one down first."""

    def __init__(self, factory: SessionFactory) -> None:
        self.factory = factory
        self.current: Optional[MatchSession] = None

    async def open(self, game_id: int | str) -> MatchSession:
        await self.close()
        session = self.factory(game_id)
        self.current = session
        await session.start()
        return session

    async def close(self) -> None:
        session, self.current = self.current, None
        if session is not None:
            await session.stop()
