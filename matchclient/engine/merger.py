"""
Snapshot merger.

Three feeds arrive independently and at their own pace: full game details, clock-only
snapshots and the move ledger. Each is folded into one session view here. Every fetch is
stamped with an epoch taken before the request goes out; a response older than what a
channel has already applied is dropped on arrival.
"""

import itertools
import logging
from typing import Optional, Sequence

from matchclient.api.models import ClockView, GameDetails, MoveItem
from matchclient.chess.oracle import RulesOracle
from matchclient.core.exceptions import IllegalMoveError
from matchclient.core.models import ClockBaseline
from matchclient.core.shared_types import Channel
from matchclient.engine.clock import (
    MonotonicClock,
    baseline_from_clock,
    baseline_from_details,
    monotonic_ms,
)
from matchclient.engine.notifier import TerminalNotifier

logger = logging.getLogger(__name__)


class SnapshotMerger:
    def __init__(
        self,
        position: RulesOracle,
        notifier: TerminalNotifier,
        clock: MonotonicClock = monotonic_ms,
    ) -> None:
        self.position = position
        self.notifier = notifier
        self.clock = clock

        self.view: Optional[GameDetails] = None
        self.baseline: Optional[ClockBaseline] = None
        self.ledger: list[MoveItem] = []
        self.has_position = False
        self.rebuild_count = 0

        self._epochs = itertools.count(1)
        self._applied: dict[Channel, int] = {}
        self._baseline_epoch = 0

    def issue_epoch(self) -> int:
        """Stamp for a request that is about to be sent."""
        return next(self._epochs)

    # --- FEEDS ---
    def on_details(self, snapshot: GameDetails, epoch: Optional[int] = None) -> bool:
        """Replace the view wholesale. Returns False when the snapshot was not applied."""
        if not self._accept(Channel.DETAILS, epoch):
            return False
        if (
            self.view is not None
            and self.view.status.is_ended
            and not snapshot.status.is_ended
        ):
            logger.warning(
                "Ignoring status downgrade %s -> %s for game %s",
                self.view.status,
                snapshot.status,
                snapshot.id,
            )
            return False

        self.view = snapshot
        self._replace_baseline(baseline_from_details(snapshot, self.clock()), epoch)
        self.notifier.observe(snapshot)
        return True

    def on_clock_only(self, snapshot: ClockView, epoch: Optional[int] = None) -> bool:
        """Refresh remaining times and running flag only; status and identities are left alone."""
        if not self._accept(Channel.CLOCK, epoch):
            return False
        return self._replace_baseline(
            baseline_from_clock(snapshot, self.baseline, self.clock()), epoch
        )

    def on_moves(self, ledger: Sequence[MoveItem], epoch: Optional[int] = None) -> bool:
        """
        Rebuild the working position when the ledger grew. Returns True on rebuild.

        The ledger only grows within a game, so a shorter list is ignored.
        """
        if not self._accept(Channel.MOVES, epoch):
            return False
        if self.has_position and len(ledger) == len(self.ledger):
            return False
        if self.has_position and len(ledger) < len(self.ledger):
            logger.warning(
                "Ignoring move list of %d plies, %d already applied",
                len(ledger),
                len(self.ledger),
            )
            return False

        self.ledger = list(ledger)
        self._rebuild()
        return True

    # --- Internal helpers ---
    def _accept(self, channel: Channel, epoch: Optional[int]) -> bool:
        """
        Staleness is judged per channel against the newest epoch that channel applied,
        not against the newest request issued. A slow response still lands as long as
        nothing newer arrived on its channel first.
        """
        if epoch is None:
            return True
        if epoch < self._applied.get(channel, 0):
            logger.debug("Dropping stale %s response (epoch %d)", channel, epoch)
            return False
        self._applied[channel] = epoch
        return True

    def _replace_baseline(self, baseline: ClockBaseline, epoch: Optional[int]) -> bool:
        if epoch is not None:
            if epoch < self._baseline_epoch:
                logger.debug("Keeping newer clock baseline (epoch %d)", self._baseline_epoch)
                return False
            self._baseline_epoch = epoch
        self.baseline = baseline
        return True

    def _rebuild(self) -> None:
        # Stored positions are authoritative; SAN replay is only the fallback.
        self.position.reset()
        for move in self.ledger:
            if move.fen_after:
                try:
                    self.position.load(move.fen_after)
                    continue
                except IllegalMoveError:
                    logger.warning("Ply %d has an unreadable position, replaying SAN", move.ply)
            if move.san:
                try:
                    self.position.play_san(move.san)
                except IllegalMoveError:
                    logger.warning("Could not replay ply %d (%s)", move.ply, move.san)
        self.has_position = True
        self.rebuild_count += 1
        logger.debug("Rebuilt working position from %d moves", len(self.ledger))
