"""
Clock extrapolation between authoritative snapshots.

The authority is the clock: locally we only count down the side to move from the last
baseline, and only while the baseline says the clock is running in an ongoing game.
"""

import time
from typing import Callable, Optional

from matchclient.api.models import ClockView, GameDetails
from matchclient.core.models import ClockBaseline, Milliseconds
from matchclient.core.shared_types import GameStatus, Side

MonotonicClock = Callable[[], Milliseconds]


def monotonic_ms() -> Milliseconds:
    return time.monotonic() * 1000.0


def remaining(
    side: Side,
    baseline: ClockBaseline,
    now: Milliseconds,
    status: Optional[GameStatus] = GameStatus.ONGOING,
) -> Milliseconds:
    """Remaining time of `side` at monotonic instant `now`."""
    stored = baseline.stored_for(side)
    if not baseline.running or status != GameStatus.ONGOING:
        return stored
    if side != baseline.side_to_move:
        return stored
    elapsed = max(0.0, now - baseline.anchor_ms)
    return max(0.0, stored - elapsed)


def baseline_from_details(details: GameDetails, now: Milliseconds) -> ClockBaseline:
    return ClockBaseline(
        white_ms=details.white_ms,
        black_ms=details.black_ms,
        running=details.running and details.status == GameStatus.ONGOING,
        side_to_move=details.next_to_move,
        anchor_ms=now,
    )


def baseline_from_clock(
    clock: ClockView, previous: Optional[ClockBaseline], now: Milliseconds
) -> ClockBaseline:
    """Clock-only refresh: new remaining values and running flag, side to move carried over."""
    return ClockBaseline(
        white_ms=_pick(clock.white_ms, previous.white_ms if previous else 0),
        black_ms=_pick(clock.black_ms, previous.black_ms if previous else 0),
        running=_pick(clock.running, previous.running if previous else False),
        side_to_move=previous.side_to_move if previous else None,
        anchor_ms=now,
    )


def _pick(value, fallback):
    return fallback if value is None else value


def format_ms(ms: Milliseconds) -> str:
    """H:MM:SS, M:SS, or SS.t (with M: prefix when minutes remain) under ten seconds."""
    total_ms = max(0, int(ms))
    total_sec = total_ms // 1000
    hours, rest = divmod(total_sec, 3600)
    minutes, seconds = divmod(rest, 60)
    if total_sec < 10:
        tenths = (total_ms % 1000) // 100
        prefix = f"{minutes}:" if minutes > 0 else ""
        return f"{prefix}{seconds:02d}.{tenths}"
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"
