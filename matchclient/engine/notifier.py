"""One-shot end-of-game signal."""

import logging
from typing import Callable, Optional

from matchclient.api.models import GameDetails
from matchclient.core.models import EndNotice
from matchclient.core.shared_types import GameStatus, Side

logger = logging.getLogger(__name__)

END_REASONS: dict[GameStatus, str] = {
    GameStatus.WHITE_WIN: "White wins (checkmate or resignation)",
    GameStatus.BLACK_WIN: "Black wins (checkmate or resignation)",
    GameStatus.DRAW: "Draw (agreed or by rule)",
    GameStatus.TIMEOUT: "Time ran out",
    GameStatus.RESIGN: "Resigned",
}

EndListener = Callable[[EndNotice], None]


class TerminalNotifier:
    """
    Fires once per game, on the first observed transition into an ended status.

    Idempotence rests on `last_status`, never on whether anything is currently displayed.
    """

    def __init__(self, listener: Optional[EndListener] = None) -> None:
        self.listener = listener
        self.game_id: Optional[int] = None
        self.last_status: Optional[GameStatus] = None
        self.shown = False
        self.fired = 0

    def observe(self, details: GameDetails) -> Optional[EndNotice]:
        if details.id != self.game_id:
            self.reset()
            self.game_id = details.id

        was_ended = self.last_status is not None and self.last_status.is_ended
        self.last_status = details.status
        if was_ended or not details.status.is_ended:
            return None

        notice = EndNotice(
            game_id=details.id,
            status=details.status,
            reason=END_REASONS[details.status],
            white=details.display_name(Side.WHITE),
            black=details.display_name(Side.BLACK),
        )
        self.fired += 1
        self.shown = True
        logger.info("Game %s ended: %s (%s)", details.id, details.status, notice.reason)
        if self.listener is not None:
            self.listener(notice)
        return notice

    def dismiss(self) -> None:
        self.shown = False

    def reset(self) -> None:
        self.game_id = None
        self.last_status = None
        self.shown = False
        self.fired = 0
