"""Unit tests for matchclient/engine/moves.py"""

import asyncio

import chess
import pytest

from matchclient.chess.oracle import PythonChessOracle
from matchclient.core.exceptions import (
    AuthorizationError,
    GameNotOngoingError,
    IllegalMoveError,
    NoSelectionError,
    NotAPlayerError,
    NotYourPieceError,
    NotYourTurnError,
    SubmissionInProgressError,
    SubmissionRejectedError,
)
from matchclient.core.models import Messages
from matchclient.core.shared_types import GameStatus, Side
from matchclient.engine.merger import SnapshotMerger
from matchclient.engine.moves import MovePipeline, MoveState
from matchclient.engine.notifier import TerminalNotifier

from conftest import BLACK_ID, GAME_ID, WHITE_ID, FakeClock, FakeGameApi, make_details, make_move


class ConfirmationRecorder:
    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self) -> None:
        self.calls += 1


def build_pipeline(
    api: FakeGameApi,
    me_id: int | None = WHITE_ID,
    status: GameStatus = GameStatus.ONGOING,
    next_to_move: Side = Side.WHITE,
    fen: str | None = None,
) -> tuple[MovePipeline, ConfirmationRecorder]:
    merger = SnapshotMerger(PythonChessOracle(), TerminalNotifier(), FakeClock())
    merger.on_details(make_details(status=status, next_to_move=next_to_move))
    merger.on_moves([make_move(1, fen_after=fen)] if fen else [])
    recorder = ConfirmationRecorder()
    pipeline = MovePipeline(merger, api, GAME_ID, me_id, Messages(), recorder)
    return pipeline, recorder


# --- LOCAL GUARDS ---
@pytest.mark.parametrize(
    "status", [GameStatus.CREATED, GameStatus.TIMEOUT, GameStatus.WHITE_WIN, GameStatus.DRAW]
)
def test_rejected_before_network_when_not_ongoing(fake_api: FakeGameApi, status: GameStatus) -> None:
    """e2-e4 while the game is not ongoing never reaches the authority."""
    pipeline, _ = build_pipeline(fake_api, status=status)
    with pytest.raises(GameNotOngoingError):
        asyncio.run(pipeline.submit_move("e2", "e4"))
    assert fake_api.calls == []
    assert pipeline.state == MoveState.IDLE


def test_rejected_when_not_your_turn(fake_api: FakeGameApi) -> None:
    pipeline, _ = build_pipeline(fake_api, next_to_move=Side.BLACK)
    with pytest.raises(NotYourTurnError):
        asyncio.run(pipeline.submit_move("e2", "e4"))
    assert fake_api.calls == []


def test_rejected_for_opponents_piece(fake_api: FakeGameApi) -> None:
    pipeline, _ = build_pipeline(fake_api)
    with pytest.raises(NotYourPieceError):
        asyncio.run(pipeline.submit_move("e7", "e5"))
    assert fake_api.calls == []


def test_rejected_for_spectators(fake_api: FakeGameApi) -> None:
    pipeline, _ = build_pipeline(fake_api, me_id=99)
    with pytest.raises(NotAPlayerError):
        asyncio.run(pipeline.submit_move("e2", "e4"))
    assert fake_api.calls == []


def test_rejected_without_selection(fake_api: FakeGameApi) -> None:
    pipeline, _ = build_pipeline(fake_api)
    with pytest.raises(NoSelectionError):
        asyncio.run(pipeline.submit_move(None, "e4"))


def test_rejected_illegal_target(fake_api: FakeGameApi) -> None:
    pipeline, _ = build_pipeline(fake_api)
    with pytest.raises(IllegalMoveError):
        asyncio.run(pipeline.submit_move("e2", "e5"))
    assert fake_api.calls == []


def test_turn_follows_identity_not_a_stored_color(fake_api: FakeGameApi) -> None:
    """The black player may move when the view says black is to move."""
    fen = chess.Board("rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1").fen()
    pipeline, _ = build_pipeline(fake_api, me_id=BLACK_ID, next_to_move=Side.BLACK, fen=fen)
    assert pipeline.my_side() == Side.BLACK
    assert asyncio.run(pipeline.submit_move("e7", "e5"))


# --- SUBMISSION ---
def test_successful_submission(fake_api: FakeGameApi) -> None:
    pipeline, recorder = build_pipeline(fake_api)
    expected = chess.Board()
    expected.push_uci("e2e4")

    assert asyncio.run(pipeline.submit_move("e2", "e4"))

    assert fake_api.calls == ["move"]
    request = fake_api.posted[0]
    assert (request.san, request.uci, request.fen_after, request.played_ms) == (
        "e4",
        "e2e4",
        expected.fen(),
        0,
    )
    assert recorder.calls == 1
    assert pipeline.pending is None
    assert pipeline.state == MoveState.IDLE
    assert pipeline.messages.info == "Move sent."


def test_working_position_waits_for_confirmation(fake_api: FakeGameApi) -> None:
    """While the request is in flight the board shows the candidate, the working position is untouched."""
    pipeline, _ = build_pipeline(fake_api)
    before = pipeline.merger.position.fen()
    seen: dict[str, object] = {}

    async def inspect() -> None:
        seen["state"] = pipeline.state
        seen["working"] = pipeline.merger.position.fen()
        seen["display"] = pipeline.display_fen
        assert pipeline.pending is not None
        seen["before"] = pipeline.pending.fen_before

    fake_api.post_hook = inspect
    asyncio.run(pipeline.submit_move("g1", "f3"))

    assert seen["state"] == MoveState.SUBMITTING
    assert seen["working"] == before
    assert seen["before"] == before
    assert seen["display"] == fake_api.posted[0].fen_after
    assert seen["display"] != before


def test_rejection_rolls_back(fake_api: FakeGameApi) -> None:
    pipeline, recorder = build_pipeline(fake_api)
    before = pipeline.merger.position.fen()
    fake_api.errors["move"] = SubmissionRejectedError("stale position", 400)

    assert not asyncio.run(pipeline.submit_move("e2", "e4"))

    assert pipeline.merger.position.fen() == before
    assert pipeline.display_fen == before
    assert pipeline.pending is None
    assert pipeline.state == MoveState.IDLE
    assert pipeline.messages.error == "stale position"
    assert recorder.calls == 0


def test_forbidden_submission_rolls_back(fake_api: FakeGameApi) -> None:
    pipeline, _ = build_pipeline(fake_api)
    fake_api.errors["move"] = AuthorizationError("forbidden", 403)

    assert not asyncio.run(pipeline.submit_move("e2", "e4"))
    assert pipeline.messages.error == "No access to this game."


def test_second_submission_refused_while_submitting(fake_api: FakeGameApi) -> None:
    pipeline, _ = build_pipeline(fake_api)

    async def retry() -> None:
        with pytest.raises(SubmissionInProgressError):
            await pipeline.submit_move("d2", "d4")

    fake_api.post_hook = retry
    assert asyncio.run(pipeline.submit_move("e2", "e4"))
    assert len(fake_api.posted) == 1


def test_promotion_defaults_to_queen(fake_api: FakeGameApi) -> None:
    pipeline, _ = build_pipeline(fake_api, fen="8/P7/8/8/8/8/8/k6K w - - 0 1")
    assert asyncio.run(pipeline.submit_move("a7", "a8"))
    assert fake_api.posted[0].uci == "a7a8q"
    assert fake_api.posted[0].san.startswith("a8=Q")


# --- CLICK FLOW ---
def test_click_flow_select_reselect_move(fake_api: FakeGameApi) -> None:
    pipeline, _ = build_pipeline(fake_api)

    asyncio.run(pipeline.click("e7"))
    assert pipeline.selected is None
    assert pipeline.messages.info == "Select one of your pieces first."

    asyncio.run(pipeline.click("e2"))
    assert pipeline.state == MoveState.SELECTING
    assert pipeline.selected == "e2"
    assert pipeline.legal_targets == {"e3", "e4"}

    asyncio.run(pipeline.click("g1"))
    assert pipeline.selected == "g1"
    assert pipeline.legal_targets == {"f3", "h3"}

    asyncio.run(pipeline.click("f3"))
    assert fake_api.posted[0].uci == "g1f3"
    assert pipeline.selected is None
    assert pipeline.legal_targets == set()


def test_click_illegal_target_is_informational(fake_api: FakeGameApi) -> None:
    pipeline, _ = build_pipeline(fake_api)
    asyncio.run(pipeline.click("e2"))
    asyncio.run(pipeline.click("e6"))

    assert fake_api.calls == []
    assert pipeline.messages.info == "Illegal move: e2e6."
    assert pipeline.messages.error is None


def test_click_out_of_turn(fake_api: FakeGameApi) -> None:
    pipeline, _ = build_pipeline(fake_api, next_to_move=Side.BLACK)
    asyncio.run(pipeline.click("e2"))
    assert pipeline.selected is None
    assert pipeline.messages.info == "It is not your turn."
