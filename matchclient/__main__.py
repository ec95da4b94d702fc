"""Command line entrypoint: follow a game live, or perform a single action in it."""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from matchclient.api.client import AiohttpGameApi
from matchclient.chess.oracle import select_oracle
from matchclient.core.config import ClientSettings, load_settings
from matchclient.core.exceptions import ConfigurationError
from matchclient.core.models import EndNotice
from matchclient.core.shared_types import Channel, Side
from matchclient.db.database import make_session_factory
from matchclient.db.sql_repository import SQLTokenRepository
from matchclient.services.auth import AuthSession
from matchclient.services.match_session import (
    MatchSession,
    MatchViewer,
    intervals_from,
)

ACTIONS = ("resign", "offer-draw", "accept-draw", "decline-draw")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="matchclient", description=__doc__)
    parser.add_argument("--token", help="store this bearer token before running")
    parser.add_argument("--env-file", help="read MATCHCLIENT_* settings from this file")
    sub = parser.add_subparsers(dest="command", required=True)

    watch_cmd = sub.add_parser("watch", help="follow a game until it ends")
    watch_cmd.add_argument("game_id")

    move_cmd = sub.add_parser("move", help="play one move")
    move_cmd.add_argument("game_id")
    move_cmd.add_argument("from_square")
    move_cmd.add_argument("to_square")

    for action in ACTIONS:
        action_cmd = sub.add_parser(action, help=f"{action.replace('-', ' ')} in a game")
        action_cmd.add_argument("game_id")
    return parser


class StatusPrinter:
    """Render callback: prints a one-line summary whenever it changes."""

    def __init__(self) -> None:
        self.last_line: Optional[str] = None

    def __call__(self, session: MatchSession) -> None:
        line = status_line(session)
        if line != self.last_line:
            print(line, flush=True)
            self.last_line = line


def status_line(session: MatchSession) -> str:
    view = session.view
    if view is None:
        return f"game {session.game_id}: waiting for details"
    to_move = view.next_to_move.lower() if view.next_to_move else "-"
    return (
        f"{view.display_name(Side.WHITE)} {session.clock_text(Side.WHITE)} | "
        f"{view.display_name(Side.BLACK)} {session.clock_text(Side.BLACK)} | "
        f"{view.status} | to move: {to_move}"
    )


async def watch(
    game_id: str, api: AiohttpGameApi, auth: AuthSession, settings: ClientSettings
) -> int:
    finished = asyncio.Event()
    printer = StatusPrinter()

    def on_end(notice: EndNotice) -> None:
        print(f"Game over: {notice.status} - {notice.reason}")
        print(f"White: {notice.white}  Black: {notice.black}")
        finished.set()

    def on_render(session: MatchSession) -> None:
        printer(session)
        if Channel.DETAILS in session.halted:
            finished.set()

    oracle_cls = select_oracle(settings.oracle)
    viewer = MatchViewer(
        lambda gid: MatchSession(
            gid,
            api,
            auth,
            oracle=oracle_cls(),
            intervals=intervals_from(settings),
            on_end=on_end,
            on_render=on_render,
        )
    )
    session = await viewer.open(game_id)
    try:
        await finished.wait()
    finally:
        await viewer.close()
    if session.messages.error:
        print(session.messages.error, file=sys.stderr)
        return 1
    return 0


async def single_action(
    args: argparse.Namespace,
    api: AiohttpGameApi,
    auth: AuthSession,
    settings: ClientSettings,
) -> int:
    oracle = select_oracle(settings.oracle)()
    session = MatchSession(args.game_id, api, auth, oracle=oracle)
    await session.initial_load()
    if args.command == "move":
        ok = await session.move(args.from_square, args.to_square)
    else:
        ok = await getattr(session, args.command.replace("-", "_"))()

    if session.messages.error:
        print(session.messages.error, file=sys.stderr)
    elif session.messages.info:
        print(session.messages.info)
    return 0 if ok else 1


async def run(args: argparse.Namespace, settings: ClientSettings) -> int:
    db = make_session_factory(settings.token_db_url)()
    try:
        auth = AuthSession(SQLTokenRepository(db))
        if args.token:
            auth.set_token(args.token)
        api = AiohttpGameApi(settings.api_base, auth.token, settings.request_timeout_s)
        try:
            if args.command == "watch":
                return await watch(args.game_id, api, auth, settings)
            return await single_action(args, api, auth, settings)
        finally:
            await api.close()
    finally:
        db.close()


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(args.env_file)
        logging.basicConfig(
            level=settings.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        return asyncio.run(run(args, settings))
    except ConfigurationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
