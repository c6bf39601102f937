"""
sorvx - operator command line.

Usage:
    sorvx replay <chat_id> [--speed 25] [--forget]
    sorvx issue-reset user@example.com
"""
import argparse
import asyncio
import sys

from sorvx.core.config import get_settings
from sorvx.core.log import setup_logging
from sorvx.db.session import AsyncSessionLocal, engine
from sorvx.reveal import AnimatedMessages, JsonFileStore, LoopScheduler, TypingEffect
from sorvx.reveal.typing_effect import DEFAULT_JITTER_MS, DEFAULT_SPEED_MS
from sorvx.services.chats import chat_messages, get_chat_by_id
from sorvx.services.mailer import get_notification_sender
from sorvx.services.password_reset import PasswordResetService


async def reveal_in_terminal(
    text: str,
    message_id: str,
    chat_id: str,
    records: AnimatedMessages,
    speed: float,
    jitter: float,
) -> None:
    """Write one message to stdout through the typing effect."""
    done = asyncio.get_running_loop().create_future()
    shown = 0

    def on_render(displayed: str) -> None:
        nonlocal shown
        sys.stdout.write(displayed[shown:])
        sys.stdout.flush()
        shown = len(displayed)

    def on_finish() -> None:
        if not done.done():
            done.set_result(None)

    effect = TypingEffect(
        text,
        message_id,
        chat_id,
        records,
        LoopScheduler(),
        speed=speed,
        jitter=jitter,
        on_render=on_render,
        on_finish=on_finish,
    )
    effect.start()
    try:
        await done
    finally:
        effect.dispose()


async def cmd_replay(args) -> int:
    """Print a stored chat, revealing assistant replies not yet seen here."""
    settings = get_settings()
    records = AnimatedMessages(JsonFileStore(args.store or settings.reveal_store_path))
    if args.forget:
        records.forget_chat(args.chat_id)

    async with AsyncSessionLocal() as db:
        chat = await get_chat_by_id(db, args.chat_id)
    if chat is None:
        print(f"Chat {args.chat_id} not found", file=sys.stderr)
        return 1

    for index, message in enumerate(chat_messages(chat)):
        text = message.text
        if not text:
            continue
        if message.role == "user":
            print(f"you> {text}")
        elif message.role == "assistant":
            sys.stdout.write("ai> ")
            await reveal_in_terminal(
                text, message.id or str(index), args.chat_id, records, args.speed, args.jitter
            )
            sys.stdout.write("\n")
    return 0


async def cmd_issue_reset(args) -> int:
    """Issue a reset token for an email and send the link (manual resend)."""
    async with AsyncSessionLocal() as db:
        service = PasswordResetService(db, get_notification_sender())
        await service.issue(args.email)
    print("If the account exists, a reset link was sent (check the log if SMTP failed).")
    return 0


async def _run(args) -> int:
    try:
        return await args.func(args)
    finally:
        await engine.dispose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sorvx", description="Sorvx AI operator tools")
    sub = parser.add_subparsers(dest="command", required=True)

    replay = sub.add_parser("replay", help="Replay a stored chat with the typing effect")
    replay.add_argument("chat_id")
    replay.add_argument("--speed", type=float, default=DEFAULT_SPEED_MS, help="ms per character")
    replay.add_argument("--jitter", type=float, default=DEFAULT_JITTER_MS, help="± ms per character")
    replay.add_argument("--store", default=None, help="reveal records file")
    replay.add_argument("--forget", action="store_true", help="animate this chat again")
    replay.set_defaults(func=cmd_replay)

    reset = sub.add_parser("issue-reset", help="Issue and send a password reset link")
    reset.add_argument("email")
    reset.set_defaults(func=cmd_issue_reset)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(get_settings().log_level)
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
