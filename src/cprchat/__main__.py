"""CPR chat client entry point.

Changes:
  - 2026-10-19: ask / chat / sessions / serve-mock subcommands.
"""

import argparse
import asyncio
import logging
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version

from rich.console import Console

from cprchat.app import ChatApp
from cprchat.config import Settings, get_settings
from cprchat.logging_setup import setup_logging
from cprchat.orchestrator import ChatHooks
from cprchat.transport import UNSET

logger = logging.getLogger(__name__)
console = Console()


def _package_version() -> str:
    try:
        return get_version("cpr-chat")
    except PackageNotFoundError:
        return "unknown"


def _terminal_hooks() -> ChatHooks:
    return ChatHooks(
        notify_error=lambda msg: console.print(f"[bold red]✗ {msg}[/bold red]"),
        redirect=lambda sid: console.print(f"[dim]session {sid}[/dim]"),
        content_received=lambda delta: console.print(delta, end="", markup=False, highlight=False),
    )


async def _ask(settings: Settings, message: str, session_id: str | None) -> int:
    async with ChatApp(settings, hooks=_terminal_hooks()) as app:
        await app.send(message, session_id=session_id if session_id else UNSET)
        console.print()
        return 1 if app.state.streaming_error_message else 0


async def _chat(settings: Settings, session_id: str | None) -> int:
    async with ChatApp(settings, hooks=_terminal_hooks()) as app:
        if session_id and not await app.open_session(session_id):
            console.print(f"[yellow]Could not open {session_id}, starting a new chat[/yellow]")
        console.print("[dim]/new starts a new conversation, /quit exits[/dim]")
        while True:
            try:
                line = await asyncio.to_thread(console.input, "[bold green]> [/bold green]")
            except EOFError:
                break
            command = line.strip()
            if command == "/quit":
                break
            if command == "/new":
                app.new_conversation()
                continue
            await app.send(line)
            console.print()
    return 0


async def _sessions(settings: Settings) -> int:
    async with ChatApp(settings) as app:
        for entry in app.state.sessions:
            console.print(f"{entry.session_id}  {entry.title}")
    return 0


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="cprchat",
        description="CPR document assistant chat client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  cprchat serve-mock                 Start the local mock backend on :3000
  cprchat ask "Qual o prazo da CPR?" Send one message (new session)
  cprchat ask --session s_abc "..."  Continue a session (streamed)
  cprchat chat                       Interactive chat
  cprchat sessions                   List sessions
""",
    )
    parser.add_argument("--backend-url", default=None, help="Chat backend base URL")
    parser.add_argument("--debug", action="store_true", help="Verbose exchange logging")
    parser.add_argument(
        "--version", "-v", action="version", version=f"%(prog)s {_package_version()}"
    )

    sub = parser.add_subparsers(dest="command")
    ask = sub.add_parser("ask", help="Send a single message")
    ask.add_argument("message")
    ask.add_argument("--session", default=None, help="Existing session id")
    chat = sub.add_parser("chat", help="Interactive chat (default)")
    chat.add_argument("--session", default=None, help="Session id to resume")
    sub.add_parser("sessions", help="List sessions")
    serve = sub.add_parser("serve-mock", help="Run the local mock backend")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", "-p", type=int, default=3000)

    args = parser.parse_args()

    settings = get_settings()
    updates = {}
    if args.backend_url:
        updates["backend_url"] = args.backend_url.rstrip("/")
    if args.debug:
        updates.update(debug=True, log_level="DEBUG")
    if updates:
        settings = settings.model_copy(update=updates)

    setup_logging(level=settings.log_level)

    try:
        if args.command == "serve-mock":
            from cprchat.devserver import run_mock_backend

            run_mock_backend(host=args.host, port=args.port)
        elif args.command == "ask":
            raise SystemExit(asyncio.run(_ask(settings, args.message, args.session)))
        elif args.command == "sessions":
            raise SystemExit(asyncio.run(_sessions(settings)))
        else:
            raise SystemExit(asyncio.run(_chat(settings, getattr(args, "session", None))))
    except KeyboardInterrupt:
        logger.info("Chat client stopped.")


if __name__ == "__main__":
    main()
