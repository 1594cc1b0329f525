"""
CLI entry point: serve the API, run sweeps by hand, inspect transfers.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Awaitable, Callable, Optional

from escrowmail import __version__
from escrowmail.application.transfers.service import TransferServicePort
from escrowmail.config import AppConfig, load_config
from escrowmail.core.di import Container, bootstrap_dependencies
from escrowmail.core.errors import EscrowMailError
from escrowmail.infrastructure.logging import configure_logging


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="escrowmail",
        description="EscrowMail - email-addressed escrow transfers",
    )
    parser.add_argument("--config", "-c", help="YAML config path (default: $ESCROWMAIL_CONFIG)")
    parser.add_argument("--version", "-v", action="store_true", help="show version")

    subparsers = parser.add_subparsers(dest="command", help="commands")

    serve_parser = subparsers.add_parser("serve", help="run the HTTP API")
    serve_parser.add_argument("--host", help="bind host (default from config)")
    serve_parser.add_argument("--port", type=int, help="bind port (default from config)")

    subparsers.add_parser("sweep-expired", help="refund every pending transfer past its expiry")
    subparsers.add_parser("sweep-reminders", help="send expiring-soon reminders")

    show_parser = subparsers.add_parser("show", help="print one transfer")
    show_parser.add_argument("transfer_id")

    list_parser = subparsers.add_parser("list", help="list pending transfers")
    group = list_parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--recipient", help="recipient email")
    group.add_argument("--sender", help="sender user id")

    auto_parser = subparsers.add_parser("auto-claim", help="claim everything pending for a user's email")
    auto_parser.add_argument("user_id")
    auto_parser.add_argument("email")

    return parser


def _print(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


async def _with_service(container: Container, action: Callable[[TransferServicePort], Awaitable[Any]]) -> Any:
    service = container.resolve(TransferServicePort)
    try:
        return await action(service)
    finally:
        await service.close()


async def _dispatch(parsed: argparse.Namespace, container: Container) -> None:
    if parsed.command == "sweep-expired":
        count = await _with_service(container, lambda s: s.sweep_expired())
        _print({"expired_count": count})
    elif parsed.command == "sweep-reminders":
        count = await _with_service(container, lambda s: s.sweep_reminders())
        _print({"reminded_count": count})
    elif parsed.command == "show":
        transfer = await _with_service(container, lambda s: s.get_details(parsed.transfer_id))
        _print(transfer.to_dict())
    elif parsed.command == "list":
        if parsed.recipient:
            summaries = await _with_service(container, lambda s: s.list_by_recipient(parsed.recipient))
        else:
            summaries = await _with_service(container, lambda s: s.list_by_sender(parsed.sender))
        _print([s.to_dict() for s in summaries])
    elif parsed.command == "auto-claim":
        count = await _with_service(container, lambda s: s.auto_claim(parsed.user_id, parsed.email))
        _print({"claimed_count": count})


def _serve(config: AppConfig, host: Optional[str], port: Optional[int]) -> None:
    import uvicorn

    from escrowmail.api.main import create_app

    uvicorn.run(create_app(config), host=host or config.api.host, port=port or config.api.port)


def run_cli(args: Optional[list] = None, *, container: Optional[Container] = None) -> int:
    """
    Run the CLI.

    Returns the process exit code. `container` overrides bootstrap (tests).
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.version:
        print(f"EscrowMail v{__version__}")
        return 0
    if not parsed.command:
        parser.print_help()
        return 0

    try:
        config = load_config(parsed.config)
        configure_logging(config.logging)
        if parsed.command == "serve":
            _serve(config, parsed.host, parsed.port)
            return 0
        config.validate_required()
        asyncio.run(_dispatch(parsed, container or bootstrap_dependencies(config, Container())))
        return 0
    except EscrowMailError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(run_cli())
