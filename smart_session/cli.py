#!/usr/bin/env python3
"""Simple CLI for driving a smart account session locally"""

import argparse
import asyncio
import sys
from typing import Optional

from .auth.provider import PrivateKeyAuthProvider
from .config import settings
from .core.confirmation import NotFound
from .core.recovery.errors import SmartSessionError
from .core.session import SessionController
from .logging_config import setup_logging
from .networks import UnknownNetworkError, list_networks


def _controller(args: argparse.Namespace) -> SessionController:
    provider = PrivateKeyAuthProvider(private_key=args.private_key)
    return SessionController(provider, network=settings.resolve_network(args.network))


async def cli_address(args: argparse.Namespace) -> None:
    async with _controller(args) as session:
        address = await session.login()
        print(f"Smart account: {address}")


async def cli_balance(args: argparse.Namespace) -> None:
    async with _controller(args) as session:
        address = await session.login()
        balance = await session.get_balance()
        symbol = session.network.native_symbol
        print(f"{address}: {balance / 10 ** session.network.native_decimals:.6f} {symbol} ({balance} wei)")


async def cli_send(args: argparse.Namespace) -> None:
    async with _controller(args) as session:
        await session.login()
        print(f"Sending transaction to {args.to}...")
        handle = await session.send_transaction(args.to, args.value, args.data)
        print(f"Transaction: {session.explorer_url(handle)}")
        print(f"UserOperation: {handle.user_operation_hash}")

        if args.resolve:
            await _print_resolution(session, handle.transaction_hash)


async def cli_resolve(args: argparse.Namespace) -> None:
    async with _controller(args) as session:
        await session.login()
        await _print_resolution(session, args.tx_hash)


async def _print_resolution(session: SessionController, tx_hash: str) -> None:
    print(f"Waiting for index record of {tx_hash}...")
    result = await session.resolve_confirmation(tx_hash)
    if isinstance(result, NotFound):
        print("No index record yet")
        return
    print(f"Indexed: {session.index_url(result)}")


def cli_networks(_: argparse.Namespace) -> None:
    for network in list_networks():
        marker = "*" if network.slug == settings.network else " "
        print(f"{marker} {network.slug:<16} chain {network.chain_id:<6} {network.name}")


ACCOUNT_SETUP_HELP = (
    "Deriving the smart account needs the factory's account implementation and "
    "proxy creation code. The shipped networks do not include them: set "
    "ACCOUNT_IMPLEMENTATION and PROXY_CREATION_CODE in the environment or .env."
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Smart account session CLI", epilog=ACCOUNT_SETUP_HELP)
    parser.add_argument("--network", default=None, help=f"Network slug (default: {settings.network})")
    parser.add_argument("--private-key", default=None, help="Owner key (default: AUTH_PRIVATE_KEY)")
    parser.add_argument("--log-level", default=None, help="Log level override")
    parser.add_argument(
        "--log-format", default=None, choices=["json", "console", "auto"], help="Log rendering override"
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("networks", help="List supported networks")
    subparsers.add_parser(
        "address",
        help="Print the counterfactual smart account address (needs ACCOUNT_IMPLEMENTATION and PROXY_CREATION_CODE)",
    )
    subparsers.add_parser("balance", help="Print the smart account native balance")

    send_parser = subparsers.add_parser("send", help="Send a sponsored transaction")
    send_parser.add_argument("to", help="Target address")
    send_parser.add_argument("--value", type=int, default=0, help="Value in wei")
    send_parser.add_argument("--data", default="0x", help="Hex calldata")
    send_parser.add_argument("--resolve", action="store_true", help="Wait for the index record")

    resolve_parser = subparsers.add_parser("resolve", help="Resolve a bundle transaction to its user operation")
    resolve_parser.add_argument("tx_hash", help="Bundle transaction hash")

    return parser


COMMANDS = {
    "address": cli_address,
    "balance": cli_balance,
    "send": cli_send,
    "resolve": cli_resolve,
}


def main(argv: Optional[list] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level, args.log_format)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "networks":
        cli_networks(args)
        return 0

    try:
        asyncio.run(COMMANDS[args.command](args))
    except (SmartSessionError, UnknownNetworkError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
