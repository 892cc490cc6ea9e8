from __future__ import annotations

import argparse
import asyncio
import logging

from solana.rpc.async_api import AsyncClient
from solders.keypair import Keypair

from .api import SonicApi
from .auth import TokenHolder, authenticate
from .config import Settings, parse_draw_count
from .errors import AuthenticationError, ConfigurationError
from .project_constants import COMMITMENT
from .runner import DrawContext, LotteryRunner, RunState
from .submit import TransactionSubmitter
from .wallet import address_of, load_keypair, shorten


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # httpx logs every request at INFO; only interesting when debugging.
    logging.getLogger("httpx").setLevel(level if verbose else logging.WARNING)


def load_settings(args: argparse.Namespace, **overrides) -> Settings:
    return Settings.from_env(
        rpc_url_override=args.rpc_url,
        api_url_override=args.api_url,
        **overrides,
    )


def ask_number_of_draws() -> int:
    try:
        answer = input("How many lottery draws would you like to perform? ")
    except EOFError:
        answer = ""
    return parse_draw_count(answer)


async def _run(
    settings: Settings, keypair: Keypair, total: int, timeout: float
) -> RunState:
    async with SonicApi(settings.api_url, timeout_s=timeout) as api, AsyncClient(
        settings.rpc_url, commitment=COMMITMENT, timeout=timeout
    ) as rpc:
        ctx = DrawContext(
            api=api,
            submitter=TransactionSubmitter(rpc, commitment=COMMITMENT),
            holder=TokenHolder(api, keypair),
            keypair=keypair,
            settings=settings,
        )
        runner = LotteryRunner(ctx)
        summary = await runner.run(total)

    for report in summary.reports:
        print(report.render())
    return runner.state


def cmd_run(args: argparse.Namespace) -> int:
    log = logging.getLogger("run")
    try:
        settings = load_settings(
            args,
            batch_size_override=args.batch_size,
            batch_delay_override=args.batch_delay,
        )
        keypair = load_keypair(settings.private_key)
    except ConfigurationError as e:
        log.error("%s", e)
        return 1

    address = address_of(keypair)
    log.info("Using wallet: %s", shorten(address))

    if args.draws is not None:
        total = parse_draw_count(args.draws)
    else:
        total = ask_number_of_draws()
    log.info(
        "Planned %d draws, %d per batch, %s s between batches",
        total,
        settings.batch_size,
        settings.batch_delay,
    )

    try:
        state = asyncio.run(_run(settings, keypair, total, args.timeout))
    except AuthenticationError as e:
        log.error("An error occurred: %s", e)
        return 1
    return 0 if state is RunState.COMPLETE else 1


async def _auth(settings: Settings, timeout: float) -> str:
    keypair = load_keypair(settings.private_key)
    async with SonicApi(settings.api_url, timeout_s=timeout) as api:
        return await authenticate(api, keypair)


def cmd_auth(args: argparse.Namespace) -> int:
    log = logging.getLogger("auth")
    try:
        settings = load_settings(args)
        token = asyncio.run(_auth(settings, args.timeout))
    except (ConfigurationError, AuthenticationError) as e:
        log.error("%s", e)
        return 1
    print(f"Token : {shorten(token)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="sonic-ring",
        description="Sonic Odyssey ring lottery automation.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--rpc-url", default=None, help="Override RPC URL (else use env).")
    p.add_argument(
        "--api-url", default=None, help="Override lottery API URL (else use env)."
    )
    p.add_argument("--timeout", type=float, default=60.0, help="HTTP timeout seconds.")

    sub = p.add_subparsers(dest="cmd", required=True)

    r = sub.add_parser("run", help="Draw the ring lottery in batches.")
    r.add_argument(
        "--draws",
        default=None,
        help="Number of draws (prompted for when omitted; invalid input means 1).",
    )
    r.add_argument(
        "--batch-size", type=int, default=None, help="Draws run together per batch."
    )
    r.add_argument(
        "--batch-delay", type=float, default=None, help="Seconds between batches."
    )
    r.set_defaults(func=cmd_run)

    a = sub.add_parser("auth", help="Log in once and print the session token.")
    a.set_defaults(func=cmd_auth)

    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)
    raise SystemExit(args.func(args))
