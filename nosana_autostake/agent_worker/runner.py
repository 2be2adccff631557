"""
Agent runner — CLI entrypoint and process lifecycle.

- main(): parse args, print the welcome banner, ask for consent, load the
  authority keypair, then follow the node's docker logs until the stream ends
  or the process is interrupted.
- run_agent(): wire settings + authority into a StakingContext and run the
  Pipeline over a chunk source (docker logs by default).
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import AsyncIterable, Callable, Sequence

from solders.keypair import Keypair

from nosana_autostake import __version__
from nosana_autostake.agent_worker.keys import load_authority
from nosana_autostake.agent_worker.node_logs import docker_log_chunks
from nosana_autostake.agent_worker.pipeline import AuditSink, Pipeline
from nosana_autostake.autostake_logging import get_logger
from nosana_autostake.config.env import masked_rpc_url, parse_bool_env
from nosana_autostake.config.settings import AutostakeSettings, get_settings
from nosana_autostake.core.exceptions import ConfigError, StreamIOError
from nosana_autostake.ledger.client import HttpLedgerClient
from nosana_autostake.ledger.retry import RetryingLedgerClient
from nosana_autostake.log_scanner.scanner import LogEventScanner
from nosana_autostake.staking.builder import StakeTransactionBuilder
from nosana_autostake.staking.context import StakingContext

logger = get_logger(__name__)

WELCOME_BANNER = f"""
Welcome to Automated Staking for Nosana Nodes v{__version__}
"""
CONSENT_QUESTION = "Do you understand that using this script is at your own risk? (yes/no): "


def ask_consent(prompt: Callable[[str], str] = input) -> bool:
    """True only if the operator answers 'yes' (case-insensitive)."""
    try:
        answer = prompt(CONSENT_QUESTION)
    except EOFError:
        return False
    return answer.strip().lower() == "yes"


async def run_agent(
    settings: AutostakeSettings,
    authority: Keypair,
    *,
    chunks: AsyncIterable[bytes | str] | None = None,
    audit_sink: AuditSink | None = None,
) -> None:
    """Run the staking pipeline until the log stream ends."""
    async with HttpLedgerClient(
        settings.rpc_url, request_timeout_sec=settings.rpc_timeout_sec
    ) as http_ledger:
        ledger = RetryingLedgerClient(
            http_ledger,
            attempts=settings.resolve_attempts,
            min_delay_sec=settings.resolve_backoff_sec,
            max_delay_sec=settings.resolve_max_backoff_sec,
        )
        context = StakingContext.create(
            ledger, authority, settings.staking_program_id, settings.nos_mint
        )
        pipeline = Pipeline(
            context,
            scanner=LogEventScanner(max_buffer_bytes=settings.log_max_buffer_bytes),
            builder=StakeTransactionBuilder(
                context,
                confirm_timeout_sec=settings.confirm_timeout_sec,
                confirm_poll_interval_sec=settings.confirm_poll_interval_sec,
            ),
            audit_sink=audit_sink,
        )
        source = chunks if chunks is not None else docker_log_chunks(settings.node_container)
        await pipeline.run(source)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nosana-autostake",
        description="Auto-stake NOS earned by a Nosana node into its staking vault.",
    )
    parser.add_argument("--container", dest="node_container", help="Docker container of the node (default: nosana-node)")
    parser.add_argument("--rpc-url", dest="rpc_url", help="Solana RPC URL (default: SOLANA_RPC_URL or mainnet-beta)")
    parser.add_argument("--key-path", dest="key_path", help="Node keypair JSON (default: ~/.nosana/nosana_key.json)")
    parser.add_argument("--resolve-attempts", dest="resolve_attempts", type=int, help="Payout tx lookups before giving up")
    parser.add_argument("--yes", action="store_true", help="Accept the risk notice without prompting")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    print(WELCOME_BANNER)

    if not (args.yes or parse_bool_env("AUTOSTAKE_ACCEPT_RISK") or ask_consent()):
        print("You chose not to proceed. Exiting...")
        return 0
    print("Thank you for accepting! Auto-staking will begin shortly...")

    try:
        settings = get_settings(
            node_container=args.node_container,
            rpc_url=args.rpc_url,
            key_path=args.key_path,
            resolve_attempts=args.resolve_attempts,
        )
        authority = load_authority(settings.key_path)
    except ConfigError as e:
        logger.error("autostake_config_error", error=str(e))
        return 1

    logger.info(
        "autostake_starting",
        rpc=masked_rpc_url(settings.rpc_url),
        program_id=settings.staking_program_id,
        mint=settings.nos_mint,
        container=settings.node_container,
    )
    print("Waiting for jobs... Your earned NOS tokens will be auto-staked.")
    try:
        asyncio.run(run_agent(settings, authority))
    except StreamIOError as e:
        logger.error("autostake_stream_failed", error=str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("autostake_keyboard_interrupt")
    finally:
        logger.info("autostake_stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
