"""Command line entry point: python -m walletsdk"""

# Load .env file before importing anything else
from dotenv import load_dotenv
load_dotenv()

import argparse
import asyncio
import logging
import sys

from walletsdk.chains import explorer_tx_url, get_all_chains, get_chain
from walletsdk.config import get_settings
from walletsdk.engine import WalletEngine
from walletsdk.providers.factory import get_host_environment
from walletsdk.utils.format import format_balance, format_tx_hash, format_usd
from walletsdk.wallet import generate_wallet

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    settings = get_settings()
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def cmd_networks(args: argparse.Namespace) -> int:
    for chain in get_all_chains():
        suffix = " (testnet)" if chain.is_testnet else ""
        print(f"{chain.chain_id:>10}  {chain.name}{suffix}")
    return 0


def cmd_new_wallet(args: argparse.Namespace) -> int:
    wallet = generate_wallet()
    print(f"Address:     {wallet.address}")
    print(f"Private key: {wallet.private_key}")
    print(f"Mnemonic:    {wallet.mnemonic}")
    print(f"Path:        {wallet.derivation_path}")
    print()
    print(wallet.warning)
    return 0


def _print_snapshot(engine: WalletEngine) -> None:
    settings = engine.settings
    balances = engine.balances
    chain = get_chain(engine.chain_id)
    testnet = " (testnet)" if chain and chain.is_testnet else ""
    print(f"Account:   {engine.address or '-'}")
    print(f"Network:   {engine.network_name()}{testnet}")
    print(f"{settings.native_symbol + ':':<10} {format_balance(balances.native)}")
    print(f"{settings.token_symbol + ':':<10} {format_balance(balances.token)}")
    print(f"Portfolio: {format_usd(balances.portfolio_value)}")
    for tx in engine.transactions:
        print(
            f"  {format_tx_hash(tx.id, 16)}  {tx.amount} {tx.currency} -> {tx.to}  "
            f"[{tx.status.value}] gas={tx.gas_used} block={tx.block_number}"
        )
        url = explorer_tx_url(engine.chain_id, tx.id)
        if url:
            print(f"    {url}")
    if engine.error:
        print(f"Error:     {engine.error.message}")


async def _demo(args: argparse.Namespace) -> int:
    settings = get_settings()
    logger.info(f"Environment: {settings.environment}")
    logger.debug(f"Settings: {settings.get_safe_dict()}")
    engine = WalletEngine(get_host_environment(settings), settings=settings)

    result = await engine.connect()
    if not result.success:
        print(f"Connect failed: {result.error.message}")
        return 1

    if args.to:
        sent = await engine.send(
            {"to": args.to, "amount": args.amount, "currency": args.currency}
        )
        if not sent.success:
            print(f"Send failed: {sent.error.message}")
        else:
            print(f"Submitted {sent.tx_hash}")
            await engine.wait_idle()

    _print_snapshot(engine)
    engine.disconnect()
    return 0


def cmd_demo(args: argparse.Namespace) -> int:
    return asyncio.run(_demo(args))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="walletsdk", description="Wallet session engine")
    sub = parser.add_subparsers(dest="command", required=True)

    networks = sub.add_parser("networks", help="List known networks")
    networks.set_defaults(func=cmd_networks)

    new_wallet = sub.add_parser("new-wallet", help="Generate an offline wallet")
    new_wallet.set_defaults(func=cmd_new_wallet)

    demo = sub.add_parser("demo", help="Connect to the configured provider and send")
    demo.add_argument("--to", help="Recipient address")
    demo.add_argument("--amount", default="0.01", help="Amount in whole units")
    demo.add_argument("--currency", default="ETH", help="Asset symbol")
    demo.set_defaults(func=cmd_demo)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
