"""
Fund Allocator CLI.

Command-line interface for inspecting and simulating a configured fund.
"""

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List, Optional

from fund_allocator.config import FundConfig, load_config
from fund_allocator.core import get_logger, set_log_level
from fund_allocator.pools import UNLIMITED, SimulatedPool

from .manager import Fund

logger = get_logger(__name__)


class FundCLI:
    """
    Command-line interface for a simulated fund.

    Example:
        >>> cli = FundCLI()
        >>> await cli.run(["status", "--config", "config/fund.yaml"])
        >>> await cli.run(["simulate", "--deposit", "1000", "--accrue", "pool-a:100"])
    """

    def __init__(self) -> None:
        self._parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog="fund-allocator",
            description="Fund-of-funds allocator over simulated pools",
        )
        parser.add_argument(
            "--config", "-c",
            type=str,
            help="Path to configuration file (defaults to an empty fund)",
        )
        parser.add_argument(
            "--env", "-e",
            type=str,
            help="Environment overlay, e.g. production",
        )
        parser.add_argument(
            "--log-level",
            type=str,
            help="Override configured log level",
        )
        subparsers = parser.add_subparsers(dest="command", help="Available commands")

        # status command
        subparsers.add_parser("status", help="Show fund status as JSON")

        # simulate command
        simulate_parser = subparsers.add_parser(
            "simulate",
            help="Deposit, accrue yield, rebalance and print the results",
        )
        simulate_parser.add_argument(
            "--deposit", "-d",
            type=int,
            default=1_000_000,
            help="Assets to deposit (default: 1000000)",
        )
        simulate_parser.add_argument(
            "--depositor",
            type=str,
            default="depositor",
            help="Depositor address (default: depositor)",
        )
        simulate_parser.add_argument(
            "--accrue", "-a",
            type=str,
            action="append",
            default=[],
            metavar="POOL:AMOUNT",
            help="Yield to accrue on a pool before rebalancing (repeatable)",
        )
        simulate_parser.add_argument(
            "--redeem", "-r",
            type=int,
            default=0,
            help="Fund shares to redeem after rebalancing (default: 0)",
        )

        return parser

    async def run(self, args: List[str]) -> int:
        """
        Run CLI command.

        Args:
            args: Command-line arguments

        Returns:
            Exit code (0 for success)
        """
        if not args:
            self._parser.print_help()
            return 0

        parsed = self._parser.parse_args(args)

        if not parsed.command:
            self._parser.print_help()
            return 0

        try:
            config = load_config(parsed.config, env=parsed.env) if parsed.config else FundConfig()
            set_log_level(parsed.log_level or config.log_level)

            handler = getattr(self, f"_cmd_{parsed.command.replace('-', '_')}", None)
            if handler:
                return await handler(config, parsed)
            else:
                print(f"Unknown command: {parsed.command}")
                return 1
        except Exception as e:
            print(f"Error: {e}")
            logger.error(f"CLI error: {e}")
            return 1

    # =========================================================================
    # Command Handlers
    # =========================================================================

    async def _cmd_status(self, config: FundConfig, args: argparse.Namespace) -> int:
        """Handle status command."""
        fund = await Fund.from_config(config)
        self._print_json(await fund.get_status())
        return 0

    async def _cmd_simulate(self, config: FundConfig, args: argparse.Namespace) -> int:
        """Handle simulate command."""
        accruals = [self._parse_accrual(item) for item in args.accrue]

        fund = await Fund.from_config(config)
        ledger = fund.ledger
        ledger.mint(args.depositor, args.deposit)
        ledger.approve(args.depositor, fund.address, UNLIMITED)

        output: Dict[str, Any] = {}
        deposit = await fund.deposit(args.depositor, args.deposit)
        output["deposit"] = deposit.to_dict()

        for address, amount in accruals:
            pool = fund.registry.get(address)
            if not isinstance(pool, SimulatedPool):
                raise TypeError(f"Pool {address} does not support accrual")
            pool.accrue(amount)
        output["accrued"] = {address: amount for address, amount in accruals}

        caller = self._rebalance_caller(config)
        plan = await fund.rebalance(caller)
        output["rebalance"] = plan.to_dict()

        if args.redeem:
            redemption = await fund.redeem(args.depositor, args.redeem)
            output["redeem"] = redemption.to_dict()

        output["status"] = await fund.get_status()
        self._print_json(output)
        return 0

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _parse_accrual(value: str) -> tuple[str, int]:
        address, sep, amount = value.rpartition(":")
        if not sep or not address:
            raise ValueError(f"Expected POOL:AMOUNT, got {value!r}")
        return address, int(amount)

    @staticmethod
    def _rebalance_caller(config: FundConfig) -> str:
        if config.rebalancers:
            return config.rebalancers[0]
        if config.admins:
            return config.admins[0]
        raise ValueError("No admin or rebalancer configured to trigger rebalance")

    @staticmethod
    def _print_json(data: Dict[str, Any]) -> None:
        print(json.dumps(data, indent=2, default=str))


def create_cli() -> FundCLI:
    """Create CLI instance."""
    return FundCLI()


async def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for CLI.

    Args:
        args: Command-line arguments (defaults to sys.argv)

    Returns:
        Exit code
    """
    if args is None:
        args = sys.argv[1:]

    cli = FundCLI()
    return await cli.run(args)


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
