#!/usr/bin/env python3
"""
run_backrun.py - CLI entrypoint for replaying a backrun scenario.

Usage:
    python run_backrun.py --scenario two_pool_cycle.yaml
    python run_backrun.py --scenario my_scenario.yaml --log-level DEBUG --no-json-logs
"""

import json
import sys
from pathlib import Path
from typing import Any, Optional

import click

from chains.ledger import Chain, Erc20Token
from chains.providers import RPCProvider
from config import ReflexConfig, load_reflex_config, load_scenario
from core.abi import address_to_pool_id
from core.exceptions import ConfigError, ErrorCode, ReflexError
from core.logging import get_logger, log_error, set_global_context, setup_logging
from dex.pools import DeltaCallbackPool, PushCallbackPool
from execution.router import BackrunRouter
from integrations.after_swap import AfterSwapBackrunner
from quoting.rpc_quoter import RpcQuoter
from quoting.static import StaticQuoter, quote_from_pools

logger = get_logger("reflex.backrun")

POOL_TYPES = {
    "push_callback": PushCallbackPool,
    "delta_callback": DeltaCallbackPool,
}


class ScenarioRun:
    """Deploys a scenario on a fresh chain and replays its trigger."""

    def __init__(self, scenario: dict[str, Any], config: ReflexConfig):
        self.scenario = scenario
        self.config = config
        self.chain = Chain(scenario.get("chain_id", config.chain_id))
        self.admin = self.chain.account("admin")
        self.tokens: dict[str, Erc20Token] = {}
        self.pools: dict[str, Any] = {}
        self.symbols: dict[str, str] = {}
        self.router: Optional[BackrunRouter] = None
        self.hook: Optional[AfterSwapBackrunner] = None
        self.quote_profit = 0

    def _account(self, label: str) -> str:
        return label if label.startswith("0x") else self.chain.account(label)

    def _token(self, symbol: str) -> Erc20Token:
        if symbol not in self.tokens:
            raise ConfigError(
                ErrorCode.VALIDATION_ERROR,
                f"Unknown token '{symbol}'",
                details={"known": sorted(self.tokens)},
            )
        return self.tokens[symbol]

    def _pool(self, name: str) -> Any:
        if name not in self.pools:
            raise ConfigError(
                ErrorCode.VALIDATION_ERROR,
                f"Unknown pool '{name}'",
                details={"known": sorted(self.pools)},
            )
        return self.pools[name]

    def deploy(self) -> None:
        chain = self.chain

        for symbol, entry in self.scenario["tokens"].items():
            token = chain.deploy(
                Erc20Token,
                entry.get("name", symbol),
                symbol,
                entry.get("decimals", 18),
                deployer=self.admin,
            )
            self.tokens[symbol] = token
            self.symbols[token.address] = symbol

        for name, entry in self.scenario["pools"].items():
            pool_cls = POOL_TYPES.get(entry.get("type"))
            if pool_cls is None:
                raise ConfigError(
                    ErrorCode.VALIDATION_ERROR,
                    f"Pool '{name}' has unknown type {entry.get('type')!r}",
                    details={"types": sorted(POOL_TYPES)},
                )
            token0 = self._token(entry["token0"])
            token1 = self._token(entry["token1"])
            args = [token0.address, token1.address]
            if "fee" in entry:
                args.append(entry["fee"])
            pool = chain.deploy(pool_cls, *args, deployer=self.admin)

            reserve0, reserve1 = entry["reserves"]
            chain.fund(token0, pool.address, reserve0)
            chain.fund(token1, pool.address, reserve1)
            chain.transact(self.admin, pool, "sync")
            self.pools[name] = pool

        quoter = self._deploy_quoter()
        self.router = chain.deploy(
            BackrunRouter,
            quoter.address,
            self.config.max_hops,
            deployer=self.admin,
        )

        shares = self.scenario.get("shares")
        if shares:
            self.hook = chain.deploy(
                AfterSwapBackrunner,
                self.router.address,
                [self._account(r) for r in shares["recipients"]],
                shares["weights"],
                [self._pool(self.scenario["trigger"]["pool"]).address],
                deployer=self.admin,
            )

    def _deploy_quoter(self) -> Any:
        if self.scenario.get("quoter") == "rpc":
            if not self.config.rpc_urls or not self.config.quoter_address:
                raise ConfigError(
                    ErrorCode.QUOTER_NOT_SET,
                    "RPC quoter needs rpc.urls and rpc.quoter_address in reflex.yaml",
                )
            provider = RPCProvider(
                self.chain.chain_id,
                self.config.rpc_urls,
                timeout_seconds=self.config.rpc_timeout_seconds,
            )
            return self.chain.deploy(
                RpcQuoter, provider, self.config.quoter_address, deployer=self.admin
            )

        quoter = self.chain.deploy(StaticQuoter, deployer=self.admin)
        route = self.scenario.get("route")
        if route:
            quote = quote_from_pools(
                self.chain,
                self._token(route["start_token"]).address,
                route["amount_in"],
                [(self._pool(h["pool"]).address, h["meta"]) for h in route["hops"]],
                route.get("initial_hop_index", 0),
            )
            trigger_pool = self._pool(self.scenario["trigger"]["pool"])
            self.chain.transact(self.admin, quoter, "set_quote", trigger_pool.address, quote)
            self.quote_profit = quote.profit
        return quoter

    def trigger(self) -> dict[str, Any]:
        """Replay the trigger and summarize the outcome."""
        chain = self.chain
        trigger = self.scenario["trigger"]
        pool = self._pool(trigger["pool"])
        pool_id = address_to_pool_id(pool.address)
        swap_recipient = self._account(trigger.get("swap_recipient", "trader"))

        if self.hook is not None:
            # The pool reports its own swap to the hook
            result = chain.transact(
                pool.address,
                self.hook,
                "after_swap",
                pool_id,
                trigger["swap_amount_in"],
                trigger.get("token0_in", True),
                swap_recipient,
            )
        else:
            result = chain.transact(
                swap_recipient,
                self.router,
                "trigger_backrun",
                pool_id,
                trigger["swap_amount_in"],
                trigger.get("token0_in", True),
                swap_recipient,
            )

        summary: dict[str, Any] = {
            "chain_id": chain.chain_id,
            "trigger_pool": pool.address,
            "quote_profit": self.quote_profit,
            "profit": result.profit,
            "profit_token": result.profit_token,
            "profit_symbol": self.symbols.get(result.profit_token),
            "events": {
                name: len(chain.events(name))
                for name in ("BackrunExecuted", "SplitExecuted")
            },
        }
        execution = self.router.last_execution
        if execution is not None:
            summary["execution"] = execution.to_dict()

        if self.hook is not None and result.profit:
            recipients, _ = self.hook.get_recipients()
            summary["payouts"] = {
                recipient: chain.token_balance(result.profit_token, recipient)
                for recipient in recipients
            }
            summary["dust_to_swap_recipient"] = chain.token_balance(
                result.profit_token, swap_recipient
            )
        return summary


@click.command()
@click.option(
    "--scenario",
    "-s",
    default="two_pool_cycle.yaml",
    help="Scenario YAML (path, or name under config/scenarios/)",
)
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(path_type=Path),
    help="Engine config (default: config/reflex.yaml)",
)
@click.option(
    "--rpc-quoter",
    is_flag=True,
    default=False,
    help="Quote through the RPC quoter configured in reflex.yaml",
)
@click.option(
    "--log-level",
    "-l",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=True,
    help="Use JSON log format",
)
def main(
    scenario: str,
    config_path: Optional[Path],
    rpc_quoter: bool,
    log_level: str,
    json_logs: bool,
) -> None:
    """
    Reflex backrun replay.

    Deploys the scenario on an in-process chain, fires its trigger and
    prints a JSON summary.
    """
    setup_logging(level=log_level, json_output=json_logs)
    set_global_context(service="reflex-backrun", version="0.1.0")

    try:
        config = load_reflex_config(config_path)
        data = load_scenario(Path(scenario))
        if rpc_quoter:
            data["quoter"] = "rpc"

        run = ScenarioRun(data, config)
        run.deploy()
        summary = run.trigger()
    except ReflexError as e:
        log_error(logger, e.code.value, e.message, details=e.details)
        click.echo(json.dumps({"ok": False, "error": e.to_dict()}, indent=2))
        sys.exit(1)
    except FileNotFoundError as e:
        click.echo(json.dumps({"ok": False, "error": {"message": str(e)}}, indent=2))
        sys.exit(2)

    logger.info("Scenario complete", extra={"context": {"profit": summary["profit"]}})
    click.echo(json.dumps({"ok": True, **summary}, indent=2))


if __name__ == "__main__":
    main()
