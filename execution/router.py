"""
execution/router.py - Backrun controller.

Public face of the engine: receives a trigger, asks the quoter once, runs
the route through the executor and pays the realized profit out.

TRIGGER CONTRACT:
=================
trigger_backrun(trigger_pool_id, swap_amount_in, token0_in, recipient)
  - swap_amount_in must fit in uint112
  - asset id for the quoter = 0 if token0_in else 1
  - empty route        -> (0, ZERO_ADDRESS), no transfer, no event
  - executed route     -> profit of the start token sent to recipient,
                          BackrunExecuted emitted (even when profit is 0)
  - reentrant trigger  -> (0, ZERO_ADDRESS), warning logged
  - any revert         -> whole trigger rolls back
=================
"""

from typing import Optional, Union

from chains.ledger import Chain
from core.abi import checksum, is_zero_address, pool_id_to_address
from core.constants import DEFAULT_MAX_HOPS, ZERO_ADDRESS
from core.exceptions import AccessDeniedError, ConfigError, ErrorCode
from core.logging import get_logger, log_backrun
from core.math import require_uint, require_uint112
from core.models import BackrunResult
from execution.executor import MultiHopExecutor
from quoting.client import QuoteClient

logger = get_logger(__name__)


class BackrunRouter(MultiHopExecutor):
    """
    Usage:
        router = chain.deploy(BackrunRouter, quoter.address, deployer=admin)
        profit, token = chain.transact(
            searcher, router, "trigger_backrun", pool_id, 10**18, True, searcher
        )
    """

    def __init__(
        self,
        chain: Chain,
        address: str,
        quoter: Optional[str] = None,
        max_hops: int = DEFAULT_MAX_HOPS,
    ):
        super().__init__(chain, address)
        self.admin = chain.tx_origin
        self.quoter = ZERO_ADDRESS if quoter is None else checksum(quoter)
        self._quote_client = QuoteClient(max_hops=max_hops)

    # =========================================================================
    # ACCESS CONTROL
    # =========================================================================

    def _only_admin(self, action: str) -> None:
        if self.msg_sender != self.admin:
            raise AccessDeniedError(
                f"Only the admin can {action}",
                details={"caller": self.msg_sender, "action": action},
            )

    @staticmethod
    def _require_non_zero(address: str, name: str) -> str:
        address = checksum(address)
        if is_zero_address(address):
            raise ConfigError(
                ErrorCode.ZERO_ADDRESS,
                f"{name} cannot be the zero address",
                details={"name": name},
            )
        return address

    # =========================================================================
    # TRIGGER
    # =========================================================================

    def trigger_backrun(
        self,
        trigger_pool_id: Union[str, bytes, int],
        swap_amount_in: int,
        token0_in: bool,
        recipient: str,
    ) -> BackrunResult:
        with self._guard.enter() as entered:
            if not entered:
                return BackrunResult.zero()
            return self._trigger(trigger_pool_id, swap_amount_in, token0_in, recipient)

    def _trigger(
        self,
        trigger_pool_id: Union[str, bytes, int],
        swap_amount_in: int,
        token0_in: bool,
        recipient: str,
    ) -> BackrunResult:
        require_uint112(swap_amount_in, "swap_amount_in")
        pool = pool_id_to_address(trigger_pool_id)
        recipient = checksum(recipient)

        if is_zero_address(self.quoter):
            raise ConfigError(ErrorCode.QUOTER_NOT_SET, "Quoter is not set")

        asset_id = 0 if token0_in else 1
        quote_profit, route = self._quote_client.fetch(
            self.chain, self.quoter, pool, asset_id, swap_amount_in
        )
        if route is None:
            logger.debug(
                "No backrun opportunity",
                extra={"context": {"pool": pool, "swap_amount_in": swap_amount_in}},
            )
            return BackrunResult.zero()

        profit = self._execute_route(route)
        profit_token = route.profit_token
        if profit:
            self.chain.transfer_token(profit_token, recipient, profit)

        self.emit(
            "BackrunExecuted",
            trigger_pool_id=trigger_pool_id,
            swap_amount_in=swap_amount_in,
            token0_in=token0_in,
            quote_profit=quote_profit,
            profit=profit,
            profit_token=profit_token,
            recipient=recipient,
        )
        log_backrun(
            logger,
            pool=pool,
            swap_amount_in=swap_amount_in,
            token0_in=token0_in,
            profit=profit,
            profit_token=profit_token,
            recipient=recipient,
            quote_profit=quote_profit,
            hops=len(route.hops),
        )
        return BackrunResult(profit=profit, profit_token=profit_token)

    # =========================================================================
    # ADMIN
    # =========================================================================

    def set_quoter(self, quoter: str) -> None:
        self._only_admin("set the quoter")
        quoter = self._require_non_zero(quoter, "quoter")
        previous, self.quoter = self.quoter, quoter
        self.emit("QuoterUpdated", previous=previous, quoter=quoter)
        logger.info(
            f"Quoter updated to {quoter}",
            extra={"context": {"previous": previous, "quoter": quoter}},
        )

    def withdraw_token(self, token: str, amount: int, to: str) -> None:
        self._only_admin("withdraw tokens")
        to = self._require_non_zero(to, "recipient")
        require_uint(amount, name="amount")
        self.chain.transfer_token(token, to, amount)
        self.emit("TokenWithdrawn", token=checksum(token), amount=amount, to=to)

    def withdraw_eth(self, amount: int, to: str) -> None:
        self._only_admin("withdraw native currency")
        to = self._require_non_zero(to, "recipient")
        require_uint(amount, name="amount")
        self.chain.send_value(to, amount)
        self.emit("EthWithdrawn", amount=amount, to=to)

    def get_admin(self) -> str:
        return self.admin

    def get_quoter(self) -> str:
        return self.quoter

    def receive(self, amount: int) -> None:
        pass
