"""
integrations/after_swap.py - Post-swap hook that backruns and splits profit.

Sits next to a pool (plugin / hook position). After every user swap the
pool calls the hook, which asks the router for a backrun with itself as the
profit recipient, splits what comes back across its share table and forwards
the split dust to the swap's recipient.

Only pools the admin registered may report swaps.

A failing backrun never fails the user's swap: the router call goes through
try_call, so its effects are rolled back and the hook returns zero.
"""

from typing import Sequence, Union

from chains.ledger import Chain
from core.abi import checksum, is_zero_address
from core.constants import NATIVE_TOKEN, ZERO_ADDRESS
from core.exceptions import AccessDeniedError, ConfigError, ErrorCode
from core.logging import get_logger
from core.models import BackrunResult, SplitResult
from splitter.funds_splitter import FundsSplitter

logger = get_logger(__name__)


class AfterSwapBackrunner(FundsSplitter):
    """
    Usage:
        hook = chain.deploy(AfterSwapBackrunner, router.address, [a, b], [5000, 5000], [pool.address], deployer=admin)
        chain.transact(pool.address, hook, "after_swap", pool_id, amount_in, True, trader)
    """

    def __init__(
        self,
        chain: Chain,
        address: str,
        router: str,
        recipients: Sequence[str],
        weights: Sequence[int],
        pools: Sequence[str] = (),
    ):
        router = self._require_router(router)
        super().__init__(chain, address, chain.call(router, "get_admin"), recipients, weights)
        self.router = router
        self.pools: set[str] = set()
        for pool in pools:
            self._set_pool(pool, True)

    @staticmethod
    def _require_router(router: str) -> str:
        router = checksum(router)
        if is_zero_address(router):
            raise ConfigError(ErrorCode.ZERO_ADDRESS, "Router cannot be the zero address")
        return router

    def set_router(self, router: str) -> None:
        """Point at a new router and mirror its admin."""
        self._only_admin("set the router")
        router = self._require_router(router)
        previous, self.router = self.router, router
        self.admin = self.chain.call(router, "get_admin")
        self.emit("RouterUpdated", previous=previous, router=router, admin=self.admin)
        logger.info(
            f"Router updated to {router}",
            extra={"context": {"previous": previous, "router": router, "admin": self.admin}},
        )

    def set_pool(self, pool: str, allowed: bool) -> None:
        """Register or remove a pool allowed to call after_swap."""
        self._only_admin("register pools")
        self._set_pool(pool, allowed)

    def _set_pool(self, pool: str, allowed: bool) -> None:
        pool = checksum(pool)
        if is_zero_address(pool):
            raise ConfigError(ErrorCode.ZERO_ADDRESS, "Pool cannot be the zero address")
        if allowed:
            self.pools.add(pool)
        else:
            self.pools.discard(pool)
        self.emit("PoolUpdated", pool=pool, allowed=allowed)

    def is_pool(self, pool: str) -> bool:
        return checksum(pool) in self.pools

    def after_swap(
        self,
        trigger_pool_id: Union[str, bytes, int],
        swap_amount_in: int,
        token0_in: bool,
        swap_recipient: str,
    ) -> BackrunResult:
        """Backrun the swap that just happened; never reverts on router failure."""
        if self.msg_sender not in self.pools:
            raise AccessDeniedError(
                "Only registered pools can report swaps",
                details={"caller": self.msg_sender, "action": "after_swap"},
            )
        swap_recipient = checksum(swap_recipient)
        ok, outcome = self.chain.try_call(
            self.router,
            "trigger_backrun",
            trigger_pool_id,
            swap_amount_in,
            token0_in,
            self.address,
        )
        if not ok:
            logger.warning(
                f"Backrun failed: {outcome}",
                extra={"context": {**outcome.to_dict(), "router": self.router}},
            )
            return BackrunResult.zero()

        result = BackrunResult(*outcome)
        if result.profit == 0 or result.profit_token == ZERO_ADDRESS:
            return result

        split = self._split(result.profit_token, result.profit)
        self._send_dust(split, swap_recipient)
        return result

    def split_eth_balance(self, dust_recipient: str) -> SplitResult:
        """Split all native currency held; dust goes to `dust_recipient`."""
        self._only_admin("split the native balance")
        dust_recipient = checksum(dust_recipient)
        split = self._split(NATIVE_TOKEN, self.chain.native_balance(self.address))
        self._send_dust(split, dust_recipient)
        return split

    def _send_dust(self, split: SplitResult, to: str) -> None:
        if split.dust == 0:
            return
        if split.is_native:
            self.chain.send_value(to, split.dust)
        else:
            self.chain.transfer_token(split.token, to, split.dust)
