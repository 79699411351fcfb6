"""
splitter/funds_splitter.py - Proportional profit splitter.

SHARE TABLE CONTRACT:
=====================
- 1..MAX_RECIPIENTS recipients, insertion ordered
- every weight > 0, every recipient non-zero and unique
- weights sum to exactly 10000 bps
- replaced atomically: any violation leaves the old table untouched

split(token, amount):
  share_i = amount * bps_i // 10000   (floor, in table order)
  sum(share_i) <= amount; the remainder (dust) is returned, not assigned
  zero shares are skipped
  token == ZERO_ADDRESS means native currency
=====================
"""

from typing import Optional, Sequence

from chains.ledger import Chain, Contract
from core.abi import checksum, is_zero_address
from core.constants import BPS_DENOMINATOR, MAX_RECIPIENTS, NATIVE_TOKEN
from core.exceptions import AccessDeniedError, ErrorCode, SplitError
from core.logging import get_logger, log_split
from core.math import bps_share, require_uint
from core.models import SplitResult

logger = get_logger(__name__)


def validate_shares(
    recipients: Sequence[str],
    weights: Sequence[int],
    max_recipients: int = MAX_RECIPIENTS,
) -> tuple[tuple[str, ...], tuple[int, ...]]:
    """
    Validate a share table.

    Returns:
        (checksummed recipients, weights)

    Raises:
        SplitError: first violated rule, checked in a fixed order
    """
    if len(recipients) != len(weights):
        raise SplitError(
            ErrorCode.SHARES_LENGTH_MISMATCH,
            f"{len(recipients)} recipients, {len(weights)} weights",
            details={"recipients": len(recipients), "weights": len(weights)},
        )
    if len(recipients) == 0:
        raise SplitError(ErrorCode.SHARES_EMPTY, "Share table cannot be empty")
    if len(recipients) > max_recipients:
        raise SplitError(
            ErrorCode.SHARES_TOO_MANY,
            f"At most {max_recipients} recipients, got {len(recipients)}",
            details={"recipients": len(recipients), "max": max_recipients},
        )

    normalized = tuple(checksum(r) for r in recipients)
    for position, recipient in enumerate(normalized):
        if is_zero_address(recipient):
            raise SplitError(
                ErrorCode.SHARES_ZERO_ADDRESS,
                "Recipient cannot be the zero address",
                details={"position": position},
            )
    for position, weight in enumerate(weights):
        require_uint(weight, name="weight")
        if weight == 0:
            raise SplitError(
                ErrorCode.SHARES_ZERO_WEIGHT,
                "Weight cannot be zero",
                details={"position": position, "recipient": normalized[position]},
            )

    seen = set()
    for recipient in normalized:
        if recipient in seen:
            raise SplitError(
                ErrorCode.SHARES_DUPLICATE,
                f"Duplicate recipient {recipient}",
                details={"recipient": recipient},
            )
        seen.add(recipient)

    total = sum(weights)
    if total != BPS_DENOMINATOR:
        raise SplitError(
            ErrorCode.SHARES_INVALID_TOTAL,
            f"Weights sum to {total}, expected {BPS_DENOMINATOR}",
            details={"total": total},
        )
    return normalized, tuple(weights)


class FundsSplitter(Contract):
    """
    Splits balances it holds across a weighted recipient table.

    Usage:
        splitter = chain.deploy(FundsSplitter, admin, [a, b], [6000, 4000], deployer=admin)
        result = chain.transact(anyone, splitter, "split", token, 1000)
    """

    def __init__(
        self,
        chain: Chain,
        address: str,
        admin: str,
        recipients: Optional[Sequence[str]] = None,
        weights: Optional[Sequence[int]] = None,
    ):
        super().__init__(chain, address)
        self.admin = checksum(admin)
        self.recipients: tuple[str, ...] = ()
        self.weights: tuple[int, ...] = ()
        if recipients is not None or weights is not None:
            self._set_shares(recipients or [], weights or [])

    def _only_admin(self, action: str) -> None:
        if self.msg_sender != self.admin:
            raise AccessDeniedError(
                f"Only the admin can {action}",
                details={"caller": self.msg_sender, "action": action},
            )

    def _set_shares(self, recipients: Sequence[str], weights: Sequence[int]) -> None:
        self.recipients, self.weights = validate_shares(recipients, weights)
        self.emit("SharesUpdated", recipients=list(self.recipients), weights=list(self.weights))

    def update_shares(self, recipients: Sequence[str], weights: Sequence[int]) -> None:
        self._only_admin("update shares")
        self._set_shares(recipients, weights)
        logger.info(
            f"Shares updated: {len(self.recipients)} recipients",
            extra={"context": {"recipients": list(self.recipients), "weights": list(self.weights)}},
        )

    def get_recipients(self) -> tuple[list[str], list[int]]:
        return list(self.recipients), list(self.weights)

    def split(self, token: str, amount: int) -> SplitResult:
        """Distribute `amount` of `token` held by this contract."""
        return self._split(token, amount)

    def _split(self, token: str, amount: int) -> SplitResult:
        token = checksum(token)
        require_uint(amount, name="amount")
        if not self.recipients:
            raise SplitError(ErrorCode.SHARES_EMPTY, "No share table configured")

        amounts = tuple(bps_share(amount, weight) for weight in self.weights)
        for recipient, share in zip(self.recipients, amounts):
            if share == 0:
                continue
            if token == NATIVE_TOKEN:
                self.chain.send_value(recipient, share)
            else:
                self.chain.transfer_token(token, recipient, share)

        result = SplitResult(
            token=token,
            amount=amount,
            recipients=self.recipients,
            amounts=amounts,
        )
        self.emit(
            "SplitExecuted",
            token=token,
            amount=amount,
            recipients=list(result.recipients),
            amounts=list(result.amounts),
        )
        log_split(logger, token=token, amount=amount, amounts=list(amounts), dust=result.dust)
        return result

    def receive(self, amount: int) -> None:
        pass
