"""
chains/ledger.py - Deterministic in-process chain.

Holds the world state the engine runs against:
- contracts (Python objects) keyed by checksummed address
- native currency balances
- an append-only event log
- a call-frame stack exposing msg.sender / tx.origin

LEDGER CONTRACT:
================
- transact(): top-level transaction from an EOA. Any exception rolls back
  every state change made inside it, then propagates.
- call() / raw_call(): nested contract-to-contract call; msg.sender is the
  calling contract. No rollback of its own (the enclosing transaction or
  try_call handles it).
- try_call(): nested call with revert isolation. A ReflexError rolls back the
  sub-call's effects and is returned instead of raised.
- Nothing here reads the clock or a random source: identical state and
  inputs give identical results.
================
"""

import copy
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, ClassVar, Iterator, Optional, Union

from eth_utils import keccak, to_checksum_address

from core.abi import checksum
from core.constants import DEFAULT_CHAIN_ID, ZERO_ADDRESS
from core.exceptions import ErrorCode, ExecutionError, ReflexError
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class EventLog:
    """One emitted event."""
    address: str
    name: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CallFrame:
    """Execution context of one call."""
    sender: str
    this: str
    origin: str


@dataclass
class LedgerSnapshot:
    """Opaque copy of world state used for rollback."""
    contracts: dict[str, "Contract"]
    contract_states: dict[str, dict[str, Any]]
    native: dict[str, int]
    log_length: int
    nonces: dict[str, int]


class Contract:
    """
    Base class for everything deployed on a Chain.

    Every instance attribute not listed in NON_STATE is contract storage and
    is snapshotted / restored with the ledger.
    """

    NON_STATE: ClassVar[frozenset[str]] = frozenset({"chain", "address"})

    def __init__(self, chain: "Chain", address: str):
        self.chain = chain
        self.address = address

    @property
    def msg_sender(self) -> str:
        return self.chain.msg_sender

    def emit(self, name: str, **args: Any) -> None:
        self.chain.emit(self.address, name, args)

    def snapshot_state(self) -> dict[str, Any]:
        return copy.deepcopy(
            {k: v for k, v in vars(self).items() if k not in self.NON_STATE}
        )

    def restore_state(self, state: dict[str, Any]) -> None:
        for key in list(vars(self)):
            if key not in self.NON_STATE and key not in state:
                delattr(self, key)
        for key, value in copy.deepcopy(state).items():
            setattr(self, key, value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.address})"


ContractRef = Union[str, Contract]


class Chain:
    """
    In-process ledger.

    Usage:
        chain = Chain()
        admin = chain.account("admin")
        router = chain.deploy(BackrunRouter, deployer=admin)
        chain.transact(admin, router, "set_quoter", quoter.address)
    """

    def __init__(self, chain_id: int = DEFAULT_CHAIN_ID):
        self.chain_id = chain_id
        self.logs: list[EventLog] = []
        self._contracts: dict[str, Contract] = {}
        self._native: dict[str, int] = {}
        self._nonces: dict[str, int] = {}
        self._frames: list[CallFrame] = []

    # =========================================================================
    # IDENTITY
    # =========================================================================

    @staticmethod
    def account(label: str) -> str:
        """Deterministic externally-owned address for a label."""
        return to_checksum_address(keccak(text=f"account:{label}")[-20:])

    @property
    def in_transaction(self) -> bool:
        return bool(self._frames)

    @property
    def msg_sender(self) -> str:
        return self._frames[-1].sender if self._frames else ZERO_ADDRESS

    @property
    def tx_origin(self) -> str:
        return self._frames[-1].origin if self._frames else ZERO_ADDRESS

    @property
    def this(self) -> str:
        return self._frames[-1].this if self._frames else ZERO_ADDRESS

    @contextmanager
    def _frame(self, sender: str, this: str, origin: str) -> Iterator[CallFrame]:
        frame = CallFrame(sender=sender, this=this, origin=origin)
        self._frames.append(frame)
        try:
            yield frame
        finally:
            self._frames.pop()

    # =========================================================================
    # CONTRACTS
    # =========================================================================

    def _next_contract_address(self, deployer: str) -> str:
        nonce = self._nonces.get(deployer, 0)
        self._nonces[deployer] = nonce + 1
        seed = bytes.fromhex(deployer[2:]) + nonce.to_bytes(32, "big")
        return to_checksum_address(keccak(seed)[-20:])

    def deploy(
        self,
        contract_cls: type,
        *args: Any,
        deployer: Optional[str] = None,
        **kwargs: Any,
    ) -> Any:
        """
        Deploy a contract.

        Inside a call the deploying contract is msg.sender and tx.origin is
        preserved; at top level `deployer` is both.
        """
        if self._frames:
            sender, origin = self.this, self.tx_origin
        else:
            if deployer is None:
                raise ExecutionError(
                    ErrorCode.VALIDATION_ERROR,
                    "Top-level deploy requires a deployer",
                )
            sender = origin = checksum(deployer)

        snapshot = None if self._frames else self.snapshot()
        try:
            address = self._next_contract_address(sender)
            with self._frame(sender, address, origin):
                contract = contract_cls(self, address, *args, **kwargs)
            self._contracts[address] = contract
        except Exception:
            if snapshot is not None:
                self.restore(snapshot)
            raise

        logger.debug(
            f"Deployed {contract_cls.__name__} at {address}",
            extra={"context": {"address": address, "deployer": sender}},
        )
        return contract

    def contract_at(self, address: ContractRef) -> Contract:
        address = self._resolve(address)
        contract = self._contracts.get(address)
        if contract is None:
            raise ExecutionError(
                ErrorCode.CONTRACT_NOT_FOUND,
                f"No contract at {address}",
                details={"address": address},
            )
        return contract

    def is_contract(self, address: str) -> bool:
        return checksum(address) in self._contracts

    @staticmethod
    def _resolve(target: ContractRef) -> str:
        if isinstance(target, Contract):
            return target.address
        return checksum(target)

    # =========================================================================
    # CALLS
    # =========================================================================

    def _bound_method(self, contract: Contract, method: str):
        fn = getattr(contract, method, None) if not method.startswith("_") else None
        if fn is None or not callable(fn):
            raise ExecutionError(
                ErrorCode.METHOD_NOT_FOUND,
                f"{type(contract).__name__} has no external method {method!r}",
                details={"address": contract.address, "method": method},
            )
        return fn

    def transact(
        self,
        sender: str,
        target: ContractRef,
        method: str,
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """Top-level transaction from an externally-owned account."""
        if self._frames:
            raise ExecutionError(
                ErrorCode.VALIDATION_ERROR,
                "transact() cannot be nested; use call()",
            )
        sender = checksum(sender)
        contract = self.contract_at(target)
        fn = self._bound_method(contract, method)

        snapshot = self.snapshot()
        try:
            with self._frame(sender, contract.address, sender):
                return fn(*args, **kwargs)
        except Exception:
            self.restore(snapshot)
            raise

    def call(self, target: ContractRef, method: str, *args: Any, **kwargs: Any) -> Any:
        """Contract-to-contract call; msg.sender is the current contract."""
        contract = self.contract_at(target)
        fn = self._bound_method(contract, method)
        with self._frame(self.this, contract.address, self.tx_origin):
            return fn(*args, **kwargs)

    def raw_call(self, target: ContractRef, calldata: bytes) -> Any:
        """Low-level call routed to the target's fallback."""
        contract = self.contract_at(target)
        fallback = getattr(contract, "fallback", None)
        if fallback is None:
            raise ExecutionError(
                ErrorCode.METHOD_NOT_FOUND,
                f"{type(contract).__name__} has no fallback",
                details={"address": contract.address, "selector": calldata[:4].hex()},
            )
        with self._frame(self.this, contract.address, self.tx_origin):
            return fallback(calldata)

    def try_call(
        self,
        target: ContractRef,
        method: str,
        *args: Any,
        **kwargs: Any,
    ) -> tuple[bool, Any]:
        """
        Call with revert isolation.

        Returns (True, result) or (False, ReflexError). Only reverts are
        caught; other exceptions are bugs and propagate.
        """
        snapshot = self.snapshot()
        try:
            return True, self.call(target, method, *args, **kwargs)
        except ReflexError as e:
            self.restore(snapshot)
            return False, e

    # =========================================================================
    # NATIVE CURRENCY
    # =========================================================================

    def native_balance(self, address: str) -> int:
        return self._native.get(checksum(address), 0)

    def set_native_balance(self, address: str, amount: int) -> None:
        """Genesis / test funding."""
        self._native[checksum(address)] = amount

    def send_value(self, to: str, amount: int) -> None:
        """Send native currency from the current contract."""
        sender = self.this
        to = checksum(to)
        balance = self._native.get(sender, 0)
        if amount > balance:
            raise ExecutionError(
                ErrorCode.INSUFFICIENT_BALANCE,
                "Insufficient native balance",
                details={"sender": sender, "balance": balance, "amount": amount},
            )
        self._native[sender] = balance - amount
        self._native[to] = self._native.get(to, 0) + amount

        contract = self._contracts.get(to)
        if contract is not None:
            receive = getattr(contract, "receive", None)
            if receive is None:
                raise ExecutionError(
                    ErrorCode.TRANSFER_FAILED,
                    f"{type(contract).__name__} cannot receive native currency",
                    details={"to": to, "amount": amount},
                )
            with self._frame(sender, to, self.tx_origin):
                receive(amount)

    # =========================================================================
    # ERC20 HELPERS
    # =========================================================================

    def fund(self, token: ContractRef, to: str, amount: int) -> None:
        """Genesis / test funding of an ERC20 balance."""
        self.contract_at(token)._mint(checksum(to), amount)

    def token_balance(self, token: ContractRef, account: str) -> int:
        return self.call(token, "balance_of", account)

    def transfer_token(self, token: ContractRef, to: str, amount: int) -> None:
        """Transfer from the current contract; a False return is a failure."""
        ok = self.call(token, "transfer", to, amount)
        if ok is False:
            raise ExecutionError(
                ErrorCode.TRANSFER_FAILED,
                "Token transfer returned false",
                details={"token": self._resolve(token), "to": to, "amount": amount},
            )

    # =========================================================================
    # EVENTS
    # =========================================================================

    def emit(self, address: str, name: str, args: dict[str, Any]) -> None:
        self.logs.append(EventLog(address=address, name=name, args=dict(args)))

    def events(self, name: Optional[str] = None, address: Optional[str] = None) -> list[EventLog]:
        return [
            log for log in self.logs
            if (name is None or log.name == name)
            and (address is None or log.address == checksum(address))
        ]

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            contracts=dict(self._contracts),
            contract_states={
                address: contract.snapshot_state()
                for address, contract in self._contracts.items()
            },
            native=dict(self._native),
            log_length=len(self.logs),
            nonces=dict(self._nonces),
        )

    def restore(self, snapshot: LedgerSnapshot) -> None:
        self._contracts = dict(snapshot.contracts)
        for address, state in snapshot.contract_states.items():
            self._contracts[address].restore_state(state)
        self._native = dict(snapshot.native)
        del self.logs[snapshot.log_length:]
        self._nonces = dict(snapshot.nonces)


class Erc20Token(Contract):
    """Minimal ERC20."""

    def __init__(
        self,
        chain: Chain,
        address: str,
        name: str,
        symbol: str,
        decimals: int = 18,
    ):
        super().__init__(chain, address)
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.total_supply = 0
        self.balances: dict[str, int] = {}

    def balance_of(self, account: str) -> int:
        return self.balances.get(checksum(account), 0)

    def transfer(self, to: str, amount: int) -> bool:
        sender = self.msg_sender
        to = checksum(to)
        balance = self.balances.get(sender, 0)
        if amount < 0 or amount > balance:
            raise ExecutionError(
                ErrorCode.INSUFFICIENT_BALANCE,
                f"{self.symbol}: transfer amount exceeds balance",
                details={"from": sender, "to": to, "amount": amount, "balance": balance},
            )
        self.balances[sender] = balance - amount
        self.balances[to] = self.balances.get(to, 0) + amount
        self.emit("Transfer", sender=sender, to=to, amount=amount)
        return True

    def _mint(self, to: str, amount: int) -> None:
        self.balances[to] = self.balances.get(to, 0) + amount
        self.total_supply += amount
        self.emit("Transfer", sender=ZERO_ADDRESS, to=to, amount=amount)
