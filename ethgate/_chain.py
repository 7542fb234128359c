from abc import ABC, abstractmethod
from collections.abc import Callable
from functools import partial
from typing import Any, TypeVar

import anyio
import anyio.to_thread
from eth_utils import encode_hex
from web3 import Web3
from web3.exceptions import Web3Exception

from ._entities import Address, TxHash
from ._errors import ChainError, TransactionFailed

_T = TypeVar("_T")


class ChainClient(ABC):
    """
    The node-facing operations the gateway needs.

    The methods of this class may raise :py:class:`ChainError`
    indicating a problem on the node's side.
    """

    @abstractmethod
    async def accounts(self) -> list[Address]:
        """Returns the accounts managed by the node."""
        ...

    @abstractmethod
    async def balance(self, address: Address) -> int:
        """Returns the balance of the account in wei."""
        ...

    @abstractmethod
    async def deploy(
        self, from_: Address, data: bytes, *, gas: int, confirmations: int = 0
    ) -> Address:
        """
        Sends a contract creation transaction with the given init code
        and returns the address of the deployed contract.
        """
        ...

    @abstractmethod
    async def transact(
        self, from_: Address, to: Address, data: bytes, *, confirmations: int = 0
    ) -> TxHash:
        """
        Sends a transaction calling a contract.
        If ``confirmations`` is not zero, waits until the transaction
        has the given number of confirmations.
        """
        ...

    @abstractmethod
    async def call(self, to: Address, data: bytes, from_: None | Address = None) -> bytes:
        """Executes a read-only call and returns the raw output."""
        ...


class Web3ChainClient(ChainClient):
    """
    A :py:class:`ChainClient` on top of a synchronous ``web3.Web3`` instance.

    Transactions are sent on behalf of accounts managed by the node
    (``eth_sendTransaction``), so no keys are handled here.
    The blocking ``web3`` calls are executed in worker threads.
    """

    def __init__(self, web3: Web3, *, poll_interval: float = 10, receipt_timeout: float = 120):
        self._web3 = web3
        self._poll_interval = poll_interval
        self._receipt_timeout = receipt_timeout

    @classmethod
    def from_url(cls, rpc_url: str, **kwargs: Any) -> "Web3ChainClient":
        """Creates a client connected to the node over HTTP."""
        return cls(Web3(Web3.HTTPProvider(rpc_url)), **kwargs)

    async def _run(self, func: Callable[..., _T], *args: Any, **kwargs: Any) -> _T:
        try:
            return await anyio.to_thread.run_sync(partial(func, *args, **kwargs))
        except (Web3Exception, ValueError, OSError) as exc:
            raise ChainError(str(exc)) from exc

    def _block_number(self) -> int:
        return self._web3.eth.block_number

    async def _wait_for_receipt(self, tx_hash: bytes, confirmations: int) -> Any:
        receipt = await self._run(
            self._web3.eth.wait_for_transaction_receipt,
            tx_hash,
            timeout=self._receipt_timeout,
            poll_latency=self._poll_interval,
        )
        if receipt["status"] == 0:
            raise TransactionFailed(f"Transaction {encode_hex(tx_hash)} failed")

        # The block including the transaction counts as the first confirmation
        target_block = receipt["blockNumber"] + confirmations - 1
        while await self._run(self._block_number) < target_block:
            await anyio.sleep(self._poll_interval)

        return receipt

    async def accounts(self) -> list[Address]:
        accounts = await self._run(lambda: self._web3.eth.accounts)
        return [Address.from_hex(account) for account in accounts]

    async def balance(self, address: Address) -> int:
        return await self._run(self._web3.eth.get_balance, address.checksum)

    async def deploy(
        self, from_: Address, data: bytes, *, gas: int, confirmations: int = 0
    ) -> Address:
        tx = {"from": from_.checksum, "data": encode_hex(data), "gas": gas}
        tx_hash = await self._run(self._web3.eth.send_transaction, tx)
        receipt = await self._wait_for_receipt(tx_hash, confirmations)
        if receipt["contractAddress"] is None:
            raise TransactionFailed(
                f"Transaction {encode_hex(tx_hash)} did not create a contract"
            )
        return Address.from_hex(receipt["contractAddress"])

    async def transact(
        self, from_: Address, to: Address, data: bytes, *, confirmations: int = 0
    ) -> TxHash:
        tx = {"from": from_.checksum, "to": to.checksum, "data": encode_hex(data)}
        tx_hash = await self._run(self._web3.eth.send_transaction, tx)
        if confirmations > 0:
            await self._wait_for_receipt(tx_hash, confirmations)
        return TxHash(bytes(tx_hash))

    async def call(self, to: Address, data: bytes, from_: None | Address = None) -> bytes:
        tx = {"to": to.checksum, "data": encode_hex(data)}
        if from_ is not None:
            tx["from"] = from_.checksum
        result = await self._run(self._web3.eth.call, tx)
        return bytes(result)
