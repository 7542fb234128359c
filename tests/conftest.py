import shutil
from pathlib import Path

import pytest

from ethgate import Address, ChainClient, ContractInvoker, ContractStore, TxHash

CONTRACTS_DIR = Path(__file__).resolve().parent / "contracts"


class FakeChainClient(ChainClient):
    """Records the requests and answers with preset values."""

    def __init__(self) -> None:
        self.node_accounts = [
            Address(b"\x01" * 20),
            Address(b"\x02" * 20),
        ]
        self.balances: dict[Address, int] = {}
        self.deployed: list[tuple[Address, bytes, int, int]] = []
        self.transactions: list[tuple[Address, Address, bytes, int]] = []
        self.calls: list[tuple[Address, bytes, None | Address]] = []
        self.deployed_address = Address(b"\xaa" * 20)
        self.tx_hash = TxHash(b"\xbb" * 32)
        self.call_result = b""

    async def accounts(self) -> list[Address]:
        return list(self.node_accounts)

    async def balance(self, address: Address) -> int:
        return self.balances.get(address, 0)

    async def deploy(
        self, from_: Address, data: bytes, *, gas: int, confirmations: int = 0
    ) -> Address:
        self.deployed.append((from_, data, gas, confirmations))
        return self.deployed_address

    async def transact(
        self, from_: Address, to: Address, data: bytes, *, confirmations: int = 0
    ) -> TxHash:
        self.transactions.append((from_, to, data, confirmations))
        return self.tx_hash

    async def call(self, to: Address, data: bytes, from_: None | Address = None) -> bytes:
        self.calls.append((to, data, from_))
        return self.call_result


@pytest.fixture
def contracts_dir(tmp_path: Path) -> Path:
    root = tmp_path / "contracts"
    shutil.copytree(CONTRACTS_DIR, root)
    return root


@pytest.fixture
def store(contracts_dir: Path) -> ContractStore:
    return ContractStore(contracts_dir)


@pytest.fixture
def chain() -> FakeChainClient:
    return FakeChainClient()


@pytest.fixture
def invoker(chain: FakeChainClient, store: ContractStore) -> ContractInvoker:
    return ContractInvoker(chain, store, deploy_gas=1_000_000)


@pytest.fixture
def multisig_abi() -> str:
    return (CONTRACTS_DIR / "MultiSig.abi").read_text()
