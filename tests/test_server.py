from pathlib import Path

import anyio
import pytest
from starlette.testclient import TestClient

from ethgate import Address, ChainError, ContractInvoker, ContractStore, TxHash, make_app

from .conftest import FakeChainClient

OWNER1 = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
OWNER2 = str(Address(b"\x02" * 20))


class SlowChainClient(FakeChainClient):
    async def accounts(self) -> list[Address]:
        await anyio.sleep(10)
        return []


class FailingChainClient(FakeChainClient):
    async def transact(
        self, from_: Address, to: Address, data: bytes, *, confirmations: int = 0
    ) -> TxHash:
        raise ChainError("nonce too low")


@pytest.fixture
def client(invoker: ContractInvoker) -> TestClient:
    return TestClient(make_app(invoker))


def call_body(**kwargs) -> dict:
    body = dict(
        contract_name="MultiSig",
        contract_address=OWNER2,
        from_account=OWNER1,
        fn_name="submitTransaction",
        fn_params=[OWNER2, "0xde0b6b3a7640000"],
    )
    body.update(kwargs)
    return body


def test_hello(client: TestClient) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert response.text == "Hello, World!"


def test_accounts(client: TestClient, chain: FakeChainClient) -> None:
    response = client.get("/eth/accounts")
    assert response.status_code == 200
    assert response.json() == {
        "code": 200,
        "msg": "OK",
        "data": [str(account) for account in chain.node_accounts],
    }


def test_balance(client: TestClient, chain: FakeChainClient) -> None:
    chain.balances[Address.from_hex(OWNER1)] = 12 * 10**18 + 1
    response = client.get(f"/eth/balance/{OWNER1}")
    assert response.json() == {"code": 200, "msg": "OK", "data": "12"}

    response = client.get("/eth/balance/0x1234")
    assert response.status_code == 400
    assert response.json() == {
        "code": 400,
        "msg": "Bad Request",
        "data": "account: 0x1234 parse failed",
    }


def test_deploy(client: TestClient, chain: FakeChainClient) -> None:
    response = client.post(
        "/eth/contract/deploy",
        json=dict(
            from_account=OWNER1,
            contract_name="MultiSig",
            contract_params=[[OWNER1, OWNER2], "2", True],
        ),
    )
    assert response.status_code == 200
    assert response.json()["data"] == str(chain.deployed_address)
    assert len(chain.deployed) == 1


def test_call(client: TestClient, chain: FakeChainClient) -> None:
    response = client.post("/eth/contract/call", json=call_body())
    assert response.status_code == 200
    assert response.json()["data"] == "0x" + "bb" * 32
    assert len(chain.transactions) == 1


def test_query(client: TestClient, chain: FakeChainClient) -> None:
    chain.call_result = (1).to_bytes(32, "big")
    response = client.post(
        "/eth/contract/query", json=call_body(fn_name="isOwner", fn_params=OWNER1)
    )
    assert response.json() == {"code": 200, "msg": "OK", "data": ["true"]}


def test_bad_requests(client: TestClient, contracts_dir: Path) -> None:
    response = client.post("/eth/contract/call", content=b"{not json")
    assert response.status_code == 400
    assert response.json()["data"].startswith("request body is not valid JSON")

    response = client.post("/eth/contract/call", json=call_body(fn_params={"a": 1}))
    assert response.json() == {"code": 400, "msg": "Bad Request", "data": "Map type unsupported"}

    response = client.post("/eth/contract/call", json=call_body(fn_params=["0x1234", "1"]))
    assert response.status_code == 400
    assert response.json()["data"] == "Invalid address: '0x1234' (expected 40 hex digits)"

    response = client.post("/eth/contract/call", json=call_body(fn_params=[OWNER2, 1.5]))
    assert response.json()["data"] == "f64 is not supported"

    response = client.post("/eth/contract/call", json=call_body(fn_name="transfer"))
    assert response.json()["data"] == "function not found in abi"

    response = client.post("/eth/contract/call", json=call_body(from_account=None))
    assert response.json()["data"] == "missing field `from_account`"

    (contracts_dir / "NoConstructor.abi").write_text("[]")
    response = client.post("/eth/contract/call", json=call_body(contract_name="NoConstructor"))
    assert response.status_code == 400
    assert response.json()["data"] == "constructor not found"


def test_mixed_array_elements(client: TestClient, chain: FakeChainClient) -> None:
    response = client.post(
        "/eth/contract/query", json=call_body(fn_name="setOwners", fn_params=[[True, 5]])
    )
    assert response.status_code == 400
    assert response.json()["data"] == (
        "Array elements must have the same type, got bool and uint64, data: [true, 5]"
    )
    assert chain.calls == []


def test_contract_not_found(client: TestClient) -> None:
    response = client.post("/eth/contract/query", json=call_body(contract_name="Missing"))
    assert response.status_code == 404
    body = response.json()
    assert body["code"] == 404
    assert body["msg"] == "Not Found"
    assert body["data"].startswith("Contract `Missing` not found")


def test_chain_error(store: ContractStore) -> None:
    client = TestClient(make_app(ContractInvoker(FailingChainClient(), store)))
    response = client.post("/eth/contract/call", json=call_body())
    assert response.status_code == 500
    assert response.json() == {
        "code": 500,
        "msg": "Internal Server Error",
        "data": "nonce too low",
    }


def test_unhandled_error(client: TestClient, contracts_dir: Path) -> None:
    (contracts_dir / "Broken.abi").write_text((contracts_dir / "Answer.abi").read_text())
    (contracts_dir / "Broken.bin").write_text("0xzz")
    response = client.post(
        "/eth/contract/deploy", json=dict(from_account=OWNER1, contract_name="Broken")
    )
    assert response.status_code == 500
    assert response.json()["data"] == (
        "Unhandled internal error: Malformed bytecode of contract `Broken`"
    )


def test_request_timeout(store: ContractStore) -> None:
    app = make_app(ContractInvoker(SlowChainClient(), store), request_timeout=0.05)
    response = TestClient(app).get("/eth/accounts")
    assert response.status_code == 408
    assert response.json() == {
        "code": 408,
        "msg": "Request Timeout",
        "data": "request timed out",
    }
