"""Tests for the chain client that need no live endpoint."""

import pytest
import requests
from web3 import Web3

from cp_wallet.chain.client import ChainClient, Receipt, dial
from cp_wallet.chain.networks import NETWORKS
from cp_wallet.contracts.abi import TOKEN_ABI
from cp_wallet.errors import (
    ChainError,
    ChainIdFetchError,
    GasPriceFetchError,
    NonceFetchError,
    RpcConnectionError,
    TransactionSubmitError,
)

from conftest import TOKEN, ScriptedProvider, scripted_client

OWNER = Web3.to_checksum_address("0x" + "aa" * 20)
TX_HASH = "0x" + "ab" * 32


class TestChainClient:
    @pytest.mark.parametrize("url", ["", "not a url", "ftp://node:21", "http://"])
    def test_invalid_url(self, url: str) -> None:
        with pytest.raises(RpcConnectionError, match="dial rpc connect failed"):
            ChainClient(url)

    def test_invalid_url_is_chain_error(self) -> None:
        assert issubclass(RpcConnectionError, ChainError)

    def test_dial_and_close(self) -> None:
        with dial("http://127.0.0.1:8545") as client:
            assert client.rpc_url == "http://127.0.0.1:8545"
            assert client.w3 is not None


class TestAccountState:
    def test_reads(self) -> None:
        provider = ScriptedProvider(
            {
                "eth_getTransactionCount": "0x7",
                "eth_gasPrice": "0x3b9aca00",
                "eth_getBalance": hex(5 * 10**18),
            }
        )
        with scripted_client(provider) as client:
            assert client.pending_nonce(OWNER) == 7
            assert client.suggested_gas_price() == 10**9
            assert client.chain_id() == 254
            assert client.balance(OWNER) == 5 * 10**18

    @pytest.mark.parametrize(
        "call, error",
        [
            (lambda c: c.pending_nonce(OWNER), NonceFetchError),
            (lambda c: c.suggested_gas_price(), GasPriceFetchError),
            (lambda c: c.chain_id(), ChainIdFetchError),
            (lambda c: c.balance(OWNER), ChainError),
        ],
        ids=["nonce", "gas-price", "chain-id", "balance"],
    )
    def test_transport_failure_is_chain_error(self, call, error) -> None:
        provider = ScriptedProvider(down=requests.ConnectionError("connection refused"))
        with scripted_client(provider) as client:
            with pytest.raises(error, match="connection refused"):
                call(client)

    def test_rpc_error_is_chain_error(self) -> None:
        provider = ScriptedProvider(errors={"eth_getTransactionCount": "header not found"})
        with scripted_client(provider) as client:
            with pytest.raises(NonceFetchError, match="header not found"):
                client.pending_nonce(OWNER)


class TestTransactions:
    def test_receipt_not_found_is_none(self) -> None:
        provider = ScriptedProvider({"eth_getTransactionReceipt": None})
        with scripted_client(provider) as client:
            assert client.transaction_receipt(TX_HASH) is None

    @pytest.mark.parametrize("status, succeeded", [("0x1", True), ("0x0", False)])
    def test_receipt_status(self, status: str, succeeded: bool) -> None:
        provider = ScriptedProvider(
            {
                "eth_getTransactionReceipt": {
                    "status": status,
                    "blockNumber": "0x10",
                    "transactionHash": TX_HASH,
                }
            }
        )
        with scripted_client(provider) as client:
            receipt = client.transaction_receipt(TX_HASH)
        assert receipt == Receipt(TX_HASH, status=int(status, 16), block_number=16)
        assert receipt.succeeded is succeeded

    def test_receipt_transport_failure(self) -> None:
        provider = ScriptedProvider(down=requests.Timeout("read timed out"))
        with scripted_client(provider) as client:
            with pytest.raises(ChainError, match=f"receipt lookup for tx {TX_HASH}"):
                client.transaction_receipt(TX_HASH)

    def test_send_raw_transaction(self) -> None:
        provider = ScriptedProvider({"eth_sendRawTransaction": TX_HASH})
        with scripted_client(provider) as client:
            assert client.send_raw_transaction(b"\x02\xf8") == TX_HASH

    def test_send_rejected(self) -> None:
        provider = ScriptedProvider(errors={"eth_sendRawTransaction": "nonce too low"})
        with scripted_client(provider) as client:
            with pytest.raises(TransactionSubmitError, match="nonce too low"):
                client.send_raw_transaction(b"\x02\xf8")

    def test_send_transport_failure(self) -> None:
        provider = ScriptedProvider(down=requests.ConnectionError("connection reset"))
        with scripted_client(provider) as client:
            with pytest.raises(TransactionSubmitError, match="send raw transaction failed"):
                client.send_raw_transaction(b"\x02\xf8")


class TestContracts:
    def test_call_decodes_result(self) -> None:
        provider = ScriptedProvider({"eth_call": "0x" + f"{5 * 10**18:064x}"})
        with scripted_client(provider) as client:
            assert client.call(TOKEN, TOKEN_ABI, "balanceOf", [OWNER]) == 5 * 10**18

    def test_call_failure(self) -> None:
        provider = ScriptedProvider(down=requests.ConnectionError("connection refused"))
        with scripted_client(provider) as client:
            with pytest.raises(ChainError, match="call balanceOf error"):
                client.call(TOKEN, TOKEN_ABI, "balanceOf", [OWNER])

    def test_build_failure(self) -> None:
        provider = ScriptedProvider(down=requests.ConnectionError("connection refused"))
        tx = {"from": OWNER, "nonce": 0, "chainId": 254, "maxFeePerGas": 10**9}
        with scripted_client(provider) as client:
            with pytest.raises(TransactionSubmitError, match=f"address: {OWNER}, create transfer tx error"):
                client.build_contract_transaction(TOKEN, TOKEN_ABI, "transfer", [OWNER, 1], tx)


class TestReceipt:
    def test_status(self) -> None:
        assert Receipt("0x1", status=1).succeeded
        assert not Receipt("0x1", status=0).succeeded


class TestNetworks:
    def test_chain_ids(self) -> None:
        assert NETWORKS["swan"].chain_id == 254
        assert set(NETWORKS) == {"swan", "proxima", "saturn"}
