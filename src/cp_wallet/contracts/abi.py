"""Minimal ABIs for the contract methods the toolkit calls."""

from __future__ import annotations


def _params(*pairs: tuple[str, str]) -> list[dict]:
    return [{"name": name, "type": typ} for name, typ in pairs]


def _fn(
    name: str,
    inputs: list[dict],
    outputs: list[dict] | None = None,
    mutability: str = "nonpayable",
) -> dict:
    return {
        "type": "function",
        "name": name,
        "inputs": inputs,
        "outputs": outputs or [],
        "stateMutability": mutability,
    }


TOKEN_ABI: list[dict] = [
    _fn("transfer", _params(("to", "address"), ("amount", "uint256")), _params(("", "bool"))),
    _fn("approve", _params(("spender", "address"), ("amount", "uint256")), _params(("", "bool"))),
    _fn("balanceOf", _params(("account", "address")), _params(("", "uint256")), "view"),
]

ECP_COLLATERAL_ABI: list[dict] = [
    _fn("deposit", _params(("cpAccount", "address")), mutability="payable"),
    _fn("withdraw", _params(("cpAccount", "address"), ("amount", "uint256"))),
    _fn(
        "cpInfo",
        _params(("cpAccount", "address")),
        [
            {
                "name": "",
                "type": "tuple",
                "components": _params(
                    ("cp", "address"),
                    ("balance", "int256"),
                    ("frozenBalance", "uint256"),
                    ("status", "string"),
                ),
            }
        ],
        "view",
    ),
]

FCP_COLLATERAL_ABI: list[dict] = [
    _fn("deposit", _params(("recipient", "address"), ("amount", "uint256"))),
    _fn("withdraw", _params(("amount", "uint256"))),
    _fn("balances", _params(("account", "address")), _params(("", "int256")), "view"),
]

ACCOUNT_ABI: list[dict] = [
    _fn("changeOwnerAddress", _params(("newOwner", "address"))),
    _fn(
        "changeBeneficiary",
        _params(("newBeneficiary", "address"), ("newQuota", "uint256"), ("newExpiration", "uint256")),
    ),
    _fn("changeMultiaddrs", _params(("newMultiaddrs", "string[]"))),
    _fn("changeUbiFlag", _params(("newUbiFlag", "uint8"))),
    _fn(
        "submitUBIProof",
        _params(("_taskId", "string"), ("_taskType", "uint8"), ("_zkType", "string"), ("_proof", "string")),
    ),
    _fn(
        "getAccount",
        [],
        _params(
            ("owner", "address"),
            ("nodeId", "string"),
            ("multiAddresses", "string[]"),
            ("ubiFlag", "uint8"),
            ("beneficiary", "address"),
            ("quota", "uint256"),
            ("expiration", "uint256"),
        ),
        "view",
    ),
]
