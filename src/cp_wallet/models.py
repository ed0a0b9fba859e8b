"""Pydantic models for the records the wallet workflows return."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class CollateralKind(str, Enum):
    ECP = "ecp"    # native-value collateral, ZK task provider
    FCP = "fcp"    # token collateral, requires approve before deposit


class UbiFlag(int, Enum):
    REJECT = 0
    ACCEPT = 1


# ---------------------------------------------------------------------------
# Contract views
# ---------------------------------------------------------------------------

class CpCollateralInfo(BaseModel):
    """Decoded ``cpInfo`` of the ECP collateral contract."""

    address: str
    collateral_balance: str
    frozen_balance: str
    status: str


class Beneficiary(BaseModel):
    address: str
    quota: int = 0
    expiration: int = 0


class CpAccount(BaseModel):
    """Decoded ``getAccount`` of a CP account contract."""

    owner_address: str
    node_id: str
    multi_addresses: list[str] = Field(default_factory=list)
    ubi_flag: int = 0
    beneficiary: Beneficiary
    contract: str = ""
    owner_balance: str = ""


# ---------------------------------------------------------------------------
# Listing rows
# ---------------------------------------------------------------------------

class WalletRow(BaseModel):
    """One stored address with its balance and pending nonce."""

    address: str
    balance: str = ""
    nonce: Optional[int] = None
    error: str = ""


class CollateralRow(BaseModel):
    """One stored address with its collateral position."""

    address: str
    balance: str = ""
    collateral: str = ""
    escrow: str = ""
    error: str = ""
