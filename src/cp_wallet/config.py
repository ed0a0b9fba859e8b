"""Configuration system for cp-wallet.

Loads the operator config from ``$CP_PATH/config.yaml``, supports
environment variable expansion, and resolves RPC endpoints and contract
addresses for the wallet workflows.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from cp_wallet.errors import ConfigError

CP_PATH_ENV = "CP_PATH"
CONFIG_FILE = "config.yaml"
ACCOUNT_FILE = "account"


# ---------------------------------------------------------------------------
# Environment-variable expansion helper
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with their environment values.

    If the variable is not set the placeholder is left as-is so that
    validation can catch it later.
    """

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_env_recursive(obj: object) -> object:
    """Walk an arbitrary nested structure and expand env vars in strings."""
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _expand_env_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# Pydantic v2 models
# ---------------------------------------------------------------------------


class ChainConfig(BaseModel):
    """RPC endpoints, keyed by a short network name."""

    default_rpc: str = "swan"
    rpcs: dict[str, str] = Field(default_factory=dict)


class ContractConfig(BaseModel):
    """Addresses of the contracts the wallet talks to."""

    collateral: str = ""       # ECP (native) collateral
    fcp_collateral: str = ""   # FCP (token) collateral
    token: str = ""            # collateral token
    account: str = ""          # CP account; falls back to $CP_PATH/account


class HubConfig(BaseModel):
    """Hub API used to look up escrowed collateral."""

    server_url: str = ""
    access_token: str = ""     # ${HUB_ACCESS_TOKEN}


class WalletConfig(BaseModel):
    """Local keystore and confirmation settings."""

    keystore_dir: str = "keystore"
    poll_interval_seconds: float = 3.0
    confirm_timeout_seconds: float = 180.0
    operation_timeout_seconds: float = 0.0  # 0 = unlimited


class CpConfig(BaseModel):
    """Root configuration object for one operator repository."""

    chain: ChainConfig = Field(default_factory=ChainConfig)
    contract: ContractConfig = Field(default_factory=ContractConfig)
    hub: HubConfig = Field(default_factory=HubConfig)
    wallet: WalletConfig = Field(default_factory=WalletConfig)

    # Directory the config was loaded from; not part of the YAML.
    repo_path: Optional[Path] = Field(default=None, exclude=True)

    def rpc_url(self, name: str | None = None) -> str:
        """Resolve an RPC name to its URL.

        Names from the config file take precedence over the built-in
        networks.  Raises :class:`ConfigError` for unknown names.
        """
        from cp_wallet.chain.networks import NETWORKS

        name = name or self.chain.default_rpc
        if name in self.chain.rpcs:
            return self.chain.rpcs[name]
        if name in NETWORKS:
            return NETWORKS[name].rpc_url
        available = sorted(set(self.chain.rpcs) | set(NETWORKS))
        raise ConfigError(f"Unknown chain '{name}'. Available: {available}")

    def expected_chain_id(self, name: str | None = None) -> int | None:
        """Chain id of a built-in network name, or ``None`` for custom RPCs."""
        from cp_wallet.chain.networks import NETWORKS

        network = NETWORKS.get(name or self.chain.default_rpc)
        return network.chain_id if network is not None else None

    @property
    def keystore_path(self) -> Path:
        path = Path(self.wallet.keystore_dir)
        if not path.is_absolute() and self.repo_path is not None:
            path = self.repo_path / path
        return path

    def account_contract(self) -> str:
        """Return the CP account contract address.

        Uses ``contract.account`` if set, otherwise the contents of the
        ``account`` file in the operator repository.
        """
        if self.contract.account.strip():
            return self.contract.account.strip()
        if self.repo_path is None:
            raise ConfigError("CP account contract address is not configured")
        account_file = self.repo_path / ACCOUNT_FILE
        try:
            return account_file.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(
                f"get cp account contract address failed, error: {exc}"
            ) from exc


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def get_repo_path() -> Path:
    """Return the operator repository root from ``$CP_PATH``."""
    cp_path = os.environ.get(CP_PATH_ENV)
    if not cp_path:
        raise ConfigError(
            f"missing {CP_PATH_ENV} env, please set export {CP_PATH_ENV}=<YOUR CP_PATH>"
        )
    return Path(cp_path)


def load_config(path: Path | None = None) -> CpConfig:
    """Load and validate the operator configuration.

    *path* is the repository root; defaults to ``$CP_PATH``.  A missing
    ``config.yaml`` yields the defaults.  Environment variable placeholders
    (``${VAR}``) are expanded before validation.
    """
    repo = Path(path) if path is not None else get_repo_path()
    config_file = repo / CONFIG_FILE
    raw_data: object = {}
    if config_file.exists():
        try:
            raw_data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"load config file failed, error: {exc}") from exc
    expanded = _expand_env_recursive(raw_data)
    try:
        config = CpConfig.model_validate(expanded)
    except ValidationError as exc:
        raise ConfigError(f"invalid config file {config_file}: {exc}") from exc
    config.repo_path = repo
    return config

