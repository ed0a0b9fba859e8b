"""cp-wallet: wallet and transaction toolkit for compute-provider operators.

Manages local signing keys, builds and submits on-chain transactions on
behalf of the operator, and wraps the account, collateral, and token
contracts of the compute marketplace.
"""

__version__ = "0.1.0"
