"""Local key storage and signing for the operator's wallet addresses."""
