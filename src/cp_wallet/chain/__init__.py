"""Chain RPC access."""
