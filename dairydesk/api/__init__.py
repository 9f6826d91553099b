"""Remote auth RPC boundary."""
