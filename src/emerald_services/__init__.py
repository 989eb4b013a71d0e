"""Supervisor for the geth RPC backend and the emerald connector."""
