"""Relay-chain primitives, collator and consensus networking state, and Ethereum-address claims."""

__version__ = "0.1.0"