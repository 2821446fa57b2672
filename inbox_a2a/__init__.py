"""inbox_a2a - approval-gated mailbox tools over A2A JSON-RPC."""

__version__ = "2.0.0"
