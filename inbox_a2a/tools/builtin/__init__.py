"""Built-in mailbox tools."""
