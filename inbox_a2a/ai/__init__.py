"""LLM collaborator used for intent extraction and drafting."""

from inbox_a2a.ai.client import LLMClient
from inbox_a2a.ai.email_ai import (
    EmailAI,
    EmailIntent,
    GeneratedEmail,
    OrganizationRule,
    extract_addresses,
)

__all__ = [
    "EmailAI",
    "EmailIntent",
    "GeneratedEmail",
    "LLMClient",
    "OrganizationRule",
    "extract_addresses",
]
