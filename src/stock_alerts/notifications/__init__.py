"""
Digest e-mail composition and delivery.
"""

from .email_client import DisabledEmailClient, ResendEmailClient, create_email_client
from .templates.digest import DigestEmail, compose_digest_email, render_digest_html

__all__ = [
    "DisabledEmailClient",
    "ResendEmailClient",
    "create_email_client",
    "DigestEmail",
    "compose_digest_email",
    "render_digest_html",
]
