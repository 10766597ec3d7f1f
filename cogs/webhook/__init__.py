"""
Webhook Package

Create incoming webhooks and relay messages through them.
"""

from .commands import WebhookCog

__all__ = ["WebhookCog"]
