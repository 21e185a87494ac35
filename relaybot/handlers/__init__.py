"""
RelayBot - Handlers
===================

Inbound update routing.
"""

from relaybot.handlers.updates import UpdateDispatcher

__all__ = ["UpdateDispatcher"]
