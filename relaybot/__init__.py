"""
RelayBot
========

Telegram bot that verifies users and relays their messages to staff threads.
"""

__version__ = "1.0.0"
