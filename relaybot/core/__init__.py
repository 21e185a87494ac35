"""
RelayBot - Core
===============

Configuration, constants, errors, logging and the SQLite store.
"""
