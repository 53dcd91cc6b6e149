"""Buyer closing tracker: stage catalog, task-driven auto-advance, API and CLI.

Usage:
    closing --help          # CLI
    closing serve           # JSON API on CLOSING_WEB_HOST:CLOSING_WEB_PORT
"""
