"""
Entry point for the Rulesmith LSP server.

Usage:
    python -m rulesmith.lsp
"""

from .server import start_server

if __name__ == "__main__":
    start_server()
