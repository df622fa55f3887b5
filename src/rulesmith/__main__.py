"""
Entry point for ``python -m rulesmith``.
"""

from .cli import main

if __name__ == "__main__":
    main()
