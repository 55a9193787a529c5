"""
Entry point for running learnloop as a module.

Usage:
    python -m learnloop.delivery learn sets/spanish.json
    python -m learnloop.delivery progress sets/spanish.json
    python -m learnloop.delivery --help
"""
from .learn_cli import main

if __name__ == "__main__":
    main()
