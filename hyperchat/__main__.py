"""
Entry point for running Hyperchat as a module.

Enables execution via:
    python -m hyperchat [command] [options]

This is equivalent to running the installed CLI:
    hyperchat [command] [options]

Examples:
    python -m hyperchat --help
    python -m hyperchat run "Compare Rust and Go" --no-wait
    python -m hyperchat validate --config hyperchat.yaml
"""

from hyperchat.cli import app

if __name__ == "__main__":
    app()
