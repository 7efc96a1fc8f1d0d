"""
Entry point for the neurotrack CLI.

Run with:
    python main.py replay events.jsonl --user kid-1 --activity memory-game
    neurotrack --help
"""
import sys
from pathlib import Path

# Make config importable when run from a checkout
sys.path.insert(0, str(Path(__file__).parent))

from neurotrack.cli import run

if __name__ == "__main__":
    run()
