"""
Quicktask — Entry Point.

`python main.py "call mom tomorrow at 5pm" ...` captures each argument as a
task and prints the resulting list.
"""

import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from src.app import main

if __name__ == "__main__":
    main()
