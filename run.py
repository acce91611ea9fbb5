"""Run the headless simulator from a source checkout without installing it."""
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parent))

from circsim.cli import main

if __name__ == "__main__":
    main()
