"""Pytest configuration for the QED test suite."""

import sys
from pathlib import Path

# Add the project root to the path so `qed` imports without installing
sys.path.insert(0, str(Path(__file__).parent.parent))
