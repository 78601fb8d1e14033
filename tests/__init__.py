"""Tests package"""

# Test modules import helpers as ``tests.conftest``; make the repository root
# importable when a file is run on its own with ``python tests/test_*.py``.
from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
