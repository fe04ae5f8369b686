"""
Pytest configuration for ledgersim.

Puts the project root on the Python path so the 'ledgersim' package and the
shared test contracts under 'tests/fixtures' import when pytest runs from the
project root.
"""

import sys
from pathlib import Path

# Add project root to Python path so 'ledgersim' and 'tests.fixtures' are importable
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))
