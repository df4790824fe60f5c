import os
import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]

# Prepend the workspace root so ``backend`` resolves to this checkout
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

# Keep tests independent of a developer's .env and real credentials
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LLM_PROVIDER", "openai")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")


@pytest.fixture
def jan_feb_rows():
    return [
        {"Month": "Jan", "Sales": 1000},
        {"Month": "Feb", "Sales": 2000},
    ]


@pytest.fixture
def revenue_rows():
    return [
        {"state": "CA", "customerInvoiceSubtotal": "$1,234.56"},
        {"state": "NY", "customerInvoiceSubtotal": "$617.28"},
        {"state": "TX", "customerInvoiceSubtotal": None},
    ]
