import sys
from pathlib import Path

# Agregar directorio raíz y tests/ al PYTHONPATH para imports
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

import pytest

from ledger_builders import build_invoice_service


@pytest.fixture
def invoice_service():
    return build_invoice_service()
