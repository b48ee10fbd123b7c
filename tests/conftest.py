import sys
from pathlib import Path

import pytest

# Ensure the `onboarding` package is importable when running pytest from the repository root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from onboarding.core.config import Settings  # noqa: E402


@pytest.fixture
def settings():
    return Settings(
        registry_database_url="postgres://registry",
        supplier_database_url="postgres://supplier",
        fallback_town="LAGOS",
        export_default_town="LAGOS",
        geocoder_min_interval=0.0,
        auth_tokens=frozenset({"secret"}),
    )
