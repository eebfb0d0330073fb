from __future__ import annotations

import pytest

from fakes import FakeLinkStore


@pytest.fixture
def scenario_store() -> FakeLinkStore:
    return FakeLinkStore(
        rows={
            "row1": {"name": "physical therapy", "link": None},
            "row2": {"name": "Custom Thing", "link": None},
        },
        canonical={"Physical Therapy": "P1", "Other": "P_OTHER"},
    )
