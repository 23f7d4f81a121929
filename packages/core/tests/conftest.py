import pytest

from passreview_core.utils import tokens


@pytest.fixture(autouse=True)
def heuristic_tokens(monkeypatch):
    """Count tokens as ceil(chars / 4) so budgets in tests are exact and offline."""
    monkeypatch.setattr(tokens, "_encoding", lambda: None)
