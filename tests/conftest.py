import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)


@pytest.fixture(autouse=True)
def _reset_singletons(monkeypatch):
    """Every test starts from default settings and empty in-memory stores."""
    from src.askcode import config
    from src.askcode.infrastructure import conversation_store, credential_store, knowledge_store
    from src.askcode.services import ask_pipeline

    for name in list(os.environ):
        if name.startswith("ASKCODE_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, "_settings", None, raising=False)
    monkeypatch.setattr(conversation_store, "_store", None, raising=False)
    monkeypatch.setattr(credential_store, "_store", None, raising=False)
    monkeypatch.setattr(knowledge_store, "_store", None, raising=False)
    monkeypatch.setattr(ask_pipeline, "_pipeline", None, raising=False)
