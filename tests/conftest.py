"""Shared test configuration for doc-mirror tests.

Clears any mirror or GitHub runner variables inherited from the host so
Settings only sees what a test sets explicitly.
"""

import os

import pytest

_INHERITED_PREFIXES = ("DOC_MIRROR_", "GITHUB_", "ACTIONS_")


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch, tmp_path):
    for name in list(os.environ):
        if name.startswith(_INHERITED_PREFIXES):
            monkeypatch.delenv(name, raising=False)
    # Keep a stray .env in the repo root from leaking into Settings.
    monkeypatch.chdir(tmp_path)
