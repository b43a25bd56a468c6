# === NAVMAP v1 ===
# {
#   "module": "tests.conftest",
#   "purpose": "Shared pytest fixtures for suite",
#   "sections": [
#     {
#       "id": "reset-default-loader",
#       "name": "reset_default_loader",
#       "anchor": "function-reset-default-loader",
#       "kind": "function"
#     },
#     {
#       "id": "reset-package-logging",
#       "name": "reset_package_logging",
#       "anchor": "function-reset-package-logging",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Pytest Configuration

Puts `src` on sys.path so the suite runs from a plain checkout, and resets
process-wide state (the default capability loader and the handlers installed
by ``setup_logging``) between tests.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture(autouse=True)
def reset_default_loader():
    from TierFetch.fallback.acquisition import reset_default_loader_for_tests

    reset_default_loader_for_tests()
    yield
    reset_default_loader_for_tests()


@pytest.fixture(autouse=True)
def reset_package_logging():
    """Drop handlers added by ``setup_logging`` so streams never outlive a test."""
    yield
    logger = logging.getLogger("TierFetch")
    for handler in list(logger.handlers):
        if getattr(handler, "_tierfetch_managed", False):
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(logging.NOTSET)
