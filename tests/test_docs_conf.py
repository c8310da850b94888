from __future__ import annotations

import runpy
from pathlib import Path

from account_service import __version__

CONF_PATH = Path(__file__).resolve().parents[1] / "docs" / "conf.py"


def test_docs_conf_parses_google_and_numpy_sections():
    conf = runpy.run_path(str(CONF_PATH))

    assert "sphinx.ext.napoleon" in conf["extensions"]
    assert conf["napoleon_google_docstring"] is True
    assert conf["napoleon_numpy_docstring"] is True
    assert conf["release"] == __version__
