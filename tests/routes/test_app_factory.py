"""Application factory: clean imports and a working app."""
from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

import pytest  # type: ignore[import-not-found]

from cartbridge.startup import create_app

ROOT = Path(__file__).resolve().parents[2]


@pytest.mark.parametrize("statement", [
    "from cartbridge.startup.wiring import create_app",
    "import cartbridge.db; import cartbridge.services",
    "from cartbridge.db.engine import reset_for_tests",
    "from cartbridge.db.link import DatabaseLink",
])
def test_fresh_interpreter_imports(statement):
    env = dict(os.environ, PYTHONPATH=os.pathsep.join(filter(None, [str(ROOT), os.environ.get("PYTHONPATH")])))
    proc = subprocess.run([sys.executable, "-c", statement], cwd=ROOT, env=env, capture_output=True, text=True)
    assert proc.returncode == 0, proc.stderr


def test_create_app_registers_bridge_routes(wp_db, bridge_dirs):
    app = create_app({"TESTING": True})
    rules = {rule.rule for rule in app.url_map.iter_rules()}
    assert "/wp-json/a2c/v1/bridge-action" in rules
    assert "/admin/a2c-connector" in rules
    assert app.test_client().get("/healthz").get_json()["status"] == "ok"
