import importlib.util
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture
def load_service(monkeypatch):
    """Import a service entrypoint fresh, configured for local development."""
    monkeypatch.setenv("ENVIRONMENT", "dev")
    monkeypatch.delenv("PROJECT_ID", raising=False)
    monkeypatch.setenv("TEMPLATES_DIR", str(ROOT / "data" / "templates"))

    def load(name: str):
        module_name = f"site_wizard_{name}_service"
        spec = importlib.util.spec_from_file_location(module_name, ROOT / "services" / name / "main.py")
        module = importlib.util.module_from_spec(spec)
        monkeypatch.setitem(sys.modules, module_name, module)
        spec.loader.exec_module(module)
        return module

    return load
