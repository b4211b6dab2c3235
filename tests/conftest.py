"""
Shared fixtures for the typefinder test suite.
"""

import sys
from pathlib import Path

import pytest

# Ensure the src/ directory is on the import path so that
# typefinder.core.engine / typefinder.core.search / etc. can be imported.
SRC_ROOT = Path(__file__).resolve().parent.parent / "src"
sys.path.insert(0, str(SRC_ROOT))

from typefinder.core.config import TypeFinderConfig  # noqa: E402


@pytest.fixture
def config() -> TypeFinderConfig:
    """Deterministic config: text search only, one worker, no env overrides."""
    return TypeFinderConfig(structured_backend="none", max_workers=1)


# =============================================================================
# Fixtures: workspaces on disk
# =============================================================================

@pytest.fixture
def polyglot_workspace(tmp_path: Path) -> Path:
    """
    A workspace with no project descriptor, mixing several languages.
    """
    (tmp_path / "api").mkdir()
    (tmp_path / "api" / "UserService.cs").write_text(
        "using System;\n"
        "\n"
        "namespace App.Api\n"
        "{\n"
        "    public class UserService : ServiceBase\n"
        "    {\n"
        "    }\n"
        "}\n",
        encoding="utf-8",
    )
    (tmp_path / "web").mkdir()
    (tmp_path / "web" / "service.ts").write_text(
        "export interface ServiceOptions {\n"
        "  retries: number;\n"
        "}\n"
        "\n"
        "export function createService(opts: ServiceOptions) {\n"
        "  return new UserService(opts);\n"
        "}\n",
        encoding="utf-8",
    )
    (tmp_path / "tools").mkdir()
    (tmp_path / "tools" / "worker.go").write_text(
        "package tools\n"
        "\n"
        "type Worker struct {\n"
        "    id int\n"
        "}\n",
        encoding="utf-8",
    )
    (tmp_path / "README.md").write_text("UserService docs\n", encoding="utf-8")
    return tmp_path


@pytest.fixture
def python_project(tmp_path: Path) -> Path:
    """
    A Python project with a pyproject.toml descriptor and a src/ layout.
    """
    (tmp_path / "pyproject.toml").write_text(
        "[project]\n"
        "name = \"shop\"\n"
        "version = \"0.1.0\"\n",
        encoding="utf-8",
    )
    pkg = tmp_path / "src" / "shop"
    pkg.mkdir(parents=True)
    (pkg / "__init__.py").write_text("", encoding="utf-8")
    (pkg / "models.py").write_text(
        "from dataclasses import dataclass\n"
        "from enum import Enum\n"
        "\n"
        "\n"
        "class Color(Enum):\n"
        "    RED = 1\n"
        "\n"
        "\n"
        "@dataclass\n"
        "class Order:\n"
        "    order_id: int\n"
        "\n"
        "    @property\n"
        "    def label(self):\n"
        "        return f\"order-{self.order_id}\"\n"
        "\n"
        "    class Line:\n"
        "        def total(self):\n"
        "            return 0\n",
        encoding="utf-8",
    )
    (pkg / "service.py").write_text(
        "from shop.models import Order\n"
        "\n"
        "\n"
        "def make_order(order_id):\n"
        "    return Order(order_id)\n",
        encoding="utf-8",
    )
    return tmp_path
