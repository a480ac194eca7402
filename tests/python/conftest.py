import os
import sys
from pathlib import Path

import pytest

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")

ROOT = Path(__file__).resolve().parents[2]
src_root = ROOT / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from flocksim.sim.core.config import SimulationConfig  # noqa: E402


@pytest.fixture
def small_config() -> SimulationConfig:
    """A few dozen boids in a small arena, quick enough for multi-tick tests."""

    return SimulationConfig(screen_width=400.0, screen_height=300.0, boid_count=40, margin=40.0)


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-config-tests",
        action="store_true",
        default=False,
        help="also run checks that shipped config files match the built-in defaults",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "config_change: compares files under config/ with code defaults; run after editing either",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-config-tests"):
        return

    skip_marker = pytest.mark.skip(reason="config file check (use --run-config-tests)")
    for item in items:
        if "config_change" in item.keywords:
            item.add_marker(skip_marker)
