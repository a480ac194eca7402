import json
import os
import subprocess
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]


def _checkout_env() -> dict:
    env = {key: value for key, value in os.environ.items() if key != "PYTHONPATH"}
    env["PYGAME_HIDE_SUPPORT_PROMPT"] = "1"
    return env


def test_headless_cli_runs_from_a_source_checkout(tmp_path):
    summary_path = tmp_path / "summary.json"

    result = subprocess.run(
        [
            sys.executable,
            "-m",
            "flocksim.app.headless",
            "--steps",
            "3",
            "--boids",
            "8",
            "--seed",
            "4",
            "--summary",
            str(summary_path),
            "--log-level",
            "WARNING",
        ],
        cwd=REPO_ROOT,
        env=_checkout_env(),
        capture_output=True,
        text=True,
        timeout=120,
    )

    assert result.returncode == 0, result.stderr
    summary = json.loads(summary_path.read_text())
    assert (summary["steps"], summary["boid_count"], summary["seed"]) == (3, 8, 4)


def test_checkout_import_loads_engine_from_src():
    result = subprocess.run(
        [sys.executable, "-c", "import flocksim.sim.engine as engine; print(engine.__file__)"],
        cwd=REPO_ROOT,
        env=_checkout_env(),
        capture_output=True,
        text=True,
        timeout=60,
    )

    assert result.returncode == 0, result.stderr
    loaded = Path(result.stdout.strip().splitlines()[-1])
    assert loaded.samefile(REPO_ROOT / "src" / "flocksim" / "sim" / "engine.py")
