"""Scaffolding for a new Move package with an npm end-to-end test harness."""
import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from aptest.errors import AptestError, SpawnError
from aptest.utils.config_loader import Settings

logger = logging.getLogger(__name__)

TEST_SCRIPT = (
    "env TS_NODE_COMPILER_OPTIONS='{\"module\": \"commonjs\" }' "
    "mocha -r ts-node/register 'tests/**/*.ts'"
)

TEST_DEPENDENCIES = {
    "@types/chai": "^4.3.1",
    "@types/mocha": "^9.1.1",
    "aptos": "^1.2.0",
    "chai": "^4.3.6",
    "mocha": "^10.0.0",
    "ts-mocha": "^10.0.0",
    "typescript": "^4.7.4",
}


def build_package_json(name: str) -> Dict[str, Any]:
    """package.json for the e2e test harness of package ``name``."""
    return {
        "name": f"test_{name}",
        "version": "1.0.0",
        "scripts": {"test": TEST_SCRIPT},
        "dependencies": dict(TEST_DEPENDENCIES),
    }


def init_project(name: str, settings: Settings, project_dir: Optional[Path] = None) -> None:
    """
    Create a Move package plus ``package.json`` and ``tests/`` in ``project_dir``.

    Raises:
        AptestError: If a Move.toml already exists or a step fails.
        SpawnError: If the aptos or npm CLI is not installed.
    """
    if not name or not name.strip():
        raise ValueError("name must be a non-empty string")

    project_dir = Path(project_dir or Path.cwd())
    if (project_dir / "Move.toml").exists():
        raise AptestError(f"Move.toml file already exists in {project_dir}!")

    logger.info("Initializing Move package %s...", name)
    _run_in([settings.aptos_cli, "move", "init", "--name", name], project_dir)

    package_json = project_dir / "package.json"
    with open(package_json, "w", encoding="utf-8") as f:
        json.dump(build_package_json(name), f, indent=2)
        f.write("\n")
    logger.info("Wrote %s", package_json)

    (project_dir / "tests").mkdir(parents=True, exist_ok=True)

    logger.info("Installing dependencies...")
    _run_in([settings.npm_cli, "install"], project_dir)
    logger.info("Project %s is ready. Add e2e tests under tests/ and run `aptest run`.", name)


def _run_in(command: Sequence[str], cwd: Path) -> None:
    command = list(command)
    try:
        result = subprocess.run(command, cwd=str(cwd), check=False)
    except OSError as e:
        raise SpawnError(command, e) from e
    if result.returncode != 0:
        raise AptestError(f"{' '.join(command)} failed", f"exit code {result.returncode}")
