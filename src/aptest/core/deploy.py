"""Compile, fund and publish steps, all driven through the Aptos CLI."""
from __future__ import annotations

import logging
import subprocess
from typing import Sequence

from aptest.errors import CompileError, SpawnError
from aptest.types import DeploymentOutcome
from aptest.utils.config_loader import Settings

logger = logging.getLogger(__name__)


def _run(command: Sequence[str]) -> int:
    """Run ``command`` in the foreground with inherited output and return its exit code."""
    command = list(command)
    logger.debug("Running: %s", " ".join(command))
    try:
        result = subprocess.run(command, check=False)
    except OSError as e:
        raise SpawnError(command, e) from e
    return result.returncode


def compile_package(settings: Settings) -> None:
    """
    Run ``aptos move compile`` in the current directory.

    Raises:
        SpawnError: If the aptos CLI is not installed.
        CompileError: If compilation fails.
    """
    logger.info("Compiling Move code...")
    exit_code = _run([settings.aptos_cli, "move", "compile"])
    if exit_code != 0:
        raise CompileError("Compilation failed, exiting early...", f"aptos exited with code {exit_code}")


def fund_account(account_id: str, settings: Settings) -> int:
    """Request faucet funds for ``account_id``; returns the CLI exit code."""
    logger.info("Funding new account on local node...")
    return _run(
        [
            settings.aptos_cli,
            "account",
            "fund",
            "--faucet-url",
            settings.faucet_url,
            "--account",
            account_id,
        ]
    )


def publish_package(settings: Settings) -> int:
    """Publish the package in the current directory; returns the CLI exit code."""
    logger.info("Deploying move code...")
    return _run([settings.aptos_cli, "move", "publish", "--url", settings.validator_url])


def deploy(account_id: str, settings: Settings, strict_funding: bool = False) -> DeploymentOutcome:
    """
    Fund ``account_id`` from the faucet and publish the package to the validator.

    Funding is best effort unless ``strict_funding`` is set; the publish exit
    code always decides the outcome.

    Raises:
        SpawnError: If the aptos CLI is not installed.
    """
    fund_code = fund_account(account_id, settings)
    if fund_code != 0:
        if strict_funding:
            return DeploymentOutcome.failure(f"Aptos reports funding failed (exit code {fund_code})")
        logger.warning("Funding %s exited with code %s, publishing anyway", account_id, fund_code)

    publish_code = publish_package(settings)
    if publish_code != 0:
        return DeploymentOutcome.failure("Aptos reports publish failed")
    return DeploymentOutcome.ok()

