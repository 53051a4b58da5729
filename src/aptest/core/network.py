"""Bringing the local validator/faucet network up and tearing it down again."""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

from aptest.core.readiness import ReadinessStatus, extract_credential_path, wait_until_ready
from aptest.core.supervisor import ProcessSupervisor, SupervisedProcess
from aptest.errors import AptestError, ReadinessError
from aptest.types import CaptureStream, NetworkHandle, ProcessKind, RunConfig
from aptest.utils.config_loader import Settings

logger = logging.getLogger(__name__)


def start_validator(settings: Settings, supervisor: ProcessSupervisor) -> NetworkHandle:
    """
    Spawn the validator and wrap it in a handle with no faucet and no snapshot yet.

    The caller owns the returned handle from this point on and must pass it to
    ``shutdown`` whatever happens next.

    Raises:
        SpawnError: If the validator cannot be launched.
    """
    logger.info("Starting local validator node...")
    validator = supervisor.spawn(ProcessKind.VALIDATOR, settings.validator_command, CaptureStream.STDOUT)
    return NetworkHandle(validator=validator, faucet=None, snapshot="")


def bootstrap(
    handle: NetworkHandle,
    config: RunConfig,
    settings: Settings,
    supervisor: ProcessSupervisor,
) -> NetworkHandle:
    """
    Wait for the validator's root key line, then start the faucet.

    Blocks until the network is minimally usable. ``handle`` is filled in as
    each step succeeds (snapshot first, then faucet), so on failure it holds
    exactly what has to be shut down.

    Raises:
        PrematureCloseError: If the validator exits before the snapshot is read.
        NotFoundError: If the snapshot holds no root key path.
        ReadinessError: If the liveness probe times out.
        SpawnError: If the faucet cannot be launched.
    """
    raw = supervisor.read_exact(handle.validator, settings.snapshot_bytes)
    handle.snapshot = raw.decode("utf-8", errors="replace")
    supervisor.follow(handle.validator)
    logger.debug("Validator startup snapshot:\n%s", handle.snapshot)

    mint_key_path = extract_credential_path(handle.snapshot, settings.root_key_marker)
    logger.info("Found root key at %s", mint_key_path)

    if config.no_faucet:
        _wait_for_validator(config, settings, config.start_delay_seconds)
        return handle

    half_delay = config.start_delay_seconds / 2
    _wait_for_validator(config, settings, half_delay)

    logger.info("Starting faucet on %s:%s...", settings.faucet_address, settings.faucet_port)
    handle.faucet = supervisor.spawn(
        ProcessKind.FAUCET,
        [
            *settings.faucet_command,
            "--chain-id",
            settings.chain_id,
            "--mint-key-file-path",
            mint_key_path,
            "--address",
            settings.faucet_address,
            "--port",
            str(settings.faucet_port),
            "--server-url",
            settings.validator_url,
        ],
        CaptureStream.STDERR,
    )
    supervisor.follow(handle.faucet)

    time.sleep(half_delay)
    return handle


def shutdown(
    handle: NetworkHandle,
    config: RunConfig,
    settings: Settings,
    supervisor: ProcessSupervisor,
) -> bool:
    """
    Stop every process in ``handle`` and optionally write their combined output.

    Every step is attempted even if an earlier one fails.

    Returns:
        bool: True if every process was stopped and the log (if requested) written.
    """
    logger.info("Closing local node...")
    ok = True

    node_output = _stop(supervisor, handle.validator)
    ok = ok and node_output is not None

    faucet_output: Optional[str] = ""
    if handle.faucet is not None:
        faucet_output = _stop(supervisor, handle.faucet)
        ok = ok and faucet_output is not None

    if config.log_node:
        log_path = Path(settings.log_file)
        try:
            with open(log_path, "w", encoding="utf-8") as f:
                f.write(handle.snapshot)
                f.write(node_output or "")
                f.write(faucet_output or "")
            logger.info("Validator log written to %s", log_path)
        except OSError as e:
            logger.error("Could not write log file %s: %s", log_path, e)
            ok = False

    return ok


def _wait_for_validator(config: RunConfig, settings: Settings, delay: float) -> None:
    """Use the liveness probe when configured, otherwise the fixed start delay."""
    if config.ready_timeout is None:
        time.sleep(delay)
        return

    status = wait_until_ready(settings.health_url, config.ready_timeout, settings.probe_interval)
    if status is not ReadinessStatus.READY:
        raise ReadinessError(
            "Validator did not become ready",
            f"no answer from {settings.health_url} within {config.ready_timeout}s",
        )


def _stop(supervisor: ProcessSupervisor, proc: SupervisedProcess) -> Optional[str]:
    """Terminate and drain one process; returns its output, or None on failure."""
    try:
        supervisor.terminate(proc)
        return supervisor.drain(proc)
    except (AptestError, OSError) as e:
        logger.error("Could not stop %s process (pid %s): %s", proc.kind.value, proc.pid, e)
        return None
