"""End-to-end test runner invocation."""
import logging
import subprocess
from typing import Sequence

from aptest.errors import SpawnError, TestRunnerError

logger = logging.getLogger(__name__)

STOP_TIMEOUT_SECONDS = 5.0


def run_e2e_tests(command: Sequence[str]) -> int:
    """
    Run the project's end-to-end tests (``npm run test`` by default) to completion.

    Returns:
        int: The test runner's exit code.

    Raises:
        SpawnError: If the test runner cannot be launched.
        TestRunnerError: If waiting on it fails.
    """
    command = list(command)
    logger.info("Running e2e tests...")
    try:
        child = subprocess.Popen(command)
    except OSError as e:
        raise SpawnError(command, e) from e

    try:
        exit_code = child.wait()
    except OSError as e:
        raise TestRunnerError("Could not wait on e2e test runner", str(e)) from e
    except BaseException:
        logger.warning("Stopping e2e test runner (pid %s)...", child.pid)
        child.terminate()
        try:
            child.wait(timeout=STOP_TIMEOUT_SECONDS)
        except subprocess.TimeoutExpired:
            child.kill()
            child.wait()
        raise

    if exit_code == 0:
        logger.info("e2e tests passed")
    else:
        logger.warning("e2e tests exited with code %s", exit_code)
    return exit_code
