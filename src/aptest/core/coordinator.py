"""Top-level control flow of ``aptest run``: compile, start, deploy, test, tear down."""
from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional

from aptest.core import deploy, e2e, network
from aptest.core.cancellation import CancellationSignal
from aptest.core.supervisor import ProcessSupervisor
from aptest.errors import AptestError, DeploymentError
from aptest.types import NetworkHandle, RunConfig
from aptest.utils.config_loader import Settings, fetch_account

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    INIT = "init"
    COMPILING = "compiling"
    BOOTSTRAPPING = "bootstrapping"
    DEPLOYING = "deploying"
    INTERACTIVE = "interactive"
    TESTING = "testing"
    SHUTTING_DOWN = "shutting_down"
    DONE = "done"
    FAILED = "failed"


class RunCoordinator:
    """
    Drives one run through its phases and owns the local network while it is up.

    ``run`` is the only place that decides the exit code, and the only place
    that tears the network down: exactly once, on every path out of the run
    once the validator has been spawned.
    """

    def __init__(
        self,
        config: RunConfig,
        settings: Optional[Settings] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        cancellation: Optional[CancellationSignal] = None,
    ) -> None:
        self.config = config
        self.settings = settings or Settings()
        self.supervisor = supervisor or ProcessSupervisor(self.settings.shutdown_grace_seconds)
        self.cancellation = cancellation or CancellationSignal()
        self.state = RunState.INIT
        self.history: List[RunState] = [RunState.INIT]
        self.network: Optional[NetworkHandle] = None
        self.shutdown_calls = 0

    def run(self) -> int:
        """Execute the run. Returns 0 on success, 1 on any failure."""
        exit_code = 1
        try:
            exit_code = self._execute()
        except AptestError as e:
            self._fail(e.context, e.detail)
        except KeyboardInterrupt:
            self._fail(
                f"Interrupted while {self.state.value}",
                "Ctrl+C is only supported while waiting in interactive mode (-i)",
            )
        finally:
            if self.network is not None and not self._shutdown() and exit_code == 0:
                exit_code = 1

        if self.state is not RunState.FAILED:
            self._transition(RunState.DONE)
            logger.info("Done")
        return exit_code

    def _execute(self) -> int:
        config = self.config
        settings = self.settings

        account: Optional[str] = None
        if not config.skip_publish:
            account = fetch_account(settings.account_config, settings.profile)

        if not config.skip_compile:
            self._transition(RunState.COMPILING)
            deploy.compile_package(settings)

        self._transition(RunState.BOOTSTRAPPING)
        self.network = network.start_validator(settings, self.supervisor)
        network.bootstrap(self.network, config, settings, self.supervisor)

        if account is not None:
            self._transition(RunState.DEPLOYING)
            outcome = deploy.deploy(account, settings, strict_funding=config.strict_funding)
            if not outcome.success:
                raise DeploymentError("Deployment failed", outcome.message)
            logger.info("Deployment successful.")

        if config.interactive:
            self._transition(RunState.INTERACTIVE)
            logger.info("Local Node is running.")
            logger.info("End to End tests can be run separately now, or Ctrl+C to exit tool and close node...")
            with self.cancellation.listen():
                self.cancellation.wait()
            return 0

        self._transition(RunState.TESTING)
        test_exit_code = e2e.run_e2e_tests(settings.test_command)
        if test_exit_code != 0 and config.fail_on_test_failure:
            return 1
        return 0

    def _shutdown(self) -> bool:
        self.shutdown_calls += 1
        if self.state is not RunState.FAILED:
            self._transition(RunState.SHUTTING_DOWN)
        handle, self.network = self.network, None
        return network.shutdown(handle, self.config, self.settings, self.supervisor)

    def _fail(self, context: str, detail: Optional[str]) -> None:
        logger.error("%s", context)
        if detail:
            logger.error("%s", detail)
        self._transition(RunState.FAILED)

    def _transition(self, state: RunState) -> None:
        logger.debug("Run state: %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)
