import pytest
from unittest.mock import patch, call

from conftest import FakeSupervisor, SNAPSHOT
from aptest.core import network
from aptest.core.readiness import ReadinessStatus
from aptest.errors import NotFoundError, PrematureCloseError, ReadinessError, SpawnError
from aptest.types import CaptureStream, ProcessKind, RunConfig
from aptest.utils.config_loader import Settings


@pytest.fixture
def settings():
    return Settings()


def bring_up(config, settings, supervisor):
    handle = network.start_validator(settings, supervisor)
    return network.bootstrap(handle, config, settings, supervisor)


class TestStartValidator:

    def test_validator_spawned_with_test_flag_capturing_stdout(self, fake_supervisor, settings):
        handle = network.start_validator(settings, fake_supervisor)

        assert handle.validator.command == ["aptos-node", "--test"]
        assert handle.validator.capture is CaptureStream.STDOUT
        assert handle.faucet is None
        assert handle.snapshot == ""
        assert fake_supervisor.calls == [("spawn", ProcessKind.VALIDATOR)]

    def test_validator_spawn_failure_propagates(self, settings):
        supervisor = FakeSupervisor(spawn_errors={ProcessKind.VALIDATOR: SpawnError(["aptos-node"], FileNotFoundError("nope"))})

        with pytest.raises(SpawnError):
            network.start_validator(settings, supervisor)
        assert supervisor.count("terminate") == 0


class TestBootstrap:

    @patch("aptest.core.network.time.sleep")
    def test_without_faucet_starts_only_validator_and_sleeps_full_delay(self, mock_sleep, fake_supervisor, settings):
        config = RunConfig(no_faucet=True, start_delay_seconds=14)

        handle = bring_up(config, settings, fake_supervisor)

        assert handle.faucet is None
        assert handle.validator.kind is ProcessKind.VALIDATOR
        assert handle.snapshot == SNAPSHOT
        assert fake_supervisor.count("spawn") == 1
        assert ("read_exact", ProcessKind.VALIDATOR, 450) in fake_supervisor.calls
        mock_sleep.assert_called_once_with(14)

    @patch("aptest.core.network.time.sleep")
    def test_with_faucet_splits_delay_around_faucet_spawn(self, mock_sleep, fake_supervisor, settings):
        config = RunConfig(start_delay_seconds=14)

        handle = bring_up(config, settings, fake_supervisor)

        assert handle.faucet is not None
        assert handle.faucet.kind is ProcessKind.FAUCET
        assert mock_sleep.call_args_list == [call(7.0), call(7.0)]

    @patch("aptest.core.network.time.sleep")
    def test_faucet_spawned_after_snapshot_with_mint_key_path(self, mock_sleep, fake_supervisor, settings):
        handle = bring_up(RunConfig(), settings, fake_supervisor)

        kinds = [c[:2] for c in fake_supervisor.calls]
        assert kinds.index(("read_exact", ProcessKind.VALIDATOR)) < kinds.index(("spawn", ProcessKind.FAUCET))
        assert handle.faucet.command == [
            "aptos-faucet",
            "--chain-id", "TESTING",
            "--mint-key-file-path", "/tmp/node/mint.key",
            "--address", "0.0.0.0",
            "--port", "8000",
            "--server-url", "http://localhost:8080",
        ]
        assert handle.faucet.capture is CaptureStream.STDERR

    @patch("aptest.core.network.time.sleep")
    def test_faucet_spawn_failure_leaves_validator_in_handle(self, mock_sleep, settings):
        supervisor = FakeSupervisor(spawn_errors={ProcessKind.FAUCET: SpawnError(["aptos-faucet"], FileNotFoundError("nope"))})
        handle = network.start_validator(settings, supervisor)

        with pytest.raises(SpawnError, match="aptos-faucet"):
            network.bootstrap(handle, RunConfig(), settings, supervisor)

        assert handle.faucet is None
        assert handle.snapshot == SNAPSHOT
        assert supervisor.count("terminate") == 0

    @patch("aptest.core.network.time.sleep")
    def test_premature_close_never_spawns_faucet(self, mock_sleep, settings):
        supervisor = FakeSupervisor(read_error=PrematureCloseError(expected=450, received=200))
        handle = network.start_validator(settings, supervisor)

        with pytest.raises(PrematureCloseError):
            network.bootstrap(handle, RunConfig(), settings, supervisor)

        assert ("spawn", ProcessKind.FAUCET) not in supervisor.calls
        assert handle.snapshot == ""
        mock_sleep.assert_not_called()

    @patch("aptest.core.network.time.sleep")
    def test_missing_marker_never_spawns_faucet(self, mock_sleep, settings):
        supervisor = FakeSupervisor(snapshot="Log file: \"/tmp/node/validator.log\"\n" + "." * 400)
        handle = network.start_validator(settings, supervisor)

        with pytest.raises(NotFoundError):
            network.bootstrap(handle, RunConfig(), settings, supervisor)

        assert ("spawn", ProcessKind.FAUCET) not in supervisor.calls
        assert handle.snapshot.startswith("Log file:")

    @patch("aptest.core.network.time.sleep")
    @patch("aptest.core.network.wait_until_ready", return_value=ReadinessStatus.READY)
    def test_probe_replaces_validator_delay(self, mock_wait, mock_sleep, fake_supervisor, settings):
        config = RunConfig(start_delay_seconds=10, ready_timeout=30)

        bring_up(config, settings, fake_supervisor)

        mock_wait.assert_called_once_with("http://localhost:8080/v1", 30, settings.probe_interval)
        mock_sleep.assert_called_once_with(5.0)

    @patch("aptest.core.network.time.sleep")
    @patch("aptest.core.network.wait_until_ready", return_value=ReadinessStatus.TIMED_OUT)
    def test_probe_timeout_raises_before_faucet(self, mock_wait, mock_sleep, fake_supervisor, settings):
        with pytest.raises(ReadinessError):
            bring_up(RunConfig(ready_timeout=5), settings, fake_supervisor)

        assert ("spawn", ProcessKind.FAUCET) not in fake_supervisor.calls


class TestShutdown:

    @patch("aptest.core.network.time.sleep")
    def test_stops_validator_and_faucet(self, mock_sleep, fake_supervisor, settings):
        handle = bring_up(RunConfig(), settings, fake_supervisor)

        assert network.shutdown(handle, RunConfig(), settings, fake_supervisor) is True

        tail = fake_supervisor.calls[-4:]
        assert tail == [
            ("terminate", ProcessKind.VALIDATOR),
            ("drain", ProcessKind.VALIDATOR),
            ("terminate", ProcessKind.FAUCET),
            ("drain", ProcessKind.FAUCET),
        ]

    @patch("aptest.core.network.time.sleep")
    def test_writes_combined_log_when_requested(self, mock_sleep, fake_supervisor, tmp_path):
        settings = Settings(log_file=str(tmp_path / "validator.log"))
        config = RunConfig(log_node=True)
        handle = bring_up(config, settings, fake_supervisor)

        network.shutdown(handle, config, settings, fake_supervisor)

        content = (tmp_path / "validator.log").read_text(encoding="utf-8")
        assert content == SNAPSHOT + "validator output\n" + "faucet output\n"

    @patch("aptest.core.network.time.sleep")
    def test_no_log_file_by_default(self, mock_sleep, fake_supervisor, tmp_path):
        settings = Settings(log_file=str(tmp_path / "validator.log"))
        handle = bring_up(RunConfig(no_faucet=True), settings, fake_supervisor)

        network.shutdown(handle, RunConfig(no_faucet=True), settings, fake_supervisor)

        assert not (tmp_path / "validator.log").exists()

    @patch("aptest.core.network.time.sleep")
    def test_validator_termination_failure_still_stops_faucet(self, mock_sleep, settings):
        supervisor = FakeSupervisor(terminate_errors={ProcessKind.VALIDATOR: "permission denied"})
        handle = bring_up(RunConfig(), settings, supervisor)

        assert network.shutdown(handle, RunConfig(), settings, supervisor) is False
        assert ("terminate", ProcessKind.FAUCET) in supervisor.calls
        assert ("drain", ProcessKind.FAUCET) in supervisor.calls
