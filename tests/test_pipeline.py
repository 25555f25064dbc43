"""Tests for the deployment pipeline."""

from datetime import datetime
from unittest.mock import Mock, patch

import pytest
from conftest import FakeTransport, write_tree

from pyftpdeploy.deploy.pipeline import (
    ConnectionStatus,
    DeployPipeline,
    DeployStage,
    deploy,
)
from pyftpdeploy.deploy.progress import DeployProgressEvent, DeployProgressTracker
from pyftpdeploy.exceptions import (
    DeployConnectError,
    DeployError,
    DeployScanError,
    DeployTransferError,
)

FIXED_TIME = datetime(2024, 5, 1, 9, 30, 0)


class DroppingTransport(FakeTransport):
    """Loses the connection during the first upload."""

    def put(self, data, path):
        self.calls.append(("put", path))
        self._notify_disconnected()
        raise DeployTransferError(f"put {path}: connection lost", code="ECONNRESET")


@pytest.fixture
def site(local_root):
    return write_tree(
        local_root,
        {"index.html": "<h1>home</h1>", "css/app.css": "body{}", "notes.md": "draft"},
    )


def make_pipeline(config, transport=None, events=None):
    transport = transport or FakeTransport(config)
    tracker = DeployProgressTracker(callback=events.append if events is not None else None)
    return DeployPipeline(config, transport=transport, tracker=tracker, clock=lambda: FIXED_TIME)


class TestSuccessfulDeploy:
    """Tests for a deployment where every stage succeeds."""

    def test_uploads_manifest_and_returns_results(self, make_config, site):
        config = make_config(exclude=["*.md"])
        transport = FakeTransport(config)
        pipeline = make_pipeline(config, transport)

        results = pipeline.deploy()

        assert results == [
            f"uploaded {site / 'index.html'}",
            f"uploaded {site / 'css' / 'app.css'}",
        ]
        assert transport.files == {
            "/www/index.html": b"<h1>home</h1>",
            "/www/css/app.css": b"body{}",
        }

    def test_final_state(self, make_config, site):
        config = make_config()
        transport = FakeTransport(config)
        pipeline = make_pipeline(config, transport)

        pipeline.deploy()

        assert pipeline.stage == DeployStage.FINISHED
        assert pipeline.connection_status == ConnectionStatus.DISCONNECTED
        assert transport.close_count == 1
        assert not transport.connected

    def test_no_remote_reads_when_backup_and_delete_disabled(self, make_config, site):
        config = make_config(backup=False, delete_remote=False)
        transport = FakeTransport(config)

        make_pipeline(config, transport).deploy()

        assert transport.actions("list") == []
        assert transport.actions("get") == []
        assert transport.actions("delete") == []
        assert {action for action, _ in transport.calls} == {"connect", "mkdir", "put", "end"}

    def test_stage_order_with_backup_and_delete(self, make_config, site):
        config = make_config(backup=True, delete_remote=True)
        transport = FakeTransport(config, files={"/www/old.html": b"old"})
        events = []

        make_pipeline(config, transport, events).deploy()

        stages = [e.stage for e in events if e.event == DeployProgressEvent.STAGE_START]
        assert stages == ["connecting", "backing_up", "deleting", "scanning", "uploading"]

        # The old file was downloaded before it was deleted
        actions = [(a, p) for a, p in transport.calls if p == "/www/old.html"]
        assert actions == [("get", "/www/old.html"), ("delete", "/www/old.html")]
        assert "/www/old.html" not in transport.files

    def test_backup_written_below_timestamp_folder(self, make_config, site, tmp_path):
        config = make_config(backup=True)
        transport = FakeTransport(
            config, files={"/www/index.html": b"live", "/www/img/logo.png": b"png"}
        )

        make_pipeline(config, transport).deploy()

        backup_dir = tmp_path / "backups" / "2024-05-01_093000"
        assert (backup_dir / "index.html").read_bytes() == b"live"
        assert (backup_dir / "img" / "logo.png").read_bytes() == b"png"

    def test_connected_event_names_host(self, make_config, site):
        events = []

        make_pipeline(make_config(), events=events).deploy()

        connected = [e for e in events if e.event == DeployProgressEvent.CONNECTED]
        assert len(connected) == 1
        assert connected[0].message == "Connected to: ftp.example.com"

    def test_manifest_is_logged(self, make_config, site):
        events = []

        make_pipeline(make_config(exclude=["*.md"]), events=events).deploy()

        logs = [e.message for e in events if e.event == DeployProgressEvent.LOG]
        assert 'Files found to upload: {"/": ["index.html"], "/css": ["app.css"]}' in logs

    def test_empty_manifest_uploads_nothing(self, make_config, local_root):
        config = make_config()
        transport = FakeTransport(config)

        results = make_pipeline(config, transport).deploy()

        assert results == []
        assert transport.actions("put") == []
        assert transport.close_count == 1


class TestBestEffortStages:
    """Backup and delete failures never abort the deployment."""

    def test_backup_of_missing_remote_root_continues(self, make_config, site):
        config = make_config(backup=True)
        transport = FakeTransport(config)
        events = []
        pipeline = make_pipeline(config, transport, events)

        results = pipeline.deploy()

        assert len(results) == 3
        assert pipeline.outcomes[0].stage == "backup"
        assert not pipeline.outcomes[0].ok
        warnings = [
            e.message
            for e in events
            if e.event == DeployProgressEvent.LOG and "trying to continue" in e.message
        ]
        assert len(warnings) == 1
        assert warnings[0].startswith("Backup failed, trying to continue")

    def test_delete_failure_continues(self, make_config, site):
        config = make_config(delete_remote=True)
        transport = FakeTransport(config, files={"/www/locked.txt": b"x"})
        transport.fail_on("delete", "/www/locked.txt")
        pipeline = make_pipeline(config, transport)

        results = pipeline.deploy()

        assert len(results) == 3
        assert not pipeline.outcomes[0].ok
        assert pipeline.outcomes[0].error.code == "550"
        assert pipeline.stage == DeployStage.FINISHED

    def test_delete_keeps_remote_root(self, make_config, site):
        config = make_config(delete_remote=True)
        transport = FakeTransport(config, files={"/www/sub/a.txt": b"a"})

        make_pipeline(config, transport).deploy()

        assert "/www" in transport.dirs
        assert "/www/sub" not in transport.dirs
        assert transport.actions("rmdir") == ["/www/sub"]


class TestConnectFailure:
    """Tests for failures while opening the connection."""

    def test_error_is_prefixed_and_code_kept(self, make_config, site, connect_refused):
        config = make_config()
        transport = FakeTransport(config, connect_error=connect_refused)
        pipeline = make_pipeline(config, transport)

        with pytest.raises(DeployConnectError) as exc_info:
            pipeline.deploy()

        assert exc_info.value.message == "connect: [Errno 111] Connection refused"
        assert exc_info.value.code == "ECONNREFUSED"
        assert exc_info.value.__cause__ is connect_refused

    def test_no_close_and_no_other_stage(self, make_config, site, connect_refused):
        config = make_config(backup=True, delete_remote=True)
        transport = FakeTransport(config, connect_error=connect_refused)
        pipeline = make_pipeline(config, transport)

        with pytest.raises(DeployConnectError):
            pipeline.deploy()

        assert transport.calls == [("connect", "ftp.example.com")]
        assert transport.close_count == 0
        assert pipeline.stage == DeployStage.FAILED
        assert pipeline.connection_status == ConnectionStatus.DISCONNECTED

    def test_error_event_emitted(self, make_config, site, connect_refused):
        config = make_config()
        events = []
        pipeline = make_pipeline(config, FakeTransport(config, connect_error=connect_refused), events)

        with pytest.raises(DeployConnectError):
            pipeline.deploy()

        assert events[-1].event == DeployProgressEvent.ERROR
        assert events[-1].message.startswith("connect: ")


class TestFatalStages:
    """Scan and upload failures close the connection and propagate."""

    def test_scan_failure_closes_connection(self, make_config, tmp_path):
        config = make_config(local_root=tmp_path / "missing")
        transport = FakeTransport(config)
        pipeline = make_pipeline(config, transport)

        with pytest.raises(DeployScanError) as exc_info:
            pipeline.deploy()

        assert exc_info.value.code == "ENOENT"
        assert transport.close_count == 1
        assert transport.actions("put") == []
        assert pipeline.stage == DeployStage.FAILED

    def test_upload_failure_closes_connection(self, make_config, site):
        config = make_config()
        transport = FakeTransport(config)
        transport.fail_on("put", "/www/index.html")
        pipeline = make_pipeline(config, transport)

        with pytest.raises(DeployTransferError) as exc_info:
            pipeline.deploy()

        assert exc_info.value.code == "550"
        assert transport.close_count == 1
        assert pipeline.connection_status == ConnectionStatus.DISCONNECTED

    def test_dropped_connection_is_not_closed_again(self, make_config, site):
        config = make_config()
        transport = DroppingTransport(config)
        pipeline = make_pipeline(config, transport)

        with pytest.raises(DeployTransferError) as exc_info:
            pipeline.deploy()

        assert exc_info.value.code == "ECONNRESET"
        assert transport.close_count == 0
        assert pipeline.connection_status == ConnectionStatus.DISCONNECTED

    def test_error_event_is_last(self, make_config, site):
        config = make_config()
        transport = FakeTransport(config)
        transport.fail_on("put", "/www/index.html")
        events = []

        with pytest.raises(DeployTransferError):
            make_pipeline(config, transport, events).deploy()

        assert [e.event for e in events[-2:]] == [
            DeployProgressEvent.UPLOAD_ERROR,
            DeployProgressEvent.ERROR,
        ]

    def test_close_failure_does_not_mask_error(self, make_config, site):
        config = make_config()
        transport = FakeTransport(config)
        transport.fail_on("put", "/www/index.html")
        pipeline = make_pipeline(config, transport)

        with patch.object(transport, "_do_close", side_effect=OSError("broken pipe")):
            with pytest.raises(DeployTransferError):
                pipeline.deploy()

        assert pipeline.connection_status == ConnectionStatus.DISCONNECTED


class TestReentrancy:
    """A pipeline runs one deployment at a time."""

    def test_concurrent_deploy_is_rejected(self, make_config, site):
        config = make_config()
        transport = FakeTransport(config)
        pipeline = make_pipeline(config, transport)
        seen = []

        def reenter(info):
            if info.event == DeployProgressEvent.CONNECTED:
                with pytest.raises(DeployError) as exc_info:
                    pipeline.deploy()
                seen.append(exc_info.value.code)

        pipeline.tracker.callback = reenter
        pipeline.deploy()

        assert seen == ["EBUSY"]

    def test_sequential_deploys_allowed(self, make_config, site):
        config = make_config()
        transport = FakeTransport(config)
        pipeline = make_pipeline(config, transport)

        first = pipeline.deploy()
        second = pipeline.deploy()

        assert first == second
        assert transport.close_count == 2


class TestDeployFunction:
    """Tests for the module-level deploy() shortcut."""

    def test_creates_transport_from_config(self, make_config, site):
        config = make_config()
        transport = FakeTransport(config)

        with patch(
            "pyftpdeploy.deploy.pipeline.create_transport", return_value=transport
        ) as factory:
            results = deploy(config)

        factory.assert_called_once_with(config)
        assert len(results) == 3

    def test_tracker_is_used(self, make_config, site):
        config = make_config()
        tracker = Mock(spec=DeployProgressTracker)

        with patch(
            "pyftpdeploy.deploy.pipeline.create_transport",
            return_value=FakeTransport(config),
        ):
            deploy(config, tracker=tracker)

        tracker.on_connected.assert_called_once()
        tracker.on_error.assert_not_called()

