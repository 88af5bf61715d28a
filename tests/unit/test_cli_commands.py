"""Unit tests for the CLI: command registration, versions listing and build wiring."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

import pytest
from typer.testing import CliRunner

from mimikry.cli.app import app
from mimikry.cli.commands import build as build_module
from mimikry.core.tag_source import TagCacheStore
from mimikry.errors import DaemonError
from mimikry.models.tags import TagCache

runner = CliRunner()

TAGS = ["latest", "10.1", "12.0", "12.5", "13.0", "alpine"]


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def cli_env(tmp_path: Path, monkeypatch) -> dict[str, str]:
    """Environment with a pre-populated tag cache so no network is needed."""
    monkeypatch.chdir(tmp_path)
    cache_dir = tmp_path / "cache"
    TagCacheStore(cache_dir / "postgres.json").save(
        TagCache(image="postgres", modified=datetime.now(timezone.utc), tags=TAGS)
    )
    return {
        "MIMIKRY_TAG_CACHE_DIR": str(cache_dir),
        "MIMIKRY_BUILD_DIR": str(tmp_path / "build"),
        "DOCKER_USERNAME": "johndoe",
        "DOCKER_PASSWORD": "s3cret",
        "COLUMNS": "200",
    }


class FakeConnection:
    instances: list[FakeConnection] = []
    fail_login = False

    def __init__(self) -> None:
        self.logins: list[tuple] = []
        self.closed = False
        FakeConnection.instances.append(self)

    @classmethod
    def from_env(cls, *, ping: bool = True) -> FakeConnection:
        return cls()

    def login(self, username, password, registry=None) -> None:
        if FakeConnection.fail_login:
            raise DaemonError("login to docker registry: 401 Unauthorized")
        self.logins.append((username, password, registry))

    def __enter__(self) -> FakeConnection:
        return self

    def __exit__(self, *exc_info) -> None:
        self.closed = True


@pytest.fixture
def fake_daemon(monkeypatch, engine):
    FakeConnection.instances = []
    FakeConnection.fail_login = False
    monkeypatch.setattr(build_module, "DaemonConnection", FakeConnection)
    monkeypatch.setattr(
        build_module, "DockerBuildEngine", lambda connection, cancel_event=None: engine
    )
    return engine


class TestCliApp:
    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert result.exit_code in (0, 2)
        assert "Usage" in result.output or "usage" in result.output.lower()

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "build" in result.output
        assert "versions" in result.output

    def test_build_help_lists_flags(self):
        result = runner.invoke(app, ["build", "--help"])
        assert result.exit_code == 0
        for flag in ("--maintainer", "--version", "--latest", "--dry-run", "--keep"):
            assert flag in result.output


class TestVersionsCommand:
    def test_lists_matching_versions_from_cache(self, cli_env):
        result = runner.invoke(app, ["versions", "-v", "~12"], env=cli_env)
        assert result.exit_code == 0, result.output
        assert "12.0" in result.output
        assert "12.5" in result.output
        assert "13.0" not in result.output
        assert "10.1" not in result.output

    def test_source_from_template_dir(self, cli_env, template_dir):
        result = runner.invoke(
            app, ["versions", "--template-dir", str(template_dir), "-v", "~10"], env=cli_env
        )
        assert result.exit_code == 0, result.output
        assert "10.1" in result.output

    def test_bad_constraint_exits_1(self, cli_env):
        result = runner.invoke(app, ["versions", "-v", ">= twelve"], env=cli_env)
        assert result.exit_code == 1
        assert "Error" in result.output


class TestBuildCommand:
    def test_dry_run_builds_without_login_or_push(self, cli_env, template_dir, fake_daemon):
        result = runner.invoke(
            app,
            ["build", str(template_dir), "acme/postgres", "-v", "12", "-l", "--dry-run"],
            env=cli_env,
        )
        assert result.exit_code == 0, result.output
        assert fake_daemon.built == [
            ["acme/postgres:12.0"],
            ["acme/postgres:12.5", "acme/postgres:latest"],
        ]
        assert fake_daemon.pushed == []
        assert FakeConnection.instances[0].logins == []
        assert FakeConnection.instances[0].closed

    def test_push_logs_in_first(self, cli_env, template_dir, fake_daemon):
        result = runner.invoke(
            app, ["build", str(template_dir), "acme/postgres", "-v", "13"], env=cli_env
        )
        assert result.exit_code == 0, result.output
        assert FakeConnection.instances[0].logins == [("johndoe", "s3cret", None)]
        assert fake_daemon.pushed == [["acme/postgres:13.0"]]

    def test_login_failure_exits_1(self, cli_env, template_dir, fake_daemon):
        FakeConnection.fail_login = True
        result = runner.invoke(app, ["build", str(template_dir), "acme/postgres"], env=cli_env)
        assert result.exit_code == 1
        assert "401" in result.output
        assert fake_daemon.calls == []

    def test_build_failure_exits_1(self, cli_env, template_dir, fake_daemon):
        fake_daemon.fail_build_at = 1
        result = runner.invoke(
            app, ["build", str(template_dir), "acme/postgres", "--dry-run"], env=cli_env
        )
        assert result.exit_code == 1
        assert "build version 10.1" in result.output

    def test_template_runtime_error_exits_1(self, cli_env, template_dir, fake_daemon):
        (template_dir / "extra.conf").write_text("port = {{ version + 1 }}\n")
        result = runner.invoke(
            app, ["build", str(template_dir), "acme/postgres", "--dry-run"], env=cli_env
        )
        assert result.exit_code == 1
        assert result.exception is None or isinstance(result.exception, SystemExit)
        assert "Error:" in result.output
        assert "prepare build directory for 10.1" in result.output
        assert fake_daemon.calls == []

    def test_missing_template_dir_exits_1(self, cli_env, tmp_path, fake_daemon):
        result = runner.invoke(
            app, ["build", str(tmp_path / "nope"), "acme/postgres"], env=cli_env
        )
        assert result.exit_code == 1
        assert "does not exist" in result.output
        assert FakeConnection.instances == []

    def test_keep_leaves_build_dirs(self, cli_env, template_dir, fake_daemon, tmp_path):
        result = runner.invoke(
            app,
            ["build", str(template_dir), "acme/postgres", "-v", "13", "--dry-run", "--keep",
             "-m", "Jane Doe"],
            env=cli_env,
        )
        assert result.exit_code == 0, result.output
        dockerfile = (tmp_path / "build" / "13.0" / "Dockerfile").read_text()
        assert 'maintainer="Jane Doe"' in dockerfile
