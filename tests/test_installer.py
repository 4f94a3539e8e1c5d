"""Tests for install/uninstall and plugin directory management."""

import os

import pytest

from bunload_py.config import Config
from bunload_py.errors import (
    BackupWriteError, ContainerIOError, MarkerNotFound, OverwriteError, SigningError
)
from bunload_py.formats.container import Container
from bunload_py.patch import installer as installer_module
from bunload_py.patch import signing
from bunload_py.patch.installer import Installer, payload_source
from bunload_py.plugins import PluginDirectory

MARKER = "MARKER-LICENSE-TEXT"
REPLACEMENT = "PATCHED"


@pytest.fixture
def config() -> Config:
    return Config(sign_after_patch=False, marker_text=MARKER, replacement_text=REPLACEMENT)


def module_zero(path) -> bytes:
    container = Container.open(path)
    return container.module_content(container.get_module(0))


def test_install_patches_and_backs_up(sample_exe, config) -> None:
    original = sample_exe.read_bytes()
    result = Installer(sample_exe, config).install()

    backup = sample_exe.parent / "app.original"
    assert result.backup_path == os.path.realpath(str(backup))
    assert backup.read_bytes() == original

    patched = sample_exe.read_bytes()
    assert len(patched) == len(original)
    assert patched != original
    content = module_zero(sample_exe)
    assert b"PATCHED" in content
    assert MARKER.encode() not in content

    assert os.stat(sample_exe).st_mode & 0o777 == 0o755
    assert (sample_exe.parent / "payload.js").is_file()
    assert (sample_exe.parent / "bunload-plugins").is_dir()
    assert not result.restored_from_backup
    assert not result.signed


def test_payload_points_at_plugin_directory(config) -> None:
    source = payload_source(config).decode("utf-8")
    assert "bunload-plugins" in source
    assert "__PLUGIN_DIR__" not in source


def test_reinstall_starts_from_pristine_file(sample_exe, config) -> None:
    original = sample_exe.read_bytes()
    installer = Installer(sample_exe, config)

    first = installer.install()
    patched_once = sample_exe.read_bytes()
    second = installer.install()

    assert second.restored_from_backup
    assert sample_exe.read_bytes() == patched_once
    assert (sample_exe.parent / "app.original").read_bytes() == original
    assert first.patched.data == second.patched.data


def test_uninstall_restores_original(sample_exe, config) -> None:
    original = sample_exe.read_bytes()
    installer = Installer(sample_exe, config)
    installer.install()

    result = installer.uninstall()

    assert sample_exe.read_bytes() == original
    assert not (sample_exe.parent / "app.original").exists()
    assert not (sample_exe.parent / "payload.js").exists()
    assert not (sample_exe.parent / "bunload-plugins").exists()
    assert not result.plugin_dir_kept


def test_uninstall_keeps_user_plugins(sample_exe, config) -> None:
    installer = Installer(sample_exe, config)
    installer.install()
    plugin = sample_exe.parent / "bunload-plugins" / "mine.js"
    plugin.write_text("console.log('mine')")

    result = installer.uninstall()

    assert result.plugin_dir_kept
    assert plugin.exists()


def test_uninstall_without_backup(sample_exe, config) -> None:
    with pytest.raises(ContainerIOError, match="No backup file found"):
        Installer(sample_exe, config).uninstall()


def test_marker_missing_leaves_files_untouched(sample_exe) -> None:
    original = sample_exe.read_bytes()
    config = Config(sign_after_patch=False, marker_text="NOT-IN-THERE", replacement_text="X")

    with pytest.raises(MarkerNotFound):
        Installer(sample_exe, config).install()

    assert sample_exe.read_bytes() == original
    assert not (sample_exe.parent / "app.original").exists()
    assert not (sample_exe.parent / "payload.js").exists()


def test_backup_failure_leaves_executable_untouched(sample_exe, config, monkeypatch) -> None:
    original = sample_exe.read_bytes()
    real_write = installer_module.durable_write
    backup_path = os.path.realpath(str(sample_exe)) + ".original"

    def failing_write(path, data, mode=None):
        if path == backup_path:
            raise OSError(28, "No space left on device")
        real_write(path, data, mode)

    monkeypatch.setattr(installer_module, "durable_write", failing_write)

    with pytest.raises(BackupWriteError):
        Installer(sample_exe, config).install()

    assert sample_exe.read_bytes() == original


def test_overwrite_failure_reports_backup(sample_exe, config, monkeypatch) -> None:
    original = sample_exe.read_bytes()
    real_write = installer_module.durable_write
    exe_path = os.path.realpath(str(sample_exe))

    def failing_write(path, data, mode=None):
        if path == exe_path:
            raise OSError(5, "Input/output error")
        real_write(path, data, mode)

    monkeypatch.setattr(installer_module, "durable_write", failing_write)

    with pytest.raises(OverwriteError) as excinfo:
        Installer(sample_exe, config).install()

    assert excinfo.value.backup_path == exe_path + ".original"
    assert "preserved" in str(excinfo.value)
    assert (sample_exe.parent / "app.original").read_bytes() == original


def test_signing_runs_when_enabled(sample_exe, monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(installer_module, "resign_binary",
                        lambda path, attempts, log: calls.append((path, attempts)))
    config = Config(sign_after_patch=True, codesign_attempts=2,
                    marker_text=MARKER, replacement_text=REPLACEMENT)

    result = Installer(sample_exe, config).install()

    assert result.signed
    assert calls == [(os.path.realpath(str(sample_exe)), 2)]


class FailedRun:
    returncode = 1
    stdout = b"resource busy"


def test_resign_retries_then_fails(monkeypatch) -> None:
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        return FailedRun()

    monkeypatch.setattr(signing.subprocess, "run", fake_run)

    with pytest.raises(SigningError, match="resource busy"):
        signing.resign_binary("/tmp/app", attempts=3)

    assert len(calls) == 3
    assert calls[0] == ["codesign", "--sign", "-", "--force", "/tmp/app"]


def test_signing_required_setting() -> None:
    assert signing.signing_required(True)
    assert not signing.signing_required(False)


def test_plugin_directory(tmp_path) -> None:
    plugins = PluginDirectory(str(tmp_path / "plugins"))
    assert not plugins.exists()
    assert plugins.list() == []

    source = tmp_path / "hello.js"
    source.write_text("console.log('hello')")
    (tmp_path / "notes.txt").write_text("not a plugin")

    installed = plugins.add(str(source))
    assert os.path.basename(installed) == "hello.js"
    assert plugins.list() == ["hello.js"]

    with pytest.raises(ValueError):
        plugins.add(str(tmp_path / "notes.txt"))

    assert plugins.remove("hello") == "hello.js"
    assert plugins.list() == []

    with pytest.raises(ContainerIOError, match="Plugin not found"):
        plugins.remove("hello.js")
