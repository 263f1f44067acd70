"""Tests for command execution, masking, expansion and filesystem helpers."""

import logging
import sys

import pytest

from keychain_provisioner.errors import ProvisioningCancelled
from keychain_provisioner.execution import (
    MASK,
    ArgumentList,
    CommandRunner,
    LocalFilesystem,
    SecretMasker,
    SubprocessExecutor,
    VariableExpander,
)
from tests.mocks import FakeExecutor, make_archive


@pytest.mark.unit
class TestArgumentList:
    """Tests for ArgumentList."""

    def test_masked_positions(self):
        args = ArgumentList("security", "unlock-keychain", "-p").add_masked("s3cret").add("kc")

        assert args.argv == ["security", "unlock-keychain", "-p", "s3cret", "kc"]
        assert args.masked_indices == frozenset({3})
        assert args.masked_values == ["s3cret"]

    def test_log_string_hides_secret(self):
        args = ArgumentList("security", "create-keychain", "-p").add_masked("s3cret").add("my kc")

        rendered = args.to_log_string()

        assert "s3cret" not in rendered
        assert MASK in rendered
        assert "'my kc'" in rendered

    def test_paths_are_stringified(self, tmp_path):
        args = ArgumentList("security", "import", tmp_path / "a.p12")
        assert args.argv[2] == str(tmp_path / "a.p12")


@pytest.mark.unit
class TestSecretMasker:
    """Tests for SecretMasker."""

    def test_masks_embedded_secret(self):
        masker = SecretMasker(["abc123"])
        text = "/ws/jenkins/developer-profiles/abc123/a.p12"

        assert masker.mask(text) == f"/ws/jenkins/developer-profiles/{MASK}/a.p12"

    def test_longest_secret_wins(self):
        masker = SecretMasker(["pass", "password1"])
        assert masker.mask("password1") == MASK

    def test_empty_secret_ignored(self):
        masker = SecretMasker([""])
        assert masker.mask("unchanged") == "unchanged"
        assert "" not in masker


@pytest.mark.unit
class TestCommandRunner:
    """Tests for CommandRunner."""

    def test_success_outcome(self):
        executor = FakeExecutor().on("security", "show-keychain-info", output="info\n")
        runner = CommandRunner(executor)

        outcome = runner.run(ArgumentList("security", "show-keychain-info", "kc"), "failed")

        assert outcome.ok
        assert outcome.output == "info\n"
        assert outcome.error is None

    def test_failure_with_message_builds_error(self):
        executor = FakeExecutor().on("security", "unlock-keychain", exit_code=51, output="bad password s3cret\n")
        runner = CommandRunner(executor)

        args = ArgumentList("security", "unlock-keychain", "-p").add_masked("s3cret").add("kc")
        outcome = runner.run(args, "Failed to unlock keychain")

        assert not outcome.ok
        assert outcome.error.exit_code == 51
        assert outcome.error.message == "Failed to unlock keychain"
        assert "s3cret" not in outcome.error.output
        assert "s3cret" not in outcome.error.command
        assert MASK in outcome.error.output

    def test_failure_without_message_is_not_an_error(self):
        executor = FakeExecutor().on("security", "delete-keychain", exit_code=50)
        runner = CommandRunner(executor)

        outcome = runner.run(ArgumentList("security", "delete-keychain", "kc"))

        assert not outcome.ok
        assert outcome.error is None

    def test_logs_never_contain_secret(self, caplog):
        executor = FakeExecutor().on("security", "create-keychain", exit_code=1, output="echo s3cret")
        runner = CommandRunner(executor)

        with caplog.at_level(logging.DEBUG):
            runner.run(
                ArgumentList("security", "create-keychain", "-p").add_masked("s3cret").add("kc"),
                "Failed to create a keychain with s3cret",
            )

        assert "s3cret" not in caplog.text
        assert MASK in caplog.text

    def test_executor_receives_masked_indices(self):
        executor = FakeExecutor()
        runner = CommandRunner(executor)

        runner.run(ArgumentList("security", "-p").add_masked("x"))

        assert executor.calls[0].masked_indices == frozenset({2})


@pytest.mark.unit
class TestVariableExpander:
    """Tests for VariableExpander."""

    def test_expands_both_forms(self):
        expander = VariableExpander({"HOME": "/Users/ci", "JOB": "app"})
        assert expander.expand("$HOME/${JOB}.keychain") == "/Users/ci/app.keychain"

    def test_unknown_left_alone(self):
        expander = VariableExpander({})
        assert expander.expand("${MISSING}/x") == "${MISSING}/x"

    def test_none_passes_through(self):
        assert VariableExpander({}).expand(None) is None

    def test_defaults_to_process_environment(self, monkeypatch):
        monkeypatch.setenv("KP_TEST_VALUE", "from-env")
        assert VariableExpander().expand("$KP_TEST_VALUE") == "from-env"


@pytest.mark.unit
class TestLocalFilesystem:
    """Tests for LocalFilesystem."""

    def test_extract_and_glob(self, tmp_path):
        fs = LocalFilesystem()
        archive = make_archive({"x/a.p12": b"1", "b.mobileprovision": b"2", "x/y/c.p12": b"3"})

        fs.extract_zip(archive, tmp_path / "out")

        names = [p.name for p in fs.glob(tmp_path / "out", "*.p12")]
        assert names == ["a.p12", "c.p12"]

    def test_rejects_path_traversal(self, tmp_path):
        fs = LocalFilesystem()
        archive = make_archive({"../escape.p12": b"1"})

        with pytest.raises(OSError, match="escapes"):
            fs.extract_zip(archive, tmp_path / "out")
        assert not (tmp_path / "escape.p12").exists()

    def test_glob_missing_root(self, tmp_path):
        assert LocalFilesystem().glob(tmp_path / "missing", "*") == []

    def test_copy_overwrites(self, tmp_path):
        fs = LocalFilesystem()
        src = tmp_path / "src"
        dest = tmp_path / "dest"
        src.write_text("new")
        dest.write_text("old")

        fs.copy(src, dest)

        assert dest.read_text() == "new"

    def test_remove_tree_missing_is_fine(self, tmp_path):
        LocalFilesystem().remove_tree(tmp_path / "missing")


@pytest.mark.unit
class TestSubprocessExecutor:
    """Tests for SubprocessExecutor."""

    def test_captures_stdout_and_stderr(self):
        result = SubprocessExecutor().execute([
            sys.executable, "-c",
            "import sys; print('out'); print('err', file=sys.stderr); sys.exit(3)",
        ])

        assert result.exit_code == 3
        assert "out" in result.output
        assert "err" in result.output

    def test_missing_program(self):
        result = SubprocessExecutor().execute(["definitely-not-a-real-program-kp"])

        assert result.exit_code == 127
        assert "not found" in result.output

    def test_env_is_merged(self):
        result = SubprocessExecutor().execute(
            [sys.executable, "-c", "import os; print(os.environ['KP_EXTRA'])"],
            env={"KP_EXTRA": "value"},
        )
        assert result.output.strip() == "value"

    def test_interrupt_becomes_cancellation(self, monkeypatch):
        import subprocess

        def interrupted(self, *args, **kwargs):
            raise KeyboardInterrupt

        monkeypatch.setattr(subprocess.Popen, "communicate", interrupted)

        with pytest.raises(ProvisioningCancelled):
            SubprocessExecutor().execute([sys.executable, "-c", "import time; time.sleep(5)"])
