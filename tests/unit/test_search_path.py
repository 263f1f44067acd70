"""Tests for search list capture and restoration."""

import logging

import pytest

from keychain_provisioner.keychain.models import HostKeychainSnapshot
from keychain_provisioner.keychain.search_path import (
    SearchPathRestorer,
    parse_keychain_list,
    read_default_keychain,
)
from tests.mocks.fake_executor import LOGIN_KEYCHAIN, SYSTEM_KEYCHAIN


@pytest.mark.unit
class TestParseKeychainList:
    """Tests for parse_keychain_list."""

    def test_strips_quotes_and_indentation(self):
        output = '    "/Users/ci/Library/Keychains/login.keychain-db"\n    "/Library/Keychains/System.keychain"\n'

        assert parse_keychain_list(output) == [
            "/Users/ci/Library/Keychains/login.keychain-db",
            "/Library/Keychains/System.keychain",
        ]

    def test_keeps_order_and_skips_blank_lines(self):
        assert parse_keychain_list('"/b"\n\n  "/a"\n') == ["/b", "/a"]

    def test_paths_with_spaces(self):
        assert parse_keychain_list('    "/Users/ci/My Keys.keychain"') == ["/Users/ci/My Keys.keychain"]


@pytest.mark.unit
class TestReadDefaultKeychain:
    """Tests for read_default_keychain."""

    def test_default_present(self, runner):
        assert read_default_keychain(runner, "security") == (LOGIN_KEYCHAIN, None)

    def test_no_default_sentinel(self, runner, executor):
        executor.no_default_keychain()
        assert read_default_keychain(runner, "security") == (None, None)

    def test_other_failure_is_an_error(self, runner, executor):
        executor.on("security", "default-keychain", exact=True, exit_code=1, output="boom")

        path, error = read_default_keychain(runner, "security")

        assert path is None
        assert error.exit_code == 1


@pytest.mark.unit
class TestSearchPathRestorer:
    """Tests for SearchPathRestorer."""

    def test_capture_records_snapshot(self, runner, existing_state):
        result = SearchPathRestorer(runner).capture(existing_state)

        assert result.success
        assert existing_state.snapshot == HostKeychainSnapshot(
            search_list=(LOGIN_KEYCHAIN, SYSTEM_KEYCHAIN),
            default_keychain=LOGIN_KEYCHAIN,
        )

    def test_snapshot_is_captured_once(self, runner, existing_state):
        restorer = SearchPathRestorer(runner)
        restorer.capture(existing_state)

        with pytest.raises(ValueError, match="already captured"):
            restorer.capture(existing_state)

    def test_capture_with_no_default(self, runner, executor, existing_state):
        executor.no_default_keychain()

        SearchPathRestorer(runner).capture(existing_state)

        assert existing_state.snapshot.default_keychain is None

    def test_restore_reapplies_exact_list(self, runner, executor, existing_state):
        existing_state.record_snapshot(HostKeychainSnapshot(
            search_list=("/c.keychain", "/a.keychain", "/b.keychain"),
            default_keychain="/a.keychain",
        ))

        assert SearchPathRestorer(runner).restore(existing_state) is True

        assert [c.argv for c in executor.calls] == [
            ["security", "list-keychains", "-d", "user", "-s", "/c.keychain", "/a.keychain", "/b.keychain"],
            ["security", "default-keychain", "-d", "user", "-s", "/a.keychain"],
        ]

    def test_restore_without_snapshot_does_nothing(self, runner, executor, existing_state):
        assert SearchPathRestorer(runner).restore(existing_state) is True
        assert executor.calls == []

    def test_restore_skips_unset_default(self, runner, executor, existing_state):
        existing_state.record_snapshot(HostKeychainSnapshot(search_list=("/a",), default_keychain=None))

        SearchPathRestorer(runner).restore(existing_state)

        assert executor.subcommands() == ["list-keychains"]

    def test_restore_failure_is_logged_not_raised(self, runner, executor, existing_state, caplog):
        existing_state.record_snapshot(HostKeychainSnapshot(search_list=("/a",), default_keychain="/a"))
        executor.on("security", "list-keychains", exit_code=1)
        executor.on("security", "default-keychain", exit_code=1)

        with caplog.at_level(logging.WARNING):
            restored = SearchPathRestorer(runner).restore(existing_state)

        assert restored is False
        assert "Failed to restore keychain search list" in caplog.text
        assert "Failed to restore default keychain" in caplog.text
        assert len(executor.calls) == 2
