"""
Integration tests for a full rotation pass against the in-memory store.
"""

import logging

import pytest

from iamrotate import (
    ConfigError,
    ContractViolation,
    ListError,
    RotationPolicy,
    RotationState,
)
from iamrotate.config import RotationSettings
from iamrotate.rotator import KeyRotator, sinks_from_settings
from iamrotate.sinks import CircleCIContextSink, FileSink, ProfileSink


class TestRotate:
    """Tests for KeyRotator.rotate()."""

    def test_expired_current_key_is_replaced(
        self, make_key, memory_store_factory, recording_sink, policy, now
    ):
        """An expired current key is replaced, saved, then deleted."""
        store = memory_store_factory([make_key("AKIACUR", 40)], "AKIACUR")
        sink = recording_sink("file", store.calls)

        result = KeyRotator(store, [sink], policy).rotate(now=now)

        assert result.created == "AKIAMEMORY0000001"
        assert result.create_replacement is True
        assert result.deleted == ["AKIACUR"]
        assert result.state == RotationState.FINALIZED
        assert store.key_ids == ["AKIAMEMORY0000001"]
        assert store.calls == [
            ("list", None),
            ("create", None),
            ("write", "file"),
            ("delete", "AKIACUR"),
        ]

    def test_nothing_to_do(self, make_key, memory_store_factory, recording_sink, policy, now):
        """A single fresh key is left alone."""
        store = memory_store_factory([make_key("AKIACUR", 10)], "AKIACUR")

        result = KeyRotator(store, [recording_sink("file", store.calls)], policy).rotate(now=now)

        assert result.deleted == []
        assert result.create_replacement is False
        assert result.created is None
        assert store.calls == [("list", None)]

    def test_empty_key_set(self, memory_store_factory, policy, now):
        """No keys at all is a contract violation at classification."""
        store = memory_store_factory([], "AKIACUR")

        with pytest.raises(ContractViolation) as exc_info:
            KeyRotator(store, [], policy).rotate(now=now)

        assert exc_info.value.step == RotationState.CLASSIFIED
        assert store.calls == [("list", None)]

    def test_list_failure(self, memory_store_factory, policy, now):
        """A listing failure is reported at the listing step."""
        store = memory_store_factory([], "AKIACUR", fail_on={"list": "throttled"})

        with pytest.raises(ListError) as exc_info:
            KeyRotator(store, [], policy).rotate(now=now)

        assert exc_info.value.step == RotationState.LISTED
        assert str(exc_info.value) == "[listed] throttled"

    def test_dry_run_changes_nothing(
        self, make_key, memory_store_factory, recording_sink, policy, now
    ):
        """A dry run reports the plan without calling mutating operations."""
        store = memory_store_factory(
            [make_key("AKIACUR", 40), make_key("AKIAOLD", 50)], "AKIACUR"
        )
        sink = recording_sink("file", store.calls)

        result = KeyRotator(store, [sink], policy).rotate(dry_run=True, now=now)

        assert result.dry_run is True
        assert result.deleted == ["AKIAOLD", "AKIACUR"]
        assert result.create_replacement is True
        assert result.created is None
        assert result.state == RotationState.PLANNED
        assert store.calls == [("list", None)]
        assert sorted(store.key_ids) == ["AKIACUR", "AKIAOLD"]

    def test_logs_classification_table(
        self, make_key, memory_store_factory, policy, now, caplog
    ):
        """The key table is logged before anything changes."""
        store = memory_store_factory([make_key("AKIACUR", 10)], "AKIACUR")

        with caplog.at_level(logging.INFO, logger="iamrotate"):
            KeyRotator(store, [], policy).rotate(now=now)

        assert "number of keys 1" in caplog.text
        assert "key id" in caplog.text
        assert "valid (current)" in caplog.text


class TestFromSettings:
    """Tests for building a rotator from settings."""

    def test_validates_settings(self, memory_store_factory):
        """Invalid settings are rejected before any AWS call."""
        with pytest.raises(ConfigError, match="region"):
            KeyRotator.from_settings(RotationSettings(region=""), store=memory_store_factory([], ""))

    def test_policy_from_settings(self, memory_store_factory, tmp_path):
        """Limits come from the settings."""
        settings = RotationSettings(
            region="us-east-2",
            max_days_allowed=90,
            max_keys_allowed=2,
            filename=str(tmp_path / "k.json"),
            circleci_token="",
        )
        rotator = KeyRotator.from_settings(settings, store=memory_store_factory([], ""))

        assert rotator.policy == RotationPolicy(max_age_days=90, max_key_count=2)


class TestSinksFromSettings:
    """Tests for sink selection."""

    def test_file_then_profile(self, tmp_path):
        """Without a CircleCI token, the local profile is used."""
        settings = RotationSettings(
            region="us-east-2", profile="ci", filename=str(tmp_path / "k.json"), circleci_token=""
        )
        sinks = sinks_from_settings(settings)

        assert [type(s) for s in sinks] == [FileSink, ProfileSink]
        assert sinks[1].profile == "ci"

    def test_file_then_circleci(self, tmp_path):
        """A CircleCI token replaces the profile sink."""
        settings = RotationSettings(
            region="us-east-2",
            filename=str(tmp_path / "k.json"),
            circleci_token="tok",
            circleci_context_id="ctx",
        )
        sinks = sinks_from_settings(settings)

        assert [type(s) for s in sinks] == [FileSink, CircleCIContextSink]
        assert sinks[1].context_id == "ctx"
