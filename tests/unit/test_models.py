"""
Unit tests for migration value types.

Tests cover:
- DocumentAction kind/migrated consistency
- MigrationState recording, percent rounding and snapshots
- MigrationConfig defaults, validation and dict round trip
- validate_batch_size
"""

import pytest

from docmigrate.models import (
    ActionKind,
    DocumentAction,
    GenerationDescriptor,
    MigrationConfig,
    MigrationState,
    RunState,
    validate_batch_size,
)


class TestDocumentAction:
    """Tests for DocumentAction."""

    def test_success_factory(self) -> None:
        """Test success() builds a SUCCESS action carrying the migrated doc."""
        action = DocumentAction.success({"a": 1}, {"a": 2})
        assert action.kind is ActionKind.SUCCESS
        assert action.original == {"a": 1}
        assert action.migrated == {"a": 2}

    def test_deleted_factory(self) -> None:
        """Test deleted() builds a DELETED action without migrated doc."""
        action = DocumentAction.deleted({"a": 1})
        assert action.kind is ActionKind.DELETED
        assert action.migrated is None

    def test_deleted_with_document_rejected(self) -> None:
        """Test DELETED together with a migrated document is rejected."""
        with pytest.raises(ValueError, match="inconsistent"):
            DocumentAction(original={}, migrated={"a": 1}, kind=ActionKind.DELETED)

    def test_success_without_document_rejected(self) -> None:
        """Test SUCCESS without a migrated document is rejected."""
        with pytest.raises(ValueError, match="inconsistent"):
            DocumentAction(original={}, migrated=None, kind=ActionKind.SUCCESS)

    def test_is_frozen(self) -> None:
        """Test actions are immutable."""
        action = DocumentAction.deleted({})
        with pytest.raises(AttributeError):
            action.kind = ActionKind.SUCCESS  # type: ignore[misc]

    def test_kind_values(self) -> None:
        """Test enum string values."""
        assert ActionKind.SUCCESS.value == "success"
        assert ActionKind.DELETED.value == "deleted"


class TestGenerationDescriptor:
    """Tests for GenerationDescriptor."""

    def test_equality(self) -> None:
        assert GenerationDescriptor(1, {"version": 1}) == GenerationDescriptor(1, {"version": 1})


class TestMigrationState:
    """Tests for MigrationState."""

    def test_defaults(self) -> None:
        """Test initial state is empty and not done."""
        state = MigrationState()
        assert state.done is False
        assert state.total == 0
        assert state.handled == 0
        assert state.success == 0
        assert state.deleted == 0
        assert state.percent == 0

    def test_record_success_and_deleted(self) -> None:
        """Test recording keeps handled == success + deleted."""
        state = MigrationState(total=4)
        state.record(DocumentAction.success({}, {"a": 1}))
        state.record(DocumentAction.deleted({}))
        state.record(DocumentAction.success({}, {"a": 1}))

        assert state.handled == 3
        assert state.success == 2
        assert state.deleted == 1
        assert state.handled == state.success + state.deleted

    def test_percent_rounds_half_up(self) -> None:
        """Test 1 of 8 (12.5%) rounds up to 13."""
        state = MigrationState(total=8)
        state.record(DocumentAction.deleted({}))
        assert state.percent == 13

    def test_percent_capped_until_finished(self) -> None:
        """Test percent stays below 100 until finish()."""
        state = MigrationState(total=1)
        state.record(DocumentAction.deleted({}))
        assert state.percent == 99
        assert state.progress_percent == 100.0
        assert state.done is False

        state.finish()
        assert state.percent == 100
        assert state.done is True

    def test_percent_with_zero_total(self) -> None:
        """Test percent is not computed when total is zero."""
        state = MigrationState(total=0)
        state.record(DocumentAction.deleted({}))
        assert state.percent == 0
        assert state.progress_percent == 0.0

    def test_progress_percent_when_done_and_empty(self) -> None:
        state = MigrationState()
        state.finish()
        assert state.progress_percent == 100.0

    def test_snapshot_is_independent(self) -> None:
        """Test snapshots are not affected by later mutations."""
        state = MigrationState(total=2)
        snapshot = state.snapshot()
        state.record(DocumentAction.deleted({}))

        assert snapshot.handled == 0
        assert state.handled == 1
        assert snapshot is not state

    def test_to_dict(self) -> None:
        state = MigrationState(total=5)
        state.finish()
        assert state.to_dict() == {
            "done": True,
            "total": 5,
            "handled": 0,
            "success": 0,
            "deleted": 0,
            "percent": 100,
        }


class TestMigrationConfig:
    """Tests for MigrationConfig."""

    def test_defaults(self) -> None:
        config = MigrationConfig()
        assert config.batch_size == 10
        assert config.enable_tracing is True
        assert config.enable_metrics is True

    def test_invalid_batch_size(self) -> None:
        """Test batch_size < 1 is rejected at construction."""
        with pytest.raises(ValueError, match="batch_size"):
            MigrationConfig(batch_size=0)

    def test_round_trip(self) -> None:
        config = MigrationConfig(batch_size=25, enable_tracing=False)
        assert MigrationConfig.from_dict(config.to_dict()) == config

    def test_from_dict_ignores_unknown_keys(self) -> None:
        config = MigrationConfig.from_dict({"batch_size": 3, "unknown": True})
        assert config.batch_size == 3


class TestValidateBatchSize:
    """Tests for validate_batch_size."""

    @pytest.mark.parametrize("value", [1, 10, 500])
    def test_accepts_positive(self, value: int) -> None:
        assert validate_batch_size(value) == value

    @pytest.mark.parametrize("value", [0, -1])
    def test_rejects_non_positive(self, value: int) -> None:
        with pytest.raises(ValueError):
            validate_batch_size(value)

    @pytest.mark.parametrize("value", [True, 1.5, "10"])
    def test_rejects_non_int(self, value: object) -> None:
        with pytest.raises(TypeError):
            validate_batch_size(value)  # type: ignore[arg-type]


class TestRunState:
    def test_values(self) -> None:
        assert [state.value for state in RunState] == ["not_started", "running", "done"]
