"""Unit tests for the per-document-type conflict policy registry"""
import pytest

from docsync.conflict import (
    ConflictStrategy,
    ConflictResolutionConfig,
    DocumentType,
    DEFAULT_CONFIGS,
    FALLBACK_CONFIG,
    get_conflict_config,
    register_conflict_config,
    load_conflict_configs,
    reset_conflict_configs,
)


class TestDefaults:
    """Built-in policies."""

    def test_every_document_type_has_a_default(self):
        assert set(DEFAULT_CONFIGS) == set(DocumentType)

    def test_quiz_defaults(self):
        config = get_conflict_config("quiz")
        assert config.strategy is ConflictStrategy.AUTO_MERGE
        assert config.auto_merge_fields == {"title", "description", "tags", "timeLimit"}
        assert config.timestamp_field == "updatedAt"
        assert config.version_field == "version"

    def test_question_is_last_write_wins(self):
        assert get_conflict_config(DocumentType.QUESTION).strategy is ConflictStrategy.LAST_WRITE_WINS

    def test_user_progress_uses_last_updated(self):
        config = get_conflict_config("userProgress")
        assert config.timestamp_field == "lastUpdated"
        assert "streak" in config.auto_merge_fields

    def test_unknown_type_falls_back(self):
        config = get_conflict_config("flashcard")
        assert config is FALLBACK_CONFIG
        assert config.strategy is ConflictStrategy.LAST_WRITE_WINS
        assert config.timestamp_field == "updatedAt"

    def test_lookup_is_pure(self):
        assert get_conflict_config("quiz") == get_conflict_config("quiz")


class TestOverrides:
    """Registered overrides."""

    def test_register_full_config(self):
        custom = ConflictResolutionConfig(strategy=ConflictStrategy.MANUAL)
        register_conflict_config("lecture", custom)
        assert get_conflict_config("lecture") is custom

    def test_register_partial_mapping_keeps_defaults(self):
        config = register_conflict_config("quiz", {"strategy": "first-write-wins"})
        assert config.strategy is ConflictStrategy.FIRST_WRITE_WINS
        assert config.auto_merge_fields == DEFAULT_CONFIGS[DocumentType.QUIZ].auto_merge_fields

    def test_camel_case_keys_accepted(self):
        config = register_conflict_config("material", {"autoMergeFields": ["title"]})
        assert config.auto_merge_fields == {"title"}

    def test_unknown_setting_rejected(self):
        with pytest.raises(ValueError, match="Unknown conflict config setting"):
            register_conflict_config("quiz", {"strategyy": "manual"})

    def test_unknown_document_type_rejected(self):
        with pytest.raises(ValueError, match="Unknown document type"):
            register_conflict_config("flashcard", {"strategy": "manual"})

    def test_load_from_config_section(self):
        loaded = load_conflict_configs({
            "question": {"strategy": "first_write_wins"},
            "quizTemplate": {"auto_merge_fields": ["title"]},
        })
        assert set(loaded) == {"question", "quizTemplate"}
        assert get_conflict_config("question").strategy is ConflictStrategy.FIRST_WRITE_WINS
        assert get_conflict_config("quizTemplate").auto_merge_fields == {"title"}

    def test_single_field_name_is_not_split(self):
        loaded = load_conflict_configs({"material": {"auto_merge_fields": "title"}})
        assert loaded["material"].auto_merge_fields == {"title"}

        config = ConflictResolutionConfig(strategy="auto-merge", auto_merge_fields="title")
        assert config.auto_merge_fields == frozenset({"title"})

    def test_non_string_strategy_rejected(self):
        with pytest.raises(ValueError, match="must be a string"):
            register_conflict_config("quiz", {"strategy": 1})

    def test_reset_restores_defaults(self):
        register_conflict_config("question", {"strategy": "manual"})
        reset_conflict_configs()
        assert get_conflict_config("question") == DEFAULT_CONFIGS[DocumentType.QUESTION]

    def test_to_dict(self):
        assert get_conflict_config("material").to_dict() == {
            "strategy": "auto-merge",
            "auto_merge_fields": ["description", "tags", "title"],
            "timestamp_field": "updatedAt",
            "version_field": None,
        }
