import pytest
from pydantic import ValidationError

from speed_agent.core.settings import (
    OptimizationSettings,
    deep_merge,
    make_safer_settings,
    merge_settings,
)


def test_deep_merge_recurses_and_does_not_mutate():
    base = {"css": {"purge": True, "safelist": ["a"]}, "js": {"enabled": True}}
    override = {"css": {"safelist": ["b", "c"]}, "js": None}

    merged = deep_merge(base, override)

    assert merged == {"css": {"purge": True, "safelist": ["b", "c"]}, "js": {"enabled": True}}
    assert base == {"css": {"purge": True, "safelist": ["a"]}, "js": {"enabled": True}}
    assert override == {"css": {"safelist": ["b", "c"]}, "js": None}


def test_deep_merge_scalar_replaces_dict():
    assert deep_merge({"a": {"b": 1}}, {"a": 5}) == {"a": 5}


def test_merge_settings_applies_sparse_delta():
    settings = OptimizationSettings()
    updated = merge_settings(settings, {"css": {"purge_aggressiveness": "aggressive"}, "js": {"remove_jquery": True}})

    assert updated.css.purge_aggressiveness == "aggressive"
    assert updated.js.remove_jquery is True
    # untouched sections keep their defaults
    assert updated.images == settings.images
    assert settings.css.purge_aggressiveness == "safe"


def test_merge_settings_rejects_invalid_values():
    settings = OptimizationSettings()
    with pytest.raises(ValidationError):
        merge_settings(settings, {"images": {"webp": {"quality": 500}}})
    with pytest.raises(ValidationError):
        merge_settings(settings, {"css": {"purge_aggressiveness": "extreme"}})


def test_merge_settings_empty_delta_is_identity():
    settings = OptimizationSettings()
    assert merge_settings(settings, {}) == settings
    assert merge_settings(settings, None) == settings


def test_make_safer_settings_turns_off_risky_flags_only():
    risky = merge_settings(OptimizationSettings(), {
        "css": {"purge": True, "purge_aggressiveness": "aggressive"},
        "js": {"remove_jquery": True, "enabled": False},
        "html": {"aggressive": {"remove_optional_tags": True, "remove_empty_elements": True, "sort_attributes": True}},
        "images": {"webp": {"quality": 60}},
    })

    safer = make_safer_settings(risky)

    assert safer.css.purge is False
    assert safer.css.purge_aggressiveness == "safe"
    assert safer.js.remove_jquery is False
    assert safer.js.enabled is True
    assert safer.html.aggressive.remove_optional_tags is False
    assert safer.html.aggressive.remove_empty_elements is False
    assert safer.html.aggressive.remove_attribute_quotes is False
    # outside the softened subset nothing changes
    assert safer.html.aggressive.sort_attributes is True
    assert safer.images.webp.quality == 60


def test_make_safer_settings_is_idempotent():
    once = make_safer_settings(OptimizationSettings())
    assert make_safer_settings(once) == once
