from __future__ import annotations

import copy

import pytest

from gqe.contracts import InjuryState, Rank, Role, ValidationError
from gqe.quests import TuningResourceLoader, load_engine_config
from gqe.quests.resources import BUNDLE_FILES, canonical_checksum, load_packaged_payload
from tests.helpers import make_engine


def _override(name: str, mutate, *, fix_checksum: bool = True) -> dict:
    payload = copy.deepcopy(load_packaged_payload(name))
    mutate(payload["resources"])
    if fix_checksum:
        payload["manifest"]["checksum"] = canonical_checksum(payload["resources"])
    return {name: payload}


def _entry(resources: list[dict], rid: str) -> dict:
    return next(entry for entry in resources if entry["id"] == rid)


def _codes(exc: pytest.ExceptionInfo) -> set[str]:
    return {issue.code for issue in exc.value.issues}


def test_packaged_bundles_load_with_manifests():
    loader = TuningResourceLoader()
    config = loader.load()
    manifests = loader.resource_manifests()
    assert {manifest.resource_type for manifest in manifests} == set(BUNDLE_FILES.values())
    assert all(manifest.checksum == canonical_checksum(load_packaged_payload(name)["resources"]) for name, manifest in zip(BUNDLE_FILES, manifests))
    assert "rank_profile@" in config.version
    assert config.rank_profile(Rank.B).expected_stat == 10
    assert config.injury_penalty(InjuryState.INJURED) == pytest.approx(0.75)
    assert config.has_role("Knight", Role.TANK)
    assert config.has_role("Priest", Role.CLERIC)
    assert not config.has_role("Mage", Role.HEALER)
    assert {rule.rule_id for rule in config.synergy_rules} >= {"shield_wall", "holy_guardian", "grand_alliance"}


def test_checksum_mismatch_rejected():
    overrides = _override("ranks.json", lambda res: _entry(res, "D").update(rank_bonus=0.5), fix_checksum=False)
    with pytest.raises(ValidationError) as ex:
        load_engine_config(overrides)
    assert "RESOURCE_CHECKSUM_MISMATCH" in _codes(ex)


def test_schema_mismatch_rejected():
    overrides = _override("ranks.json", lambda res: None)
    overrides["ranks.json"]["manifest"]["schema_version"] = "2.0"
    with pytest.raises(ValidationError) as ex:
        load_engine_config(overrides)
    assert "RESOURCE_SCHEMA_MISMATCH" in _codes(ex)


def test_missing_manifest_fields_rejected():
    overrides = _override("dungeon_tuning.json", lambda res: None)
    del overrides["dungeon_tuning.json"]["manifest"]["generated_at"]
    with pytest.raises(ValidationError) as ex:
        load_engine_config(overrides)
    assert "MISSING_REQUIRED_RUNTIME_CONFIG" in _codes(ex)


def test_synergy_referencing_unknown_class_rejected():
    def add_rule(resources):
        resources.append(
            {
                "id": "dragon_riders",
                "shape": "min_count",
                "classes": ["Dragoon"],
                "min_count": 2,
                "bonuses": {"success_bonus": 0.1},
            }
        )

    with pytest.raises(ValidationError) as ex:
        load_engine_config(_override("class_synergies.json", add_rule))
    assert "SYNERGY_CLASS_REF_MISSING" in _codes(ex)


def test_out_of_range_penalty_rejected():
    overrides = _override("injury_states.json", lambda res: _entry(res, "wounded").update(stat_penalty=1.5))
    with pytest.raises(ValidationError) as ex:
        load_engine_config(overrides)
    assert "INVALID_RESOURCE_VALUE" in _codes(ex)


def test_unknown_role_rejected():
    overrides = _override("class_profiles.json", lambda res: _entry(res, "Knight").update(roles=["bard"]))
    with pytest.raises(ValidationError) as ex:
        load_engine_config(overrides)
    assert "UNKNOWN_RESOURCE_KEY" in _codes(ex)


def test_reload_swaps_config_and_announces_it():
    engine = make_engine()
    seen = []
    engine.event_bus.subscribe_narrative(seen.append)
    previous = engine.config
    returned = engine.reload_resources(
        _override("dungeon_tuning.json", lambda res: _entry(res, "default").update(fatigue_per_floor=0.1))
    )
    assert returned is previous
    assert engine.config.dungeon.fatigue_per_floor == pytest.approx(0.1)
    assert engine.get_floor_fatigue_multiplier(3) == pytest.approx(0.8)
    assert [event.event_type for event in seen] == ["config_reloaded"]


def test_failed_reload_keeps_current_config():
    engine = make_engine()
    current = engine.config
    bad = _override("ranks.json", lambda res: _entry(res, "S").update(rank_bonus=1.0), fix_checksum=False)
    with pytest.raises(ValidationError):
        engine.reload_resources(bad)
    assert engine.config is current
    assert engine.event_bus.emitted_count("config") == 0


def test_cleric_class_carries_cleric_role():
    config = load_engine_config()
    assert config.has_role("Cleric", Role.CLERIC)
    assert config.has_role("Cleric", Role.HEALER)
    guardian = next(rule for rule in config.synergy_rules if rule.rule_id == "holy_guardian")
    assert any("Cleric" in group for group in guardian.groups)
