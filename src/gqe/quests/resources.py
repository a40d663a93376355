from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from importlib import resources
from typing import Any

from gqe.contracts import (
    BonusVector,
    ClassSynergyRule,
    EffectKind,
    InjuryState,
    PassiveCategory,
    Rank,
    ResourceManifest,
    Role,
    RuleShape,
    Stat,
    SynergyBonus,
    ValidationError,
    ValidationIssue,
)
from gqe.quests.config import (
    ArchetypeTable,
    ChanceWeights,
    ClassProfile,
    DungeonRules,
    EngineConfig,
    FailureRules,
    InjuryProfile,
    RankProfile,
    RewardRules,
    default_engine_config,
    frozen_map,
)

EXPECTED_SCHEMA_VERSION = "1.0"

BUNDLE_FILES: dict[str, str] = {
    "ranks.json": "rank_profile",
    "injury_states.json": "injury_profile",
    "resolution_tuning.json": "resolution_tuning",
    "class_profiles.json": "class_profile",
    "class_synergies.json": "class_synergy",
    "passive_archetypes.json": "passive_archetype",
    "dungeon_tuning.json": "dungeon_tuning",
}


def canonical_checksum(resources_list: list[Any]) -> str:
    canonical = json.dumps(resources_list, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(canonical).hexdigest()


def load_packaged_payload(filename: str) -> dict[str, Any]:
    package = resources.files("gqe.resources.quests")
    return json.loads((package / filename).read_text(encoding="utf-8"))


@dataclass(slots=True)
class ResourceBundle:
    manifest: ResourceManifest
    resources_by_id: dict[str, dict[str, Any]]


class TuningResourceLoader:
    """Data-pack backed loader that turns quest tuning bundles into an EngineConfig."""

    def __init__(self, bundle_overrides: dict[str, dict[str, Any]] | None = None) -> None:
        self._bundle_overrides = bundle_overrides or {}
        self._bundles: dict[str, ResourceBundle] = {}

    def load(self) -> EngineConfig:
        self._bundles = {filename: self._load_bundle(filename, rtype) for filename, rtype in BUNDLE_FILES.items()}
        defaults = default_engine_config()
        classes = self._parse_classes(self._bundles["class_profiles.json"])
        rules = self._parse_synergy_rules(self._bundles["class_synergies.json"])
        self._validate_cross_references(classes, rules)
        tuning = self._bundles["resolution_tuning.json"].resources_by_id
        version = "+".join(
            f"{bundle.manifest.resource_type}@{bundle.manifest.resource_version}"
            for bundle in self._bundles.values()
        )
        return EngineConfig(
            version=version,
            ranks=self._parse_ranks(self._bundles["ranks.json"], defaults),
            injuries=self._parse_injuries(self._bundles["injury_states.json"], defaults),
            weights=self._parse_section(tuning.get("chance_weights", {}), ChanceWeights(), "chance_weights"),
            classes=frozen_map(classes),
            synergy_rules=tuple(rules),
            archetypes=self._parse_archetypes(self._bundles["passive_archetypes.json"], defaults.archetypes),
            failure=self._parse_failure(tuning.get("failure_rules", {}), defaults.failure),
            rewards=self._parse_section(tuning.get("reward_rules", {}), RewardRules(), "reward_rules"),
            dungeon=self._parse_dungeon(self._bundles["dungeon_tuning.json"], defaults.dungeon),
        )

    def resource_manifests(self) -> list[ResourceManifest]:
        return [bundle.manifest for bundle in self._bundles.values()]

    def _load_bundle(self, filename: str, expected_type: str) -> ResourceBundle:
        if filename in self._bundle_overrides:
            payload = self._bundle_overrides[filename]
        else:
            payload = load_packaged_payload(filename)
        manifest_data = payload.get("manifest")
        resources_list = payload.get("resources")
        if not isinstance(manifest_data, dict) or not isinstance(resources_list, list):
            raise ValidationError(
                [
                    ValidationIssue(
                        code="INVALID_RESOURCE_BUNDLE",
                        severity="blocking",
                        field_path=filename,
                        entity_id=expected_type,
                        message="resource bundle must provide manifest and resources list",
                    )
                ]
            )

        required_manifest_fields = {"resource_type", "schema_version", "resource_version", "generated_at", "checksum"}
        missing_manifest = sorted(required_manifest_fields - set(manifest_data.keys()))
        if missing_manifest:
            raise ValidationError(
                [
                    ValidationIssue(
                        code="MISSING_REQUIRED_RUNTIME_CONFIG",
                        severity="blocking",
                        field_path=f"{filename}.manifest",
                        entity_id=expected_type,
                        message=f"manifest missing required fields {missing_manifest}",
                    )
                ]
            )

        manifest = ResourceManifest(
            resource_type=str(manifest_data["resource_type"]),
            schema_version=str(manifest_data["schema_version"]),
            resource_version=str(manifest_data["resource_version"]),
            generated_at=str(manifest_data["generated_at"]),
            checksum=str(manifest_data["checksum"]),
        )
        issues = self._validate_manifest(manifest, expected_type, resources_list)
        if issues:
            raise ValidationError(issues)

        by_id: dict[str, dict[str, Any]] = {}
        for entry in resources_list:
            if not isinstance(entry, dict):
                continue
            rid = str(entry.get("id", ""))
            if not rid:
                continue
            by_id[rid] = dict(entry)
        return ResourceBundle(manifest=manifest, resources_by_id=by_id)

    def _validate_manifest(
        self,
        manifest: ResourceManifest,
        expected_type: str,
        resources_list: list[Any],
    ) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        if manifest.resource_type != expected_type:
            issues.append(
                ValidationIssue(
                    code="RESOURCE_TYPE_MISMATCH",
                    severity="blocking",
                    field_path="manifest.resource_type",
                    entity_id=expected_type,
                    message=f"expected '{expected_type}', got '{manifest.resource_type}'",
                )
            )
        if manifest.schema_version != EXPECTED_SCHEMA_VERSION:
            issues.append(
                ValidationIssue(
                    code="RESOURCE_SCHEMA_MISMATCH",
                    severity="blocking",
                    field_path="manifest.schema_version",
                    entity_id=expected_type,
                    message=f"expected schema {EXPECTED_SCHEMA_VERSION}, got {manifest.schema_version}",
                )
            )
        checksum = canonical_checksum(resources_list)
        if manifest.checksum != checksum:
            issues.append(
                ValidationIssue(
                    code="RESOURCE_CHECKSUM_MISMATCH",
                    severity="blocking",
                    field_path="manifest.checksum",
                    entity_id=expected_type,
                    message=f"expected {checksum}, got {manifest.checksum}",
                )
            )
        return issues

    def _parse_ranks(self, bundle: ResourceBundle, defaults: EngineConfig) -> dict[Rank, RankProfile]:
        ranks: dict[Rank, RankProfile] = dict(defaults.ranks)
        for rid, raw in bundle.resources_by_id.items():
            rank = self._enum(Rank, rid, "rank_profile", rid)
            fallback = ranks[rank]
            band = raw.get("baseline_band", list(fallback.baseline_band))
            if not isinstance(band, list) or len(band) != 2 or float(band[0]) > float(band[1]):
                raise self._invalid("rank_profile", rid, "baseline_band", "baseline_band must be [low, high]")
            ranks[rank] = RankProfile(
                rank=rank,
                rank_bonus=self._number(raw, "rank_bonus", fallback.rank_bonus, rid),
                expected_stat=int(self._number(raw, "expected_stat", fallback.expected_stat, rid)),
                minimum_stat=int(self._number(raw, "minimum_stat", fallback.minimum_stat, rid)),
                baseline_band=(float(band[0]), float(band[1])),
            )
        return frozen_map(ranks)

    def _parse_injuries(self, bundle: ResourceBundle, defaults: EngineConfig) -> dict[InjuryState, InjuryProfile]:
        injuries: dict[InjuryState, InjuryProfile] = dict(defaults.injuries)
        for rid, raw in bundle.resources_by_id.items():
            state = self._enum(InjuryState, rid, "injury_profile", rid)
            if state == InjuryState.NONE:
                continue
            fallback = injuries[state]
            penalty = self._number(raw, "stat_penalty", fallback.stat_penalty, rid)
            if not 0.0 <= penalty <= 1.0:
                raise self._invalid("injury_profile", rid, "stat_penalty", "stat_penalty must be within [0, 1]")
            injuries[state] = InjuryProfile(
                state=state,
                stat_penalty=penalty,
                rest_multiplier=self._number(raw, "rest_multiplier", fallback.rest_multiplier, rid),
            )
        return frozen_map(injuries)

    def _parse_classes(self, bundle: ResourceBundle) -> dict[str, ClassProfile]:
        classes: dict[str, ClassProfile] = {}
        for rid, raw in bundle.resources_by_id.items():
            stat_affinity = raw.get("stat_affinity", {})
            if not isinstance(stat_affinity, dict):
                raise self._invalid("class_profile", rid, "stat_affinity", "stat_affinity must be an object")
            for stat in stat_affinity:
                self._enum(Stat, stat, "class_profile", rid)
            roles = frozenset(self._enum(Role, role, "class_profile", rid) for role in raw.get("roles", []))
            classes[rid] = ClassProfile(
                class_id=rid,
                combat_affinity=self._number(raw, "combat_affinity", 0.0, rid),
                exploration_affinity=self._number(raw, "exploration_affinity", 0.0, rid),
                stat_affinity=frozen_map({str(k): float(v) for k, v in stat_affinity.items()}),
                roles=roles,
            )
        return classes

    def _parse_synergy_rules(self, bundle: ResourceBundle) -> list[ClassSynergyRule]:
        rules: list[ClassSynergyRule] = []
        for rid, raw in bundle.resources_by_id.items():
            shape = self._enum(RuleShape, raw.get("shape", ""), "class_synergy", rid)
            bonuses = raw.get("bonuses", {})
            if not isinstance(bonuses, dict):
                raise self._invalid("class_synergy", rid, "bonuses", "bonuses must be an object")
            stat_bonuses = bonuses.get("stat_bonus", {})
            for stat in stat_bonuses:
                self._enum(Stat, stat, "class_synergy", rid)
            all_bonus = float(bonuses.get("all_bonus", 0.0))
            vector = BonusVector(
                {
                    EffectKind.SUCCESS: float(bonuses.get("success_bonus", 0.0)) + all_bonus,
                    EffectKind.SURVIVAL: float(bonuses.get("survival_bonus", 0.0)) + all_bonus,
                    EffectKind.DROP: float(bonuses.get("drop_bonus", 0.0)) + all_bonus,
                    EffectKind.TRAVEL_TIME_REDUCTION: float(bonuses.get("travel_time_reduction", 0.0)),
                }
            )
            groups = raw.get("groups", [])
            if shape == RuleShape.COMBINATION and (not isinstance(groups, list) or not groups):
                raise self._invalid("class_synergy", rid, "groups", "combination rules need class groups")
            rules.append(
                ClassSynergyRule(
                    rule_id=rid,
                    name=str(raw.get("name", rid)),
                    shape=shape,
                    bonus=SynergyBonus(
                        vector=vector,
                        stat_bonuses={str(k): float(v) for k, v in stat_bonuses.items()},
                        death_protection=bool(bonuses.get("death_protection", False)),
                    ),
                    classes=tuple(str(c) for c in raw.get("classes", [])),
                    min_count=int(raw.get("min_count", 0)),
                    groups=tuple(tuple(str(c) for c in group) for group in groups),
                    unique_classes=int(raw.get("unique_classes", 0)),
                    quest_type=raw.get("quest_type"),
                    priority=int(raw.get("priority", 0)),
                    description=str(raw.get("description", "")),
                )
            )
        return rules

    def _parse_archetypes(self, bundle: ResourceBundle, fallback: ArchetypeTable) -> ArchetypeTable:
        by_id = bundle.resources_by_id
        pure = dict(fallback.pure)
        names = dict(fallback.names)
        category_effects = dict(fallback.category_effects)
        for category in PassiveCategory:
            raw = by_id.get(f"pure_{category.value.lower()}")
            if raw is None:
                continue
            pure[category] = self._vector(raw.get("bonuses", {}), f"pure_{category.value.lower()}")
            names[f"pure:{category.value}"] = str(raw.get("name", names.get(f"pure:{category.value}", "")))
            if "effect" in raw:
                category_effects[category] = self._enum(EffectKind, raw["effect"], "passive_archetype", category.value)
        focused = by_id.get("focused", {})
        balanced = by_id.get("balanced", {})
        for key in ("focused", "balanced", "versatile", "diverse"):
            if key in by_id and "name" in by_id[key]:
                names[key] = str(by_id[key]["name"])
        table = ArchetypeTable(
            category_effects=frozen_map(category_effects),
            pure=frozen_map(pure),
            versatile=self._vector(by_id["versatile"].get("bonuses", {}), "versatile") if "versatile" in by_id else fallback.versatile,
            diverse=self._vector(by_id["diverse"].get("bonuses", {}), "diverse") if "diverse" in by_id else fallback.diverse,
            focused_primary_weight=self._number(focused, "primary_weight", fallback.focused_primary_weight, "focused"),
            focused_secondary_weight=self._number(focused, "secondary_weight", fallback.focused_secondary_weight, "focused"),
            balanced_dual_weight=self._number(balanced, "dual_weight", fallback.balanced_dual_weight, "balanced"),
            min_party_size=int(self._number(by_id.get("party_requirements", {}), "min_party_size", fallback.min_party_size, "party_requirements")),
            names=frozen_map(names),
        )
        if table.focused_primary_weight <= table.focused_secondary_weight:
            raise self._invalid("passive_archetype", "focused", "primary_weight", "primary weight must exceed secondary weight")
        return table

    def _parse_failure(self, raw: dict[str, Any], fallback: FailureRules) -> FailureRules:
        severities: dict[str, InjuryState] = {}
        for key in ("injury_only_severity", "death_risk_severity", "combat_survivor_severity", "success_severity"):
            if key in raw:
                severities[key] = self._enum(InjuryState, raw[key], "resolution_tuning", "failure_rules")
        return FailureRules(
            failure_gold_fraction=self._number(raw, "failure_gold_fraction", fallback.failure_gold_fraction, "failure_rules"),
            failure_xp_fraction=self._number(raw, "failure_xp_fraction", fallback.failure_xp_fraction, "failure_rules"),
            injury_only_severity=severities.get("injury_only_severity", fallback.injury_only_severity),
            death_risk_severity=severities.get("death_risk_severity", fallback.death_risk_severity),
            combat_survivor_severity=severities.get("combat_survivor_severity", fallback.combat_survivor_severity),
            success_severity=severities.get("success_severity", fallback.success_severity),
            tank_death_reduction=self._number(raw, "tank_death_reduction", fallback.tank_death_reduction, "failure_rules"),
            escape_artist_min_level=int(self._number(raw, "escape_artist_min_level", fallback.escape_artist_min_level, "failure_rules")),
        )

    def _parse_dungeon(self, bundle: ResourceBundle, fallback: DungeonRules) -> DungeonRules:
        raw = bundle.resources_by_id.get("default", {})
        table = raw.get("floor_death_chances")
        death_chances = dict(fallback.floor_death_chances)
        if table is not None:
            if not isinstance(table, dict):
                raise self._invalid("dungeon_tuning", "default", "floor_death_chances", "floor_death_chances must be an object")
            death_chances = {int(floor): float(chance) for floor, chance in table.items()}
        rules = DungeonRules(
            fatigue_per_floor=self._number(raw, "fatigue_per_floor", fallback.fatigue_per_floor, "default"),
            min_fatigue_multiplier=self._number(raw, "min_fatigue_multiplier", fallback.min_fatigue_multiplier, "default"),
            death_risk_start_floor=int(self._number(raw, "death_risk_start_floor", fallback.death_risk_start_floor, "default")),
            floor_death_chances=frozen_map(death_chances),
            drop_multiplier=self._number(raw, "drop_multiplier", fallback.drop_multiplier, "default"),
            floor_reward_growth=self._number(raw, "floor_reward_growth", fallback.floor_reward_growth, "default"),
            completion_bonus_pct=self._number(raw, "completion_bonus_pct", fallback.completion_bonus_pct, "default"),
        )
        if rules.fatigue_per_floor < 0.0:
            raise self._invalid("dungeon_tuning", "default", "fatigue_per_floor", "fatigue_per_floor must be >= 0")
        return rules

    def _parse_section(self, raw: dict[str, Any], fallback: Any, entity_id: str) -> Any:
        values = {
            name: self._number(raw, name, getattr(fallback, name), entity_id)
            for name in fallback.__dataclass_fields__
        }
        return type(fallback)(**values)

    def _validate_cross_references(self, classes: dict[str, ClassProfile], rules: list[ClassSynergyRule]) -> None:
        issues: list[ValidationIssue] = []
        for rule in rules:
            referenced = set(rule.classes)
            for group in rule.groups:
                referenced.update(group)
            for class_id in sorted(referenced - set(classes)):
                issues.append(
                    ValidationIssue(
                        code="SYNERGY_CLASS_REF_MISSING",
                        severity="blocking",
                        field_path=f"class_synergy.{rule.rule_id}",
                        entity_id=rule.rule_id,
                        message=f"references unknown class '{class_id}'",
                    )
                )
            if rule.quest_type not in {None, "combat", "exploration"}:
                issues.append(
                    ValidationIssue(
                        code="INVALID_SYNERGY_QUEST_TYPE",
                        severity="blocking",
                        field_path=f"class_synergy.{rule.rule_id}.quest_type",
                        entity_id=rule.rule_id,
                        message=f"unsupported quest_type '{rule.quest_type}'",
                    )
                )
        if issues:
            raise ValidationError(issues)

    def _vector(self, raw: Any, entity_id: str) -> BonusVector:
        if not isinstance(raw, dict):
            raise self._invalid("passive_archetype", entity_id, "bonuses", "bonuses must be an object")
        return BonusVector(
            {self._enum(EffectKind, key, "passive_archetype", entity_id): float(value) for key, value in raw.items()}
        )

    def _number(self, raw: dict[str, Any], key: str, default: float, entity_id: str) -> float:
        if key not in raw:
            return float(default)
        value = raw[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise self._invalid("tuning", entity_id, key, f"'{key}' must be numeric")
        return float(value)

    def _enum(self, enum_type: Any, value: Any, resource_type: str, entity_id: str) -> Any:
        try:
            return enum_type(value)
        except ValueError as exc:
            raise ValidationError(
                [
                    ValidationIssue(
                        code="UNKNOWN_RESOURCE_KEY",
                        severity="blocking",
                        field_path=resource_type,
                        entity_id=str(entity_id),
                        message=f"'{value}' is not a valid {enum_type.__name__}",
                    )
                ]
            ) from exc

    def _invalid(self, resource_type: str, entity_id: str, field: str, message: str) -> ValidationError:
        return ValidationError(
            [
                ValidationIssue(
                    code="INVALID_RESOURCE_VALUE",
                    severity="blocking",
                    field_path=f"{resource_type}.{entity_id}.{field}",
                    entity_id=entity_id,
                    message=message,
                )
            ]
        )


def load_engine_config(bundle_overrides: dict[str, dict[str, Any]] | None = None) -> EngineConfig:
    return TuningResourceLoader(bundle_overrides=bundle_overrides).load()
