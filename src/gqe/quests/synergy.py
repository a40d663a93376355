from __future__ import annotations

from typing import Sequence

from gqe.contracts import (
    ArchetypeKind,
    BonusVector,
    ClassSynergyRule,
    EffectKind,
    Hero,
    PassiveCategory,
    Quest,
    RuleShape,
    SynergyArchetype,
    SynergyBonus,
    SynergyReport,
    combine_synergy_bonuses,
)
from gqe.quests.config import ArchetypeTable, EngineConfig

# effect_type -> (kind, scaling); "resolution" effects act during outcome rolls only.
PASSIVE_EFFECT_KINDS: dict[str, tuple[EffectKind | None, str]] = {
    "stat_quest_bonus": (EffectKind.SUCCESS, "stat"),
    "party_size_bonus": (EffectKind.SUCCESS, "per_member"),
    "party_injury_reduction": (EffectKind.INJURY_REDUCTION, "flat"),
    "party_death_reduction": (EffectKind.DEATH_REDUCTION, "flat"),
    "gold_bonus": (EffectKind.GOLD, "flat"),
    "xp_bonus": (EffectKind.XP, "flat"),
    "material_bonus": (EffectKind.MATERIAL, "flat"),
    "luck_bonus": (EffectKind.LUCK, "flat"),
    "travel_time_reduction": (EffectKind.TRAVEL_TIME_REDUCTION, "flat"),
    "execute_time_reduction": (EffectKind.EXECUTE_TIME_REDUCTION, "flat"),
    "party_rest_reduction": (EffectKind.RECOVERY_REDUCTION, "flat"),
    "self_rest_reduction": (EffectKind.RECOVERY_REDUCTION, "per_party"),
    "shadow_step": (None, "resolution"),
}

SHADOW_STEP = "shadow_step"

_ARCHETYPE_PATTERNS: dict[tuple[int, ...], ArchetypeKind] = {
    (4, 0, 0, 0): ArchetypeKind.PURE,
    (3, 1, 0, 0): ArchetypeKind.FOCUSED,
    (2, 2, 0, 0): ArchetypeKind.BALANCED,
    (2, 1, 1, 0): ArchetypeKind.VERSATILE,
    (1, 1, 1, 1): ArchetypeKind.DIVERSE,
}


class SynergyResolver:
    """Class-composition rules plus the passive-category archetype of a party."""

    def active_rules(
        self,
        heroes: Sequence[Hero],
        quest: Quest | None,
        config: EngineConfig,
    ) -> list[ClassSynergyRule]:
        classes = [hero.hero_class for hero in heroes]
        active = [rule for rule in config.synergy_rules if self._rule_matches(rule, classes, quest)]
        return sorted(active, key=lambda rule: -rule.priority)

    def class_bonus(self, rules: Sequence[ClassSynergyRule]) -> SynergyBonus:
        return combine_synergy_bonuses(rule.bonus for rule in rules)

    def classify_archetype(self, heroes: Sequence[Hero], config: EngineConfig) -> SynergyArchetype:
        table = config.archetypes
        if len(heroes) < table.min_party_size:
            return self._none(table)

        counts = {category: 0 for category in PassiveCategory}
        for hero in heroes:
            # Categories outside the four known ones do not count toward any archetype.
            if hero.passive is not None and hero.passive.category in counts:
                counts[hero.passive.category] += 1
        ordered = sorted(PassiveCategory, key=lambda category: -counts[category])
        pattern = tuple(counts[category] for category in ordered)
        kind = _ARCHETYPE_PATTERNS.get(pattern, ArchetypeKind.NONE)

        if kind == ArchetypeKind.PURE:
            top = ordered[0]
            return SynergyArchetype(
                kind=kind,
                name=table.names.get(f"pure:{top.value}", top.value.title()),
                categories=(top,),
                bonus=table.pure.get(top, BonusVector.empty()),
            )
        if kind == ArchetypeKind.FOCUSED:
            primary, secondary = ordered[0], ordered[1]
            bonus = BonusVector(
                {table.category_effects[primary]: table.focused_primary_weight}
            ).combine(BonusVector({table.category_effects[secondary]: table.focused_secondary_weight}))
            return SynergyArchetype(kind, table.names.get("focused", "Focused"), (primary, secondary), bonus)
        if kind == ArchetypeKind.BALANCED:
            first, second = ordered[0], ordered[1]
            bonus = BonusVector({table.category_effects[first]: table.balanced_dual_weight}).combine(
                BonusVector({table.category_effects[second]: table.balanced_dual_weight})
            )
            return SynergyArchetype(kind, table.names.get("balanced", "Balanced"), (first, second), bonus)
        if kind == ArchetypeKind.VERSATILE:
            return SynergyArchetype(kind, table.names.get("versatile", "Versatile"), (), table.versatile)
        if kind == ArchetypeKind.DIVERSE:
            return SynergyArchetype(kind, table.names.get("diverse", "Diverse"), (), table.diverse)
        return self._none(table)

    def individual_passives(self, heroes: Sequence[Hero]) -> SynergyBonus:
        party_size = len(heroes)
        vectors: list[BonusVector] = []
        stat_bonuses: dict[str, float] = {}
        for hero in heroes:
            if hero.passive is None:
                continue
            effect = hero.passive.effect
            kind, scaling = PASSIVE_EFFECT_KINDS.get(effect.effect_type, (None, "unknown"))
            if kind is None:
                continue
            value = float(effect.value)
            if scaling == "stat" and effect.stat:
                stat_bonuses[effect.stat] = stat_bonuses.get(effect.stat, 0.0) + value
                continue
            if scaling == "per_member":
                value *= party_size
            elif scaling == "per_party":
                value /= max(1, party_size)
            vectors.append(BonusVector({kind: value}))
        return SynergyBonus(vector=BonusVector.empty().combine(*vectors), stat_bonuses=stat_bonuses)

    def passive_effects(self, heroes: Sequence[Hero], config: EngineConfig) -> tuple[SynergyArchetype, SynergyBonus]:
        archetype = self.classify_archetype(heroes, config)
        combined = self.individual_passives(heroes).combine(SynergyBonus(vector=archetype.bonus))
        return archetype, combined

    def resolve(self, heroes: Sequence[Hero], quest: Quest | None, config: EngineConfig) -> SynergyReport:
        rules = self.active_rules(heroes, quest, config)
        class_bonus = self.class_bonus(rules)
        archetype, passive_bonus = self.passive_effects(heroes, config)
        return SynergyReport(
            active_rules=rules,
            class_bonus=class_bonus,
            archetype=archetype,
            passive_bonus=passive_bonus,
            combined=class_bonus.combine(passive_bonus),
        )

    def _rule_matches(self, rule: ClassSynergyRule, classes: list[str], quest: Quest | None) -> bool:
        if rule.quest_type is not None and (quest is None or quest.quest_type != rule.quest_type):
            return False
        if rule.shape == RuleShape.MIN_COUNT:
            members = set(rule.classes)
            return sum(1 for hero_class in classes if hero_class in members) >= rule.min_count
        if rule.shape == RuleShape.COMBINATION:
            present = set(classes)
            return all(present.intersection(group) for group in rule.groups)
        if rule.shape == RuleShape.UNIQUE_CLASSES:
            return len(set(classes)) >= rule.unique_classes
        raise ValueError(f"unsupported synergy rule shape '{rule.shape}'")

    def _none(self, table: ArchetypeTable) -> SynergyArchetype:
        return SynergyArchetype(kind=ArchetypeKind.NONE, name=table.names.get("none", "None"))


def passive_value(hero: Hero, effect_type: str) -> float:
    if hero.passive is None or hero.passive.effect.effect_type != effect_type:
        return 0.0
    return float(hero.passive.effect.value)
