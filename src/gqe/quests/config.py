from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from gqe.contracts import (
    BonusVector,
    ClassSynergyRule,
    EffectKind,
    InjuryState,
    PassiveCategory,
    Rank,
    Role,
)

CHANCE_FLOOR = 0.15
CHANCE_CEILING = 0.98


def frozen_map(values: Mapping) -> Mapping:
    return MappingProxyType(dict(values))


@dataclass(frozen=True, slots=True)
class RankProfile:
    rank: Rank
    rank_bonus: float
    expected_stat: int
    minimum_stat: int
    baseline_band: tuple[float, float]


@dataclass(frozen=True, slots=True)
class InjuryProfile:
    state: InjuryState
    stat_penalty: float
    rest_multiplier: float


@dataclass(frozen=True, slots=True)
class ChanceWeights:
    primary_weight: float = 0.02
    secondary_weight: float = 0.015
    secondary_expectation_factor: float = 0.7
    luck_weight: float = 0.01
    baseline_luck: float = 5.0


@dataclass(frozen=True, slots=True)
class ClassProfile:
    class_id: str
    combat_affinity: float = 0.0
    exploration_affinity: float = 0.0
    stat_affinity: Mapping[str, float] = field(default_factory=dict)
    roles: frozenset[Role] = frozenset()

    def affinity_for(self, quest_type: str) -> float:
        return self.combat_affinity if quest_type == "combat" else self.exploration_affinity


@dataclass(frozen=True, slots=True)
class ArchetypeTable:
    category_effects: Mapping[PassiveCategory, EffectKind]
    pure: Mapping[PassiveCategory, BonusVector]
    versatile: BonusVector
    diverse: BonusVector
    focused_primary_weight: float = 0.10
    focused_secondary_weight: float = 0.05
    balanced_dual_weight: float = 0.08
    min_party_size: int = 4
    names: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class FailureRules:
    failure_gold_fraction: float = 0.2
    failure_xp_fraction: float = 0.3
    injury_only_severity: InjuryState = InjuryState.INJURED
    death_risk_severity: InjuryState = InjuryState.WOUNDED
    combat_survivor_severity: InjuryState = InjuryState.INJURED
    success_severity: InjuryState = InjuryState.NONE
    tank_death_reduction: float = 0.25
    escape_artist_min_level: int = 10


@dataclass(frozen=True, slots=True)
class RewardRules:
    baseline_luck: float = 5.0
    luck_scale: float = 0.05
    min_luck_multiplier: float = 0.5
    max_luck_multiplier: float = 2.0
    drop_chance_cap: float = 0.95


DEFAULT_FLOOR_DEATH_CHANCES = {3: 0.05, 4: 0.1, 5: 0.15, 6: 0.2, 7: 0.25}


@dataclass(frozen=True, slots=True)
class DungeonRules:
    fatigue_per_floor: float = 0.05
    min_fatigue_multiplier: float = 0.5
    death_risk_start_floor: int = 3
    floor_death_chances: Mapping[int, float] = field(default_factory=lambda: frozen_map(DEFAULT_FLOOR_DEATH_CHANCES))
    drop_multiplier: float = 1.25
    floor_reward_growth: float = 0.2
    completion_bonus_pct: float = 0.25


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Immutable tuning snapshot threaded through every resolution call."""

    version: str
    ranks: Mapping[Rank, RankProfile]
    injuries: Mapping[InjuryState, InjuryProfile]
    weights: ChanceWeights
    classes: Mapping[str, ClassProfile]
    synergy_rules: tuple[ClassSynergyRule, ...]
    archetypes: ArchetypeTable
    failure: FailureRules
    rewards: RewardRules
    dungeon: DungeonRules

    def rank_profile(self, rank: Rank) -> RankProfile:
        profile = self.ranks.get(rank)
        if profile is None:
            return DEFAULT_RANK_PROFILES[rank]
        return profile

    def injury_penalty(self, state: InjuryState) -> float:
        if state == InjuryState.NONE:
            return 1.0
        profile = self.injuries.get(state)
        if profile is None:
            return DEFAULT_INJURY_PROFILES[state].stat_penalty
        return profile.stat_penalty

    def class_profile(self, class_id: str) -> ClassProfile | None:
        return self.classes.get(class_id)

    def has_role(self, class_id: str, role: Role) -> bool:
        profile = self.classes.get(class_id)
        return profile is not None and role in profile.roles


DEFAULT_RANK_PROFILES: Mapping[Rank, RankProfile] = frozen_map(
    {
        Rank.D: RankProfile(Rank.D, rank_bonus=0.05, expected_stat=5, minimum_stat=3, baseline_band=(0.5, 0.7)),
        Rank.C: RankProfile(Rank.C, rank_bonus=0.03, expected_stat=7, minimum_stat=5, baseline_band=(0.5, 0.68)),
        Rank.B: RankProfile(Rank.B, rank_bonus=0.0, expected_stat=10, minimum_stat=7, baseline_band=(0.48, 0.66)),
        Rank.A: RankProfile(Rank.A, rank_bonus=-0.02, expected_stat=13, minimum_stat=10, baseline_band=(0.45, 0.62)),
        Rank.S: RankProfile(Rank.S, rank_bonus=-0.05, expected_stat=16, minimum_stat=13, baseline_band=(0.4, 0.6)),
    }
)

# Percentage stat-penalty model; rest multipliers are informational for the recovery timer.
DEFAULT_INJURY_PROFILES: Mapping[InjuryState, InjuryProfile] = frozen_map(
    {
        InjuryState.FATIGUED: InjuryProfile(InjuryState.FATIGUED, stat_penalty=0.9, rest_multiplier=1.0),
        InjuryState.INJURED: InjuryProfile(InjuryState.INJURED, stat_penalty=0.75, rest_multiplier=2.0),
        InjuryState.WOUNDED: InjuryProfile(InjuryState.WOUNDED, stat_penalty=0.5, rest_multiplier=3.0),
    }
)

DEFAULT_CATEGORY_EFFECTS: Mapping[PassiveCategory, EffectKind] = frozen_map(
    {
        PassiveCategory.OFFENSE: EffectKind.SUCCESS,
        PassiveCategory.DEFENSE: EffectKind.INJURY_REDUCTION,
        PassiveCategory.WEALTH: EffectKind.GOLD,
        PassiveCategory.SPEED: EffectKind.QUEST_TIME_REDUCTION,
    }
)

_missing_categories = set(PassiveCategory) - set(DEFAULT_CATEGORY_EFFECTS)
if _missing_categories:
    raise RuntimeError(f"passive categories without an effect kind: {sorted(c.value for c in _missing_categories)}")


def default_archetype_table() -> ArchetypeTable:
    return ArchetypeTable(
        category_effects=DEFAULT_CATEGORY_EFFECTS,
        pure=frozen_map(
            {
                PassiveCategory.OFFENSE: BonusVector.of(success=0.15, xp=0.3),
                PassiveCategory.DEFENSE: BonusVector.of(injury_reduction=0.6, recovery_reduction=0.5),
                PassiveCategory.WEALTH: BonusVector.of(gold=0.8, material=0.4),
                PassiveCategory.SPEED: BonusVector.of(quest_time_reduction=0.3, recovery_reduction=0.4),
            }
        ),
        versatile=BonusVector.of(success=0.05, injury_reduction=0.1),
        diverse=BonusVector.of(success=0.03, gold=0.03, injury_reduction=0.03, quest_time_reduction=0.03),
        names=frozen_map(
            {
                "pure:OFFENSE": "War Council",
                "pure:DEFENSE": "Iron Fortress",
                "pure:WEALTH": "Merchant Guild",
                "pure:SPEED": "Swift Wind",
                "focused": "Focused Company",
                "balanced": "Balanced Company",
                "versatile": "Versatile Company",
                "diverse": "Diverse Company",
                "none": "No Archetype",
            }
        ),
    )


def default_engine_config() -> EngineConfig:
    """Conservative built-in tuning used whenever a bundle omits a value."""
    return EngineConfig(
        version="builtin",
        ranks=DEFAULT_RANK_PROFILES,
        injuries=DEFAULT_INJURY_PROFILES,
        weights=ChanceWeights(),
        classes=frozen_map({}),
        synergy_rules=(),
        archetypes=default_archetype_table(),
        failure=FailureRules(),
        rewards=RewardRules(),
        dungeon=DungeonRules(),
    )
