from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Protocol, Sequence


class Rank(str, Enum):
    D = "D"
    C = "C"
    B = "B"
    A = "A"
    S = "S"

    @property
    def ordinal(self) -> int:
        return _RANK_ORDER.index(self) + 1


_RANK_ORDER = (Rank.D, Rank.C, Rank.B, Rank.A, Rank.S)


class Stat(str, Enum):
    STR = "str"
    DEX = "dex"
    INT = "int"
    VIT = "vit"
    LUCK = "luck"


class InjuryState(str, Enum):
    NONE = "none"
    FATIGUED = "fatigued"
    INJURED = "injured"
    WOUNDED = "wounded"

    @property
    def severity(self) -> int:
        return _INJURY_ORDER.index(self)

    @classmethod
    def from_severity(cls, severity: int) -> InjuryState:
        return _INJURY_ORDER[max(0, min(len(_INJURY_ORDER) - 1, severity))]


_INJURY_ORDER = (InjuryState.NONE, InjuryState.FATIGUED, InjuryState.INJURED, InjuryState.WOUNDED)


class PassiveCategory(str, Enum):
    OFFENSE = "OFFENSE"
    DEFENSE = "DEFENSE"
    WEALTH = "WEALTH"
    SPEED = "SPEED"


class EffectKind(str, Enum):
    SUCCESS = "success"
    XP = "xp"
    GOLD = "gold"
    MATERIAL = "material"
    INJURY_REDUCTION = "injury_reduction"
    DEATH_REDUCTION = "death_reduction"
    SURVIVAL = "survival"
    DROP = "drop"
    LUCK = "luck"
    QUEST_TIME_REDUCTION = "quest_time_reduction"
    TRAVEL_TIME_REDUCTION = "travel_time_reduction"
    EXECUTE_TIME_REDUCTION = "execute_time_reduction"
    RECOVERY_REDUCTION = "recovery_reduction"


class ArchetypeKind(str, Enum):
    PURE = "pure"
    FOCUSED = "focused"
    BALANCED = "balanced"
    VERSATILE = "versatile"
    DIVERSE = "diverse"
    NONE = "none"


class RuleShape(str, Enum):
    MIN_COUNT = "min_count"
    COMBINATION = "combination"
    UNIQUE_CLASSES = "unique_classes"


class Role(str, Enum):
    TANK = "tank"
    HEALER = "healer"
    CLERIC = "cleric"
    ESCAPE_ARTIST = "escape_artist"


class DungeonPhase(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    FLOOR_CLEARED = "floor_cleared"
    FLOOR_FAILED = "floor_failed"
    RETREATED = "retreated"
    COMPLETED = "completed"


class RandomSource(Protocol):
    def rand(self) -> float: ...

    def randint(self, a: int, b: int) -> int: ...

    def choice(self, items: Sequence[Any]) -> Any: ...

    def shuffle(self, items: list[Any]) -> None: ...

    def spawn(self, substream_id: str) -> RandomSource: ...


@dataclass(frozen=True, slots=True)
class BonusVector:
    """Closed-kind bonus accumulator; every EffectKind is always present."""

    values: Mapping[EffectKind, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        normalized: dict[EffectKind, float] = {kind: 0.0 for kind in EffectKind}
        for key, value in dict(self.values).items():
            normalized[EffectKind(key)] += float(value)
        object.__setattr__(self, "values", MappingProxyType(normalized))

    @classmethod
    def empty(cls) -> BonusVector:
        return cls()

    @classmethod
    def of(cls, **values: float) -> BonusVector:
        return cls({EffectKind(key): value for key, value in values.items()})

    def get(self, kind: EffectKind) -> float:
        return self.values[kind]

    def scaled(self, factor: float) -> BonusVector:
        return BonusVector({kind: value * factor for kind, value in self.values.items()})

    def combine(self, *others: BonusVector) -> BonusVector:
        return combine_bonus_vectors(self, *others)

    def nonzero(self) -> dict[str, float]:
        return {kind.value: value for kind, value in self.values.items() if value != 0.0}


def combine_bonus_vectors(*vectors: BonusVector) -> BonusVector:
    totals: dict[EffectKind, float] = {}
    for kind in EffectKind:
        totals[kind] = sum(vector.get(kind) for vector in vectors)
    return BonusVector(totals)


@dataclass(frozen=True, slots=True)
class SynergyBonus:
    vector: BonusVector = field(default_factory=BonusVector)
    stat_bonuses: Mapping[str, float] = field(default_factory=dict)
    death_protection: bool = False

    def stat_bonus(self, stat: Stat | str) -> float:
        key = stat.value if isinstance(stat, Stat) else str(stat)
        return float(self.stat_bonuses.get(key, 0.0))

    def combine(self, *others: SynergyBonus) -> SynergyBonus:
        return combine_synergy_bonuses((self, *others))


def combine_synergy_bonuses(bonuses: Iterable[SynergyBonus]) -> SynergyBonus:
    items = list(bonuses)
    stat_totals: dict[str, float] = {}
    for bonus in items:
        for stat, value in bonus.stat_bonuses.items():
            stat_totals[stat] = stat_totals.get(stat, 0.0) + float(value)
    return SynergyBonus(
        vector=combine_bonus_vectors(*(bonus.vector for bonus in items)),
        stat_bonuses=stat_totals,
        death_protection=any(bonus.death_protection for bonus in items),
    )


@dataclass(slots=True)
class PassiveEffect:
    effect_type: str
    value: float
    stat: str | None = None


@dataclass(slots=True)
class Passive:
    passive_id: str
    name: str
    category: PassiveCategory
    effect: PassiveEffect


@dataclass(slots=True)
class Hero:
    hero_id: str
    name: str
    rank: Rank
    level: int
    hero_class: str
    stats: dict[str, int]
    injury_state: InjuryState = InjuryState.NONE
    passive: Passive | None = None


@dataclass(slots=True)
class SecondaryStat:
    stat: str
    weight: float = 1.0


@dataclass(slots=True)
class RewardEntry:
    reward_id: str
    amount: int
    drop_chance: float
    kind: str = "material"


@dataclass(slots=True)
class RewardDrop:
    reward_id: str
    amount: int
    kind: str
    drop_chance: float


@dataclass(slots=True)
class Quest:
    quest_id: str
    name: str
    rank: Rank
    required_stat: str
    reward: int
    xp_reward: int
    secondary_stats: list[SecondaryStat] = field(default_factory=list)
    combat: bool = False
    can_kill: bool = False
    injury_only: bool = False
    death_chance: float = 0.0
    cleric_protection: bool = False
    is_dungeon: bool = False
    floor_count: int = 1
    possible_rewards: list[RewardEntry] = field(default_factory=list)

    @property
    def quest_type(self) -> str:
        return "combat" if self.combat else "exploration"


@dataclass(slots=True)
class Party:
    party_id: str
    name: str
    member_ids: list[str]
    is_formed: bool = True


@dataclass(frozen=True, slots=True)
class ClassSynergyRule:
    rule_id: str
    name: str
    shape: RuleShape
    bonus: SynergyBonus
    classes: tuple[str, ...] = ()
    min_count: int = 0
    groups: tuple[tuple[str, ...], ...] = ()
    unique_classes: int = 0
    quest_type: str | None = None
    priority: int = 0
    description: str = ""


@dataclass(frozen=True, slots=True)
class SynergyArchetype:
    kind: ArchetypeKind
    name: str
    categories: tuple[PassiveCategory, ...] = ()
    bonus: BonusVector = field(default_factory=BonusVector)

    @property
    def primary(self) -> PassiveCategory | None:
        return self.categories[0] if self.categories else None

    @property
    def secondary(self) -> PassiveCategory | None:
        return self.categories[1] if len(self.categories) > 1 else None


@dataclass(slots=True)
class SynergyReport:
    active_rules: list[ClassSynergyRule]
    class_bonus: SynergyBonus
    archetype: SynergyArchetype
    passive_bonus: SynergyBonus
    combined: SynergyBonus


@dataclass(slots=True)
class HeroStatLine:
    hero_id: str
    primary: int
    secondaries: dict[str, int]
    luck: int
    injury_penalty: float


@dataclass(slots=True)
class PartyStatSummary:
    party_size: int
    primary_stat: str
    primary_total: int
    primary_average: float
    secondary_totals: dict[str, int]
    secondary_averages: dict[str, float]
    luck_total: int
    luck_average: float
    per_hero: list[HeroStatLine]


@dataclass(slots=True)
class ChanceBreakdown:
    party_size: int
    rank_ratio: float
    base: float
    rank_bonus: float
    primary_bonus: float
    secondary_bonus: float
    luck_bonus: float
    synergy_bonus: float
    affinity_bonus: float
    party_trait_bonus: float
    raw: float
    final: float
    stats: PartyStatSummary | None = None
    synergy: SynergyReport | None = None
    party_traits: BonusVector = field(default_factory=BonusVector)


@dataclass(slots=True)
class HeroInjury:
    hero_id: str
    severity: InjuryState
    averted_death: bool = False
    resulting_state: InjuryState = InjuryState.NONE


@dataclass(slots=True)
class CombatReport:
    success: bool
    rounds: int
    alive: dict[str, bool]
    mvp_hero_id: str | None = None
    mvp_damage: int = 0
    summary: str = ""
    log_ref: str | None = None


@dataclass(slots=True)
class OutcomeResult:
    quest_id: str
    success: bool
    success_chance: float
    roll: float | None
    gold_reward: int
    xp_reward: int
    bonus_rewards: list[RewardDrop] = field(default_factory=list)
    hero_deaths: list[str] = field(default_factory=list)
    hero_injuries: list[HeroInjury] = field(default_factory=list)
    combat: CombatReport | None = None
    combat_log_ref: str | None = None
    notes: list[str] = field(default_factory=list)


@dataclass(slots=True)
class FloorOutcome:
    floor_index: int
    success: bool
    success_chance: float
    fatigue_multiplier: float
    death_risk: float
    outcome: OutcomeResult


@dataclass(slots=True)
class DungeonRunState:
    run_id: str
    quest_id: str
    floor_count: int
    surviving_hero_ids: list[str]
    phase: DungeonPhase = DungeonPhase.NOT_STARTED
    current_floor: int = 0
    floors_cleared: list[FloorOutcome] = field(default_factory=list)
    failed_floor: FloorOutcome | None = None
    cumulative_fatigue: float = 0.0
    has_retreated: bool = False
    total_gold: int = 0
    total_xp: int = 0
    rewards: list[RewardDrop] = field(default_factory=list)
    fallen_hero_ids: list[str] = field(default_factory=list)
    completion_bonus_gold: int = 0
    completion_bonus_xp: int = 0

    @property
    def is_finished(self) -> bool:
        if self.phase in {DungeonPhase.FLOOR_FAILED, DungeonPhase.RETREATED, DungeonPhase.COMPLETED}:
            return True
        return not self.surviving_hero_ids


class EquipmentProvider(Protocol):
    def get_equip_bonus(self, hero: Hero, stat: str) -> float: ...


class PartyRegistry(Protocol):
    def find_party_by_members(self, heroes: Sequence[Hero]) -> Party | None: ...


class PartyTraitProvider(Protocol):
    def get_quest_bonuses(self, party: Party, quest: Quest) -> BonusVector: ...


class CombatSimulator(Protocol):
    def run_combat(self, quest: Quest, heroes: Sequence[Hero], random_source: RandomSource) -> CombatReport | None: ...


@dataclass(slots=True)
class NarrativeEvent:
    event_id: str
    time: datetime
    scope: str
    event_type: str
    actors: list[str]
    claims: list[str]
    evidence_handles: list[str]
    severity: str


@dataclass(slots=True)
class ValidationIssue:
    code: str
    severity: str
    field_path: str
    entity_id: str
    message: str


@dataclass(slots=True)
class ValidationResult:
    ok: bool
    issues: list[ValidationIssue]


class ValidationError(ValueError):
    def __init__(self, issues: list[ValidationIssue]) -> None:
        message = "; ".join(f"{i.code}:{i.entity_id}:{i.message}" for i in issues)
        super().__init__(message)
        self.issues = issues


@dataclass(slots=True)
class ResourceManifest:
    resource_type: str
    schema_version: str
    resource_version: str
    generated_at: str
    checksum: str


@dataclass(slots=True)
class ForensicArtifact:
    artifact_id: str
    timestamp: datetime
    engine_scope: str
    error_code: str
    message: str
    state_snapshot: Mapping[str, Any]
    context: Mapping[str, Any]
    identifiers: Mapping[str, str]
    causal_fragment: Sequence[str]


@dataclass(slots=True)
class ContractAuditCheck:
    check_id: str
    description: str
    passed: bool
    evidence: str


@dataclass(slots=True)
class ContractAuditReport:
    report_id: str
    generated_at: datetime
    scope: str
    checks: list[ContractAuditCheck]

    @property
    def passed(self) -> bool:
        return all(check.passed for check in self.checks)


class CalibrationStatProfile(str, Enum):
    RANK_MINIMUM = "rank_minimum"
    RANK_EXPECTED = "rank_expected"
    SPREAD = "spread"


@dataclass(slots=True)
class TuningProfile:
    profile_id: str
    description: str
    weight_multipliers: dict[str, float] = field(default_factory=dict)
    death_chance_multiplier: float = 1.0


@dataclass(slots=True)
class CalibrationRunRequest:
    quest_rank: Rank
    party_rank: Rank
    sample_count: int
    party_size: int = 4
    stat_profile: CalibrationStatProfile = CalibrationStatProfile.RANK_EXPECTED
    can_kill: bool = False
    tuning_profile_id: str = "neutral"
    seed: int | None = None


@dataclass(slots=True)
class CalibrationRunResult:
    run_id: str
    quest_rank: Rank
    party_rank: Rank
    party_size: int
    sample_count: int
    stat_profile: CalibrationStatProfile
    tuning_profile_id: str
    mean_success_chance: float
    success_rate: float
    death_rate: float
    injury_rate: float
    mean_gold: float
    injury_distribution: dict[str, int]
    seed: int | None
