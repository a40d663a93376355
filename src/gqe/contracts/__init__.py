from .types import (
    ArchetypeKind,
    BonusVector,
    CalibrationRunRequest,
    CalibrationRunResult,
    CalibrationStatProfile,
    ChanceBreakdown,
    ClassSynergyRule,
    CombatReport,
    CombatSimulator,
    ContractAuditCheck,
    ContractAuditReport,
    DungeonPhase,
    DungeonRunState,
    EffectKind,
    EquipmentProvider,
    FloorOutcome,
    ForensicArtifact,
    Hero,
    HeroInjury,
    HeroStatLine,
    InjuryState,
    NarrativeEvent,
    OutcomeResult,
    Party,
    PartyRegistry,
    PartyStatSummary,
    PartyTraitProvider,
    Passive,
    PassiveCategory,
    PassiveEffect,
    Quest,
    RandomSource,
    Rank,
    ResourceManifest,
    RewardDrop,
    RewardEntry,
    Role,
    RuleShape,
    SecondaryStat,
    Stat,
    SynergyArchetype,
    SynergyBonus,
    SynergyReport,
    TuningProfile,
    ValidationError,
    ValidationIssue,
    ValidationResult,
    combine_bonus_vectors,
    combine_synergy_bonuses,
)

__all__ = [
    "ArchetypeKind",
    "BonusVector",
    "CalibrationRunRequest",
    "CalibrationRunResult",
    "CalibrationStatProfile",
    "ChanceBreakdown",
    "ClassSynergyRule",
    "CombatReport",
    "CombatSimulator",
    "ContractAuditCheck",
    "ContractAuditReport",
    "DungeonPhase",
    "DungeonRunState",
    "EffectKind",
    "EquipmentProvider",
    "FloorOutcome",
    "ForensicArtifact",
    "Hero",
    "HeroInjury",
    "HeroStatLine",
    "InjuryState",
    "NarrativeEvent",
    "OutcomeResult",
    "Party",
    "PartyRegistry",
    "PartyStatSummary",
    "PartyTraitProvider",
    "Passive",
    "PassiveCategory",
    "PassiveEffect",
    "Quest",
    "RandomSource",
    "Rank",
    "ResourceManifest",
    "RewardDrop",
    "RewardEntry",
    "Role",
    "RuleShape",
    "SecondaryStat",
    "Stat",
    "SynergyArchetype",
    "SynergyBonus",
    "SynergyReport",
    "TuningProfile",
    "ValidationError",
    "ValidationIssue",
    "ValidationResult",
    "combine_bonus_vectors",
    "combine_synergy_bonuses",
]
