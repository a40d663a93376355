from .calibration import CalibrationService
from .capabilities import (
    Capabilities,
    EarnedPartyTraits,
    InMemoryPartyRegistry,
    NoCombatSimulator,
    NoEquipment,
    NoPartyRegistry,
    NoPartyTraits,
    StaticEquipment,
)
from .chance import SuccessChanceCalculator, clamp_chance, rank_base_chance
from .config import CHANCE_CEILING, CHANCE_FLOOR, EngineConfig, default_engine_config
from .contract_audit import QuestContractAuditor, run_quest_contract_audit
from .dungeon import DungeonFloorStateMachine, fatigue_multiplier, floor_death_risk
from .engine import DungeonRun, QuestEngine
from .resources import TuningResourceLoader, load_engine_config
from .synergy import SynergyResolver
from .validation import QuestInputValidator

__all__ = [
    "CHANCE_CEILING",
    "CHANCE_FLOOR",
    "CalibrationService",
    "Capabilities",
    "DungeonFloorStateMachine",
    "DungeonRun",
    "EarnedPartyTraits",
    "EngineConfig",
    "InMemoryPartyRegistry",
    "NoCombatSimulator",
    "NoEquipment",
    "NoPartyRegistry",
    "NoPartyTraits",
    "QuestContractAuditor",
    "QuestEngine",
    "QuestInputValidator",
    "StaticEquipment",
    "SuccessChanceCalculator",
    "SynergyResolver",
    "TuningResourceLoader",
    "clamp_chance",
    "default_engine_config",
    "fatigue_multiplier",
    "floor_death_risk",
    "load_engine_config",
    "rank_base_chance",
    "run_quest_contract_audit",
]
