from __future__ import annotations

from typing import Any, Sequence

from gqe.contracts import (
    BonusVector,
    ChanceBreakdown,
    ClassSynergyRule,
    DungeonPhase,
    DungeonRunState,
    FloorOutcome,
    Hero,
    OutcomeResult,
    Quest,
    RandomSource,
    RewardDrop,
    SynergyArchetype,
    SynergyReport,
    ValidationResult,
)
from gqe.core import EventBus, gameplay_random, stable_id
from gqe.quests.capabilities import Capabilities
from gqe.quests.chance import SuccessChanceCalculator
from gqe.quests.config import EngineConfig
from gqe.quests.dungeon import (
    DungeonFloorStateMachine,
    fatigue_multiplier,
    floor_death_risk,
    floor_quest,
    roll_floor_rewards,
)
from gqe.quests.outcome import OutcomeResolver
from gqe.quests.resources import load_engine_config
from gqe.quests.rewards import RewardRoller
from gqe.quests.stats import StatAggregator
from gqe.quests.synergy import SynergyResolver
from gqe.quests.validation import QuestInputValidator


class QuestEngine:
    """Public entry point: binds tuning and capabilities once, resolves quests on demand."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        capabilities: Capabilities | None = None,
        random_source: RandomSource | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._config = config if config is not None else load_engine_config()
        self._capabilities = capabilities or Capabilities()
        self._random = random_source or gameplay_random()
        self.event_bus = event_bus or EventBus()
        self._stats = StatAggregator(self._capabilities.equipment)
        self._synergy = SynergyResolver()
        self._calculator = SuccessChanceCalculator(self._stats, self._synergy)
        self._resolver = OutcomeResolver(self._calculator, RewardRoller())
        self._validator = QuestInputValidator()

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def capabilities(self) -> Capabilities:
        return self._capabilities

    @property
    def random_source(self) -> RandomSource:
        return self._random

    def reload_config(self, config: EngineConfig) -> EngineConfig:
        previous = self._config
        self._config = config
        self.event_bus.emit(
            "config",
            "config_reloaded",
            claims=[f"from={previous.version}", f"to={config.version}"],
        )
        return previous

    def reload_resources(self, bundle_overrides: dict[str, dict[str, Any]] | None = None) -> EngineConfig:
        # Loading fully before the swap keeps the current config on a bad bundle.
        return self.reload_config(load_engine_config(bundle_overrides))

    def validate_inputs(self, quest: Quest, heroes: Sequence[Hero]) -> ValidationResult:
        return self._validator.validate(quest, heroes)

    def calculate_success_chance(self, quest: Quest, heroes: Sequence[Hero]) -> float:
        return self._calculator.calculate(quest, heroes, self._config, self._capabilities)

    def success_breakdown(self, quest: Quest, heroes: Sequence[Hero]) -> ChanceBreakdown:
        return self._calculator.breakdown(quest, heroes, self._config, self._capabilities)

    def calculate_synergies(self, heroes: Sequence[Hero], quest: Quest | None = None) -> list[ClassSynergyRule]:
        return self._synergy.active_rules(heroes, quest, self._config)

    def synergy_report(self, heroes: Sequence[Hero], quest: Quest | None = None) -> SynergyReport:
        return self._synergy.resolve(heroes, quest, self._config)

    def get_synergy_archetype(self, heroes: Sequence[Hero]) -> SynergyArchetype:
        return self._synergy.classify_archetype(heroes, self._config)

    def get_party_passive_effects(self, heroes: Sequence[Hero]) -> BonusVector:
        _, effects = self._synergy.passive_effects(heroes, self._config)
        return effects.vector

    def resolve(
        self,
        quest: Quest,
        heroes: Sequence[Hero],
        party_luck_bonus: float = 0.0,
        random_source: RandomSource | None = None,
    ) -> OutcomeResult:
        config = self._config
        result = self._resolver.resolve(
            quest,
            heroes,
            config,
            self._capabilities,
            random_source or self._random,
            party_luck_bonus=party_luck_bonus,
        )
        self._publish_outcome("quest", quest, result)
        return result

    def calculate_floor_success_chance(self, quest: Quest, heroes: Sequence[Hero], floor_index: int) -> float:
        config = self._config
        view = floor_quest(quest, floor_index, config.dungeon)
        return self._calculator.calculate(
            view, heroes, config, self._capabilities, fatigue_multiplier(floor_index, config.dungeon)
        )

    def get_floor_fatigue_multiplier(self, floor_index: int) -> float:
        return fatigue_multiplier(floor_index, self._config.dungeon)

    def get_floor_death_risk(self, floor_index: int) -> float:
        return floor_death_risk(floor_index, self._config.dungeon)

    def roll_floor_rewards(
        self,
        quest: Quest,
        heroes: Sequence[Hero],
        floor_index: int,
        random_source: RandomSource | None = None,
        party_luck_bonus: float = 0.0,
    ) -> list[RewardDrop]:
        return roll_floor_rewards(
            self._resolver,
            self._calculator,
            quest,
            heroes,
            floor_index,
            self._config,
            self._capabilities,
            random_source or self._random,
            party_luck_bonus,
        )

    def start_dungeon(self, quest: Quest, heroes: Sequence[Hero]) -> DungeonRun:
        # Run ids come from the engine stream; floor substreams are keyed on them.
        run_id = stable_id("dng", quest.quest_id, *(hero.hero_id for hero in heroes), self._random.randint(0, 2**31 - 1))
        machine = DungeonFloorStateMachine(
            quest,
            heroes,
            resolver=self._resolver,
            calculator=self._calculator,
            config_provider=lambda: self._config,
            capabilities=self._capabilities,
            run_id=run_id,
        )
        return DungeonRun(self, quest, machine)

    def _publish_outcome(self, scope: str, quest: Quest, result: OutcomeResult) -> None:
        bus = self.event_bus
        bus.emit(
            scope,
            "quest_resolved",
            actors=[quest.quest_id],
            claims=[
                f"success={result.success}",
                f"chance={result.success_chance:.3f}",
                f"gold={result.gold_reward}",
                f"xp={result.xp_reward}",
            ],
            evidence_handles=[result.combat_log_ref] if result.combat_log_ref else [],
        )
        for hero_id in result.hero_deaths:
            bus.emit(scope, "hero_fell", actors=[hero_id, quest.quest_id], severity="critical")
        for injury in result.hero_injuries:
            if injury.averted_death:
                bus.emit(
                    scope,
                    "death_averted",
                    actors=[injury.hero_id, quest.quest_id],
                    claims=[f"severity={injury.severity.value}"],
                    severity="warning",
                )


class DungeonRun:
    """Engine-bound handle on one dungeon run; publishes floor events as it advances."""

    def __init__(self, engine: QuestEngine, quest: Quest, machine: DungeonFloorStateMachine) -> None:
        self._engine = engine
        self._quest = quest
        self.machine = machine

    @property
    def state(self) -> DungeonRunState:
        return self.machine.state

    def advance(self, random_source: RandomSource | None = None, party_luck_bonus: float = 0.0) -> FloorOutcome:
        floor = self.machine.resolve_next_floor(random_source or self._engine.random_source, party_luck_bonus)
        bus = self._engine.event_bus
        bus.emit(
            "dungeon",
            "floor_resolved",
            actors=[self._quest.quest_id],
            claims=[
                f"floor={floor.floor_index}",
                f"success={floor.success}",
                f"fatigue={floor.fatigue_multiplier:.2f}",
                f"death_risk={floor.death_risk:.2f}",
            ],
        )
        for hero_id in floor.outcome.hero_deaths:
            bus.emit("dungeon", "hero_fell", actors=[hero_id, self._quest.quest_id], severity="critical")
        if self.state.phase == DungeonPhase.COMPLETED:
            bus.emit(
                "dungeon",
                "dungeon_completed",
                actors=[self._quest.quest_id],
                claims=[f"bonus_gold={self.state.completion_bonus_gold}", f"bonus_xp={self.state.completion_bonus_xp}"],
            )
        return floor

    def retreat(self) -> DungeonRunState:
        state = self.machine.retreat()
        self._engine.event_bus.emit(
            "dungeon",
            "dungeon_retreat",
            actors=[self._quest.quest_id],
            claims=[f"floors_cleared={len(state.floors_cleared)}", f"gold={state.total_gold}"],
        )
        return state

    def floor_success_chance(self, floor_index: int | None = None) -> float:
        return self.machine.floor_success_chance(floor_index or self.state.current_floor + 1)
