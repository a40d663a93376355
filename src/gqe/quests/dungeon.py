from __future__ import annotations

import math
from dataclasses import replace
from typing import Callable, Sequence

from gqe.contracts import (
    DungeonPhase,
    DungeonRunState,
    FloorOutcome,
    Hero,
    Quest,
    RandomSource,
    RewardDrop,
)
from gqe.core import EngineIntegrityError, integrity_error, make_id
from gqe.quests.capabilities import Capabilities
from gqe.quests.chance import SuccessChanceCalculator
from gqe.quests.config import DungeonRules, EngineConfig
from gqe.quests.outcome import OutcomeResolver


def fatigue_multiplier(floor_index: int, rules: DungeonRules) -> float:
    multiplier = 1.0 - (floor_index - 1) * rules.fatigue_per_floor
    return max(rules.min_fatigue_multiplier, multiplier)


def floor_death_risk(floor_index: int, rules: DungeonRules) -> float:
    if floor_index < rules.death_risk_start_floor:
        return 0.0
    table = rules.floor_death_chances
    if floor_index in table:
        return float(table[floor_index])
    reached = [floor for floor in table if floor <= floor_index]
    if not reached:
        return 0.0
    return float(table[max(reached)])


def floor_quest(quest: Quest, floor_index: int, rules: DungeonRules) -> Quest:
    """Per-floor view of a dungeon quest with its share of rewards and risk."""
    floors = max(1, quest.floor_count)
    share = (1.0 + (floor_index - 1) * rules.floor_reward_growth) / floors
    risk = floor_death_risk(floor_index, rules)
    return replace(
        quest,
        quest_id=f"{quest.quest_id}#F{floor_index}",
        reward=math.floor(quest.reward * share),
        xp_reward=math.floor(quest.xp_reward * share),
        can_kill=risk > 0.0,
        injury_only=risk <= 0.0,
        death_chance=risk,
    )


class DungeonFloorStateMachine:
    """Steps one dungeon run floor by floor.

    Fatigue and death risk escalate per floor; the party may retreat after a
    cleared floor and keep what it earned. A failed floor ends the run.
    """

    def __init__(
        self,
        quest: Quest,
        heroes: Sequence[Hero],
        *,
        resolver: OutcomeResolver,
        calculator: SuccessChanceCalculator,
        config_provider: Callable[[], EngineConfig],
        capabilities: Capabilities,
        run_id: str | None = None,
    ) -> None:
        self._quest = quest
        self._heroes = {hero.hero_id: hero for hero in heroes}
        self._resolver = resolver
        self._calculator = calculator
        self._config_provider = config_provider
        self._capabilities = capabilities
        self.state = DungeonRunState(
            run_id=run_id or make_id("dng"),
            quest_id=quest.quest_id,
            floor_count=max(1, quest.floor_count),
            surviving_hero_ids=[hero.hero_id for hero in heroes],
        )

    @property
    def party(self) -> list[Hero]:
        return [self._heroes[hero_id] for hero_id in self.state.surviving_hero_ids]

    def resolve_next_floor(self, random_source: RandomSource, party_luck_bonus: float = 0.0) -> FloorOutcome:
        state = self.state
        if state.is_finished:
            raise self._integrity("DUNGEON_RUN_FINISHED", f"dungeon run already ended in phase '{state.phase.value}'")

        config = self._config_provider()
        rules = config.dungeon
        floor_index = state.current_floor + 1
        state.phase = DungeonPhase.IN_PROGRESS
        state.current_floor = floor_index
        multiplier = fatigue_multiplier(floor_index, rules)
        state.cumulative_fatigue = max(state.cumulative_fatigue, 1.0 - multiplier)

        view = floor_quest(self._quest, floor_index, rules)
        outcome = self._resolver.resolve(
            view,
            self.party,
            config,
            self._capabilities,
            random_source.spawn(f"{state.run_id}:floor:{floor_index}"),
            party_luck_bonus=party_luck_bonus,
            stat_multiplier=multiplier,
            drop_multiplier=rules.drop_multiplier,
        )
        floor = FloorOutcome(
            floor_index=floor_index,
            success=outcome.success,
            success_chance=outcome.success_chance,
            fatigue_multiplier=multiplier,
            death_risk=view.death_chance,
            outcome=outcome,
        )

        state.total_gold += outcome.gold_reward
        state.total_xp += outcome.xp_reward
        state.rewards.extend(outcome.bonus_rewards)
        fallen = set(outcome.hero_deaths)
        state.fallen_hero_ids.extend(hero_id for hero_id in state.surviving_hero_ids if hero_id in fallen)
        state.surviving_hero_ids = [hero_id for hero_id in state.surviving_hero_ids if hero_id not in fallen]

        if not outcome.success:
            state.failed_floor = floor
            state.phase = DungeonPhase.FLOOR_FAILED
            return floor

        state.floors_cleared.append(floor)
        if floor_index >= state.floor_count:
            self._complete(rules)
        else:
            state.phase = DungeonPhase.FLOOR_CLEARED
        return floor

    def retreat(self) -> DungeonRunState:
        state = self.state
        if state.phase != DungeonPhase.FLOOR_CLEARED or not state.floors_cleared:
            raise self._integrity("DUNGEON_RETREAT_NOT_ALLOWED", "retreat requires at least one cleared floor on an open run")
        state.has_retreated = True
        state.phase = DungeonPhase.RETREATED
        return state

    def floor_success_chance(self, floor_index: int) -> float:
        config = self._config_provider()
        view = floor_quest(self._quest, floor_index, config.dungeon)
        return self._calculator.calculate(
            view, self.party, config, self._capabilities, fatigue_multiplier(floor_index, config.dungeon)
        )

    def _complete(self, rules: DungeonRules) -> None:
        state = self.state
        cleared_gold = sum(floor.outcome.gold_reward for floor in state.floors_cleared)
        cleared_xp = sum(floor.outcome.xp_reward for floor in state.floors_cleared)
        state.completion_bonus_gold = math.floor(cleared_gold * rules.completion_bonus_pct)
        state.completion_bonus_xp = math.floor(cleared_xp * rules.completion_bonus_pct)
        state.total_gold += state.completion_bonus_gold
        state.total_xp += state.completion_bonus_xp
        state.phase = DungeonPhase.COMPLETED

    def _integrity(self, code: str, message: str) -> EngineIntegrityError:
        state = self.state
        return integrity_error(
            "dungeon",
            code,
            message,
            state_snapshot={
                "phase": state.phase.value,
                "current_floor": state.current_floor,
                "floors_cleared": len(state.floors_cleared),
                "surviving_hero_ids": list(state.surviving_hero_ids),
            },
            context={"floor_count": state.floor_count, "has_retreated": state.has_retreated},
            identifiers={"run_id": state.run_id, "quest_id": state.quest_id},
            causal_fragment=[f"floor:{floor.floor_index}:clear" for floor in state.floors_cleared],
        )


def roll_floor_rewards(
    resolver: OutcomeResolver,
    calculator: SuccessChanceCalculator,
    quest: Quest,
    heroes: Sequence[Hero],
    floor_index: int,
    config: EngineConfig,
    capabilities: Capabilities,
    random_source: RandomSource,
    party_luck_bonus: float = 0.0,
) -> list[RewardDrop]:
    rules = config.dungeon
    view = floor_quest(quest, floor_index, rules)
    breakdown = calculator.breakdown(view, heroes, config, capabilities, fatigue_multiplier(floor_index, rules))
    return resolver.roll_bonus_rewards(view, breakdown, config, random_source, party_luck_bonus, rules.drop_multiplier)
