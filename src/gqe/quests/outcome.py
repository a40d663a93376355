from __future__ import annotations

import math
from typing import Sequence

from gqe.contracts import (
    BonusVector,
    ChanceBreakdown,
    CombatReport,
    EffectKind,
    Hero,
    HeroInjury,
    InjuryState,
    OutcomeResult,
    Quest,
    RandomSource,
    RewardDrop,
    Role,
    SynergyBonus,
)
from gqe.quests.capabilities import Capabilities
from gqe.quests.chance import SuccessChanceCalculator
from gqe.quests.config import EngineConfig
from gqe.quests.injury import apply_injury, mitigate_party_injuries, reduce_severity
from gqe.quests.rewards import RewardRoller, luck_multiplier
from gqe.quests.synergy import SHADOW_STEP, passive_value


class OutcomeResolver:
    """Rolls a quest outcome and writes the resulting injuries onto the heroes."""

    def __init__(self, calculator: SuccessChanceCalculator, rewards: RewardRoller) -> None:
        self._calculator = calculator
        self._rewards = rewards

    def resolve(
        self,
        quest: Quest,
        heroes: Sequence[Hero],
        config: EngineConfig,
        capabilities: Capabilities,
        random_source: RandomSource,
        *,
        party_luck_bonus: float = 0.0,
        stat_multiplier: float = 1.0,
        drop_multiplier: float = 1.0,
    ) -> OutcomeResult:
        breakdown = self._calculator.breakdown(quest, heroes, config, capabilities, stat_multiplier)
        if not heroes:
            return OutcomeResult(
                quest_id=quest.quest_id,
                success=False,
                success_chance=0.0,
                roll=None,
                gold_reward=0,
                xp_reward=0,
                notes=["empty_party"],
            )

        if quest.combat:
            report = capabilities.combat.run_combat(quest, heroes, random_source)
            if report is not None:
                return self._resolve_combat(
                    quest, heroes, config, breakdown, report, random_source, party_luck_bonus, drop_multiplier
                )

        roll = random_source.rand()
        success = roll <= breakdown.final
        result = OutcomeResult(
            quest_id=quest.quest_id,
            success=success,
            success_chance=breakdown.final,
            roll=roll,
            gold_reward=0,
            xp_reward=0,
        )
        if success:
            self._apply_success(result, quest, heroes, config, breakdown, random_source, party_luck_bonus, drop_multiplier)
            self._apply_success_fatigue(result, heroes, config)
            return result

        self._apply_failure_rewards(result, quest, config)
        effects = self._effects(breakdown)
        if quest.can_kill:
            self._resolve_death_risk(result, quest, heroes, config, effects, breakdown.party_traits, random_source)
        elif quest.injury_only:
            self._resolve_injury_only(result, heroes, config, effects, breakdown.party_traits, random_source)
        return result

    def bonus_reward_multiplier(
        self,
        breakdown: ChanceBreakdown,
        config: EngineConfig,
        party_luck_bonus: float = 0.0,
        drop_multiplier: float = 1.0,
    ) -> float:
        effects = self._effects(breakdown).vector
        traits = breakdown.party_traits
        average_luck = breakdown.stats.luck_average if breakdown.stats is not None else config.rewards.baseline_luck
        return luck_multiplier(
            average_luck,
            config.rewards,
            luck_bonus=party_luck_bonus + effects.get(EffectKind.LUCK) + traits.get(EffectKind.LUCK),
            material_bonus=effects.get(EffectKind.MATERIAL) + traits.get(EffectKind.MATERIAL),
            drop_bonus=effects.get(EffectKind.DROP) + traits.get(EffectKind.DROP),
            drop_multiplier=drop_multiplier,
        )

    def roll_bonus_rewards(
        self,
        quest: Quest,
        breakdown: ChanceBreakdown,
        config: EngineConfig,
        random_source: RandomSource,
        party_luck_bonus: float = 0.0,
        drop_multiplier: float = 1.0,
    ) -> list[RewardDrop]:
        multiplier = self.bonus_reward_multiplier(breakdown, config, party_luck_bonus, drop_multiplier)
        return self._rewards.roll(quest.possible_rewards, multiplier, random_source, config.rewards)

    def _apply_success(
        self,
        result: OutcomeResult,
        quest: Quest,
        heroes: Sequence[Hero],
        config: EngineConfig,
        breakdown: ChanceBreakdown,
        random_source: RandomSource,
        party_luck_bonus: float,
        drop_multiplier: float,
    ) -> None:
        effects = self._effects(breakdown).vector
        traits = breakdown.party_traits
        gold_bonus = effects.get(EffectKind.GOLD) + traits.get(EffectKind.GOLD)
        xp_bonus = effects.get(EffectKind.XP) + traits.get(EffectKind.XP)
        drops = self.roll_bonus_rewards(quest, breakdown, config, random_source, party_luck_bonus, drop_multiplier)
        result.gold_reward = math.floor(quest.reward * (1.0 + gold_bonus))
        result.xp_reward = math.floor(quest.xp_reward * (1.0 + xp_bonus))
        for drop in drops:
            if drop.kind == "gold":
                result.gold_reward += drop.amount
            else:
                result.bonus_rewards.append(drop)

    def _apply_failure_rewards(self, result: OutcomeResult, quest: Quest, config: EngineConfig) -> None:
        result.gold_reward = math.floor(quest.reward * config.failure.failure_gold_fraction)
        result.xp_reward = math.floor(quest.xp_reward * config.failure.failure_xp_fraction)

    def _apply_success_fatigue(self, result: OutcomeResult, heroes: Sequence[Hero], config: EngineConfig) -> None:
        severity = config.failure.success_severity
        if severity == InjuryState.NONE:
            return
        fallen = set(result.hero_deaths)
        self._write_injuries(
            result,
            heroes,
            {hero.hero_id: severity for hero in heroes if hero.hero_id not in fallen},
            averted=set(),
        )

    def _resolve_death_risk(
        self,
        result: OutcomeResult,
        quest: Quest,
        heroes: Sequence[Hero],
        config: EngineConfig,
        effects: SynergyBonus,
        traits: BonusVector,
        random_source: RandomSource,
    ) -> None:
        rules = config.failure
        reduction = (
            effects.vector.get(EffectKind.DEATH_REDUCTION)
            + effects.vector.get(EffectKind.SURVIVAL)
            + traits.get(EffectKind.DEATH_REDUCTION)
            + traits.get(EffectKind.SURVIVAL)
        )
        death_chance = max(0.0, quest.death_chance * (1.0 - max(0.0, min(1.0, reduction))))
        has_tank = any(config.has_role(hero.hero_class, Role.TANK) for hero in heroes)
        cleric_guard = quest.cleric_protection and any(config.has_role(hero.hero_class, Role.CLERIC) for hero in heroes)
        if cleric_guard:
            result.notes.append("cleric_protection")
        elif effects.death_protection:
            result.notes.append("synergy_death_protection")

        severities: dict[str, InjuryState] = {}
        averted: set[str] = set()
        for hero in heroes:
            if cleric_guard or effects.death_protection:
                severities[hero.hero_id] = rules.death_risk_severity
                continue
            chance = death_chance
            if has_tank and not config.has_role(hero.hero_class, Role.TANK):
                chance *= 1.0 - rules.tank_death_reduction
            if random_source.rand() >= chance:
                severities[hero.hero_id] = rules.death_risk_severity
                continue
            escape = self._escape_death(hero, config, random_source)
            if escape is None:
                result.hero_deaths.append(hero.hero_id)
                continue
            result.notes.append(f"{escape}:{hero.hero_id}")
            averted.add(hero.hero_id)
            severities[hero.hero_id] = rules.death_risk_severity
        self._write_injuries(result, heroes, severities, averted)

    def _resolve_injury_only(
        self,
        result: OutcomeResult,
        heroes: Sequence[Hero],
        config: EngineConfig,
        effects: SynergyBonus,
        traits: BonusVector,
        random_source: RandomSource,
    ) -> None:
        base = {hero.hero_id: config.failure.injury_only_severity for hero in heroes}
        severities = mitigate_party_injuries(heroes, base, config)
        reduction = effects.vector.get(EffectKind.INJURY_REDUCTION) + traits.get(EffectKind.INJURY_REDUCTION)
        if reduction > 0.0:
            for hero in heroes:
                state = severities[hero.hero_id]
                if state != InjuryState.NONE and random_source.rand() < reduction:
                    severities[hero.hero_id] = reduce_severity(state)
        self._write_injuries(result, heroes, severities, averted=set())

    def _resolve_combat(
        self,
        quest: Quest,
        heroes: Sequence[Hero],
        config: EngineConfig,
        breakdown: ChanceBreakdown,
        report: CombatReport,
        random_source: RandomSource,
        party_luck_bonus: float,
        drop_multiplier: float,
    ) -> OutcomeResult:
        result = OutcomeResult(
            quest_id=quest.quest_id,
            success=report.success,
            success_chance=breakdown.final,
            roll=None,
            gold_reward=0,
            xp_reward=0,
            combat=report,
            combat_log_ref=report.log_ref,
        )
        result.hero_deaths = [hero.hero_id for hero in heroes if not report.alive.get(hero.hero_id, True)]
        fallen = set(result.hero_deaths)
        if report.success:
            self._apply_success(result, quest, heroes, config, breakdown, random_source, party_luck_bonus, drop_multiplier)
            self._apply_success_fatigue(result, heroes, config)
            return result
        self._apply_failure_rewards(result, quest, config)
        survivors = {
            hero.hero_id: config.failure.combat_survivor_severity for hero in heroes if hero.hero_id not in fallen
        }
        self._write_injuries(result, heroes, survivors, averted=set())
        return result

    def _escape_death(self, hero: Hero, config: EngineConfig, random_source: RandomSource) -> str | None:
        if config.has_role(hero.hero_class, Role.ESCAPE_ARTIST) and hero.level >= config.failure.escape_artist_min_level:
            return "escape_artist"
        shadow_step = passive_value(hero, SHADOW_STEP)
        if shadow_step > 0.0 and random_source.rand() < shadow_step:
            return SHADOW_STEP
        return None

    def _write_injuries(
        self,
        result: OutcomeResult,
        heroes: Sequence[Hero],
        severities: dict[str, InjuryState],
        averted: set[str],
    ) -> None:
        for hero in heroes:
            severity = severities.get(hero.hero_id, InjuryState.NONE)
            if severity == InjuryState.NONE:
                continue
            resulting = apply_injury(hero, severity)
            result.hero_injuries.append(
                HeroInjury(
                    hero_id=hero.hero_id,
                    severity=severity,
                    averted_death=hero.hero_id in averted,
                    resulting_state=resulting,
                )
            )

    def _effects(self, breakdown: ChanceBreakdown) -> SynergyBonus:
        if breakdown.synergy is None:
            return SynergyBonus()
        return breakdown.synergy.combined
