from __future__ import annotations

from typing import Sequence

from gqe.contracts import ChanceBreakdown, EffectKind, Hero, Quest
from gqe.quests.capabilities import Capabilities
from gqe.quests.config import CHANCE_CEILING, CHANCE_FLOOR, EngineConfig
from gqe.quests.stats import StatAggregator
from gqe.quests.synergy import SynergyResolver


def rank_base_chance(rank_ratio: float) -> float:
    if rank_ratio >= 1.0:
        return min(0.60 + (rank_ratio - 1.0) * 0.35, CHANCE_CEILING)
    return 0.15 + rank_ratio * 0.45


def clamp_chance(value: float) -> float:
    return max(CHANCE_FLOOR, min(CHANCE_CEILING, value))


class SuccessChanceCalculator:
    """Combines rank, stat, luck, synergy, affinity and party-trait contributors into one probability.

    Every contributor is additive and reported in the breakdown; only the final
    sum is clamped. The calculator holds no state between calls.
    """

    def __init__(self, stats: StatAggregator, synergy: SynergyResolver) -> None:
        self._stats = stats
        self._synergy = synergy

    def calculate(
        self,
        quest: Quest,
        heroes: Sequence[Hero],
        config: EngineConfig,
        capabilities: Capabilities,
        stat_multiplier: float = 1.0,
    ) -> float:
        return self.breakdown(quest, heroes, config, capabilities, stat_multiplier).final

    def breakdown(
        self,
        quest: Quest,
        heroes: Sequence[Hero],
        config: EngineConfig,
        capabilities: Capabilities,
        stat_multiplier: float = 1.0,
    ) -> ChanceBreakdown:
        if not heroes:
            return ChanceBreakdown(
                party_size=0,
                rank_ratio=0.0,
                base=0.0,
                rank_bonus=0.0,
                primary_bonus=0.0,
                secondary_bonus=0.0,
                luck_bonus=0.0,
                synergy_bonus=0.0,
                affinity_bonus=0.0,
                party_trait_bonus=0.0,
                raw=0.0,
                final=0.0,
            )

        weights = config.weights
        rank_profile = config.rank_profile(quest.rank)
        expected = rank_profile.expected_stat

        avg_rank = sum(hero.rank.ordinal for hero in heroes) / len(heroes)
        rank_ratio = avg_rank / quest.rank.ordinal
        base = rank_base_chance(rank_ratio)

        summary = self._stats.aggregate(heroes, quest.required_stat, config, quest.secondary_stats, stat_multiplier)
        primary_bonus = (summary.primary_average - expected) * weights.primary_weight

        secondary_bonus = 0.0
        for secondary in quest.secondary_stats:
            if secondary.stat not in summary.secondary_averages:
                continue
            expectation = weights.secondary_expectation_factor * expected
            secondary_bonus += (
                (summary.secondary_averages[secondary.stat] - expectation) * weights.secondary_weight * secondary.weight
            )

        luck_bonus = (summary.luck_average - weights.baseline_luck) * weights.luck_weight

        report = self._synergy.resolve(heroes, quest, config)
        synergy_bonus = report.combined.vector.get(EffectKind.SUCCESS) + report.combined.stat_bonus(quest.required_stat)

        affinity_bonus = self._affinity(quest, heroes, config)

        party_traits = capabilities.party_bonuses(heroes, quest)
        party_trait_bonus = party_traits.get(EffectKind.SUCCESS)

        raw = (
            base
            + rank_profile.rank_bonus
            + primary_bonus
            + secondary_bonus
            + luck_bonus
            + synergy_bonus
            + affinity_bonus
            + party_trait_bonus
        )
        return ChanceBreakdown(
            party_size=len(heroes),
            rank_ratio=rank_ratio,
            base=base,
            rank_bonus=rank_profile.rank_bonus,
            primary_bonus=primary_bonus,
            secondary_bonus=secondary_bonus,
            luck_bonus=luck_bonus,
            synergy_bonus=synergy_bonus,
            affinity_bonus=affinity_bonus,
            party_trait_bonus=party_trait_bonus,
            raw=raw,
            final=clamp_chance(raw),
            stats=summary,
            synergy=report,
            party_traits=party_traits,
        )

    def _affinity(self, quest: Quest, heroes: Sequence[Hero], config: EngineConfig) -> float:
        quest_affinity = 0.0
        stat_affinity = 0.0
        for hero in heroes:
            profile = config.class_profile(hero.hero_class)
            if profile is None:
                continue
            quest_affinity += profile.affinity_for(quest.quest_type)
            stat_affinity += float(profile.stat_affinity.get(quest.required_stat, 0.0))
        return (quest_affinity + stat_affinity) / len(heroes)
