from __future__ import annotations

from typing import Sequence

from gqe.contracts import RandomSource, RewardDrop, RewardEntry
from gqe.quests.config import RewardRules


def luck_multiplier(
    average_luck: float,
    rules: RewardRules,
    *,
    luck_bonus: float = 0.0,
    material_bonus: float = 0.0,
    drop_bonus: float = 0.0,
    drop_multiplier: float = 1.0,
) -> float:
    """Party luck scaling for drops, clamped before passive and dungeon inflation."""
    base = 1.0 + (average_luck - rules.baseline_luck) * rules.luck_scale + luck_bonus
    base = max(rules.min_luck_multiplier, min(rules.max_luck_multiplier, base))
    return base * (1.0 + material_bonus) * (1.0 + drop_bonus) * drop_multiplier


def effective_drop_chance(entry: RewardEntry, multiplier: float, cap: float) -> float:
    return min(cap, max(0.0, entry.drop_chance * multiplier))


class RewardRoller:
    """Independent per-entry drop rolls; one uniform draw per possible reward."""

    def roll(
        self,
        possible_rewards: Sequence[RewardEntry],
        multiplier: float,
        random_source: RandomSource,
        rules: RewardRules,
    ) -> list[RewardDrop]:
        drops: list[RewardDrop] = []
        for entry in possible_rewards:
            chance = effective_drop_chance(entry, multiplier, rules.drop_chance_cap)
            roll = random_source.rand()
            if chance > 0.0 and roll <= chance:
                drops.append(RewardDrop(reward_id=entry.reward_id, amount=entry.amount, kind=entry.kind, drop_chance=chance))
        return drops
