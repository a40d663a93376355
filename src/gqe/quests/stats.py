from __future__ import annotations

import math
from typing import Sequence

from gqe.contracts import EquipmentProvider, Hero, HeroStatLine, PartyStatSummary, SecondaryStat, Stat
from gqe.quests.config import EngineConfig

_KNOWN_STATS = frozenset(stat.value for stat in Stat)


class StatAggregator:
    """Party stat totals after injury penalty, fatigue and equipment."""

    def __init__(self, equipment: EquipmentProvider) -> None:
        self._equipment = equipment

    def effective_stat(
        self,
        hero: Hero,
        stat: str,
        config: EngineConfig,
        stat_multiplier: float = 1.0,
    ) -> int:
        key = _stat_key(stat)
        base = int(hero.stats.get(key, 0))
        penalty = config.injury_penalty(hero.injury_state)
        scaled = math.floor(base * penalty * stat_multiplier)
        return int(scaled + self._equipment.get_equip_bonus(hero, key))

    def aggregate(
        self,
        heroes: Sequence[Hero],
        required_stat: str,
        config: EngineConfig,
        secondary_stats: Sequence[SecondaryStat] = (),
        stat_multiplier: float = 1.0,
    ) -> PartyStatSummary:
        primary = _stat_key(required_stat)
        secondaries = [_stat_key(s.stat) for s in secondary_stats if _stat_key(s.stat) in _KNOWN_STATS]
        per_hero: list[HeroStatLine] = []
        for hero in heroes:
            per_hero.append(
                HeroStatLine(
                    hero_id=hero.hero_id,
                    primary=self.effective_stat(hero, primary, config, stat_multiplier),
                    secondaries={s: self.effective_stat(hero, s, config, stat_multiplier) for s in secondaries},
                    luck=self.effective_stat(hero, Stat.LUCK.value, config, stat_multiplier),
                    injury_penalty=config.injury_penalty(hero.injury_state),
                )
            )

        size = len(per_hero)
        primary_total = sum(line.primary for line in per_hero)
        luck_total = sum(line.luck for line in per_hero)
        secondary_totals = {s: sum(line.secondaries[s] for line in per_hero) for s in secondaries}
        return PartyStatSummary(
            party_size=size,
            primary_stat=primary,
            primary_total=primary_total,
            primary_average=(primary_total / size) if size else 0.0,
            secondary_totals=secondary_totals,
            secondary_averages={s: (total / size) if size else 0.0 for s, total in secondary_totals.items()},
            luck_total=luck_total,
            luck_average=(luck_total / size) if size else 0.0,
            per_hero=per_hero,
        )


def _stat_key(stat: Stat | str) -> str:
    return stat.value if isinstance(stat, Stat) else str(stat)
