from __future__ import annotations

from gqe.contracts import (
    Hero,
    InjuryState,
    Passive,
    PassiveCategory,
    PassiveEffect,
    Quest,
    Rank,
    RewardEntry,
    Stat,
)
from gqe.core import seeded_random
from gqe.quests import Capabilities, QuestEngine, load_engine_config

# Class id with no tuning profile: no affinity, no roles, no class synergy.
PLAIN_CLASS = "Adventurer"


def make_hero(
    hero_id: str,
    hero_class: str = PLAIN_CLASS,
    rank: Rank = Rank.C,
    stat: int = 7,
    luck: int = 5,
    level: int = 1,
    injury: InjuryState = InjuryState.NONE,
    passive: Passive | None = None,
) -> Hero:
    stats = {s.value: stat for s in Stat}
    stats[Stat.LUCK.value] = luck
    return Hero(
        hero_id=hero_id,
        name=hero_id.title(),
        rank=rank,
        level=level,
        hero_class=hero_class,
        stats=stats,
        injury_state=injury,
        passive=passive,
    )


def make_party(*classes: str, rank: Rank = Rank.C, stat: int = 7, luck: int = 5) -> list[Hero]:
    return [make_hero(f"h{i + 1}", hero_class, rank=rank, stat=stat, luck=luck) for i, hero_class in enumerate(classes)]


def plain_party(size: int, rank: Rank = Rank.C, stat: int = 7, luck: int = 5) -> list[Hero]:
    return make_party(*([PLAIN_CLASS] * size), rank=rank, stat=stat, luck=luck)


def make_quest(rank: Rank = Rank.C, required_stat: str = Stat.STR.value, **overrides) -> Quest:
    fields = {
        "quest_id": f"q_{rank.value.lower()}",
        "name": "Clear the old mill",
        "rank": rank,
        "required_stat": required_stat,
        "reward": 100,
        "xp_reward": 40,
    }
    fields.update(overrides)
    return Quest(**fields)


def make_passive(category: PassiveCategory, effect_type: str, value: float, stat: str | None = None) -> Passive:
    return Passive(
        passive_id=f"{category.value.lower()}_{effect_type}",
        name=effect_type.replace("_", " ").title(),
        category=category,
        effect=PassiveEffect(effect_type=effect_type, value=value, stat=stat),
    )


def ore_drop(chance: float = 0.5, amount: int = 2) -> RewardEntry:
    return RewardEntry(reward_id="iron_ore", amount=amount, drop_chance=chance)


def make_engine(seed: int = 7, capabilities: Capabilities | None = None) -> QuestEngine:
    return QuestEngine(load_engine_config(), capabilities=capabilities, random_source=seeded_random(seed))
