from __future__ import annotations

from gqe.contracts import (
    CalibrationStatProfile,
    Hero,
    Passive,
    PassiveCategory,
    PassiveEffect,
    Quest,
    RandomSource,
    Rank,
    RewardEntry,
    Stat,
)
from gqe.quests.config import EngineConfig

DEFAULT_ROSTER_CLASSES = ("Knight", "Mage", "Archer", "Priest", "Rogue", "Ranger")

CATEGORY_SAMPLE_EFFECTS: dict[PassiveCategory, PassiveEffect] = {
    PassiveCategory.OFFENSE: PassiveEffect(effect_type="party_size_bonus", value=0.0),
    PassiveCategory.DEFENSE: PassiveEffect(effect_type="party_injury_reduction", value=0.0),
    PassiveCategory.WEALTH: PassiveEffect(effect_type="gold_bonus", value=0.0),
    PassiveCategory.SPEED: PassiveEffect(effect_type="travel_time_reduction", value=0.0),
}


def sample_passive(category: PassiveCategory, value: float = 0.0) -> Passive:
    template = CATEGORY_SAMPLE_EFFECTS[category]
    return Passive(
        passive_id=f"sample_{category.value.lower()}",
        name=f"Sample {category.value.title()}",
        category=category,
        effect=PassiveEffect(effect_type=template.effect_type, value=value),
    )


def sample_hero(
    hero_id: str,
    rank: Rank,
    stat_value: int,
    hero_class: str = "Ranger",
    level: int = 1,
    luck: int | None = None,
) -> Hero:
    stats = {stat.value: stat_value for stat in Stat}
    if luck is not None:
        stats[Stat.LUCK.value] = luck
    return Hero(hero_id=hero_id, name=hero_id.title(), rank=rank, level=level, hero_class=hero_class, stats=stats)


def sample_party(
    rank: Rank,
    size: int,
    config: EngineConfig,
    profile: CalibrationStatProfile = CalibrationStatProfile.RANK_EXPECTED,
    random_source: RandomSource | None = None,
    classes: tuple[str, ...] = DEFAULT_ROSTER_CLASSES,
) -> list[Hero]:
    rank_profile = config.rank_profile(rank)
    heroes: list[Hero] = []
    for idx in range(size):
        if profile == CalibrationStatProfile.RANK_MINIMUM:
            value = rank_profile.minimum_stat
        elif profile == CalibrationStatProfile.SPREAD and random_source is not None:
            value = random_source.randint(rank_profile.minimum_stat, rank_profile.expected_stat + 3)
        else:
            value = rank_profile.expected_stat
        heroes.append(sample_hero(f"h{idx + 1}", rank, value, hero_class=classes[idx % len(classes)], level=1 + rank.ordinal * 3))
    return heroes


def sample_quest(
    rank: Rank,
    required_stat: str = Stat.STR.value,
    *,
    can_kill: bool = False,
    death_chance: float = 0.0,
    combat: bool = False,
    floor_count: int = 1,
) -> Quest:
    base_reward = 50 * rank.ordinal
    return Quest(
        quest_id=f"sample_{rank.value}_{required_stat}",
        name=f"{rank.value}-rank errand",
        rank=rank,
        required_stat=required_stat,
        reward=base_reward,
        xp_reward=base_reward // 2,
        combat=combat,
        can_kill=can_kill,
        injury_only=not can_kill,
        death_chance=death_chance,
        is_dungeon=floor_count > 1,
        floor_count=floor_count,
        possible_rewards=[
            RewardEntry(reward_id=f"ore_{rank.value.lower()}", amount=1, drop_chance=0.3),
            RewardEntry(reward_id="coin_pouch", amount=10 * rank.ordinal, drop_chance=0.1, kind="gold"),
        ],
    )
