from __future__ import annotations

from typing import Mapping, Sequence

from gqe.contracts import Hero, InjuryState, Role
from gqe.quests.config import EngineConfig


def reduce_severity(state: InjuryState, tiers: int = 1) -> InjuryState:
    return InjuryState.from_severity(state.severity - tiers)


def worse_of(first: InjuryState, second: InjuryState) -> InjuryState:
    return first if first.severity >= second.severity else second


def apply_injury(hero: Hero, state: InjuryState) -> InjuryState:
    """Raise the hero's injury state; a milder injury never replaces a worse one."""
    hero.injury_state = worse_of(hero.injury_state, state)
    return hero.injury_state


def heal_injury(hero: Hero) -> InjuryState:
    hero.injury_state = reduce_severity(hero.injury_state)
    return hero.injury_state


def can_quest(hero: Hero) -> bool:
    return hero.injury_state != InjuryState.WOUNDED


def rest_multiplier(hero: Hero, config: EngineConfig) -> float:
    if hero.injury_state == InjuryState.NONE:
        return 0.0
    profile = config.injuries.get(hero.injury_state)
    return profile.rest_multiplier if profile is not None else 1.0


def mitigate_party_injuries(
    heroes: Sequence[Hero],
    base: Mapping[str, InjuryState],
    config: EngineConfig,
) -> dict[str, InjuryState]:
    """Role-adjust the injuries a party took on a failed quest.

    A healer mends every member by one tier. A tank takes the worst hit for the
    party: non-tank members carrying the worst base tier drop one further tier
    and the tank ends at that worst base tier. Every member at the worst tier is
    shielded, not only the first, so tank plus healer on a wounded base leaves
    the rest of the party fatigued.
    """
    severities = {hero.hero_id: base.get(hero.hero_id, InjuryState.NONE) for hero in heroes}
    tank_ids = [hero.hero_id for hero in heroes if config.has_role(hero.hero_class, Role.TANK)]
    has_healer = any(config.has_role(hero.hero_class, Role.HEALER) for hero in heroes)
    other_ids = [hero.hero_id for hero in heroes if hero.hero_id not in tank_ids]
    worst = max((severities[hero_id] for hero_id in other_ids), key=lambda s: s.severity, default=InjuryState.NONE)
    absorbed = [hero_id for hero_id in other_ids if severities[hero_id] == worst]

    if has_healer:
        severities = {hero_id: reduce_severity(state) for hero_id, state in severities.items()}

    if tank_ids and worst != InjuryState.NONE:
        for hero_id in absorbed:
            severities[hero_id] = reduce_severity(severities[hero_id])
        severities[tank_ids[0]] = worse_of(severities[tank_ids[0]], worst)
    return severities
