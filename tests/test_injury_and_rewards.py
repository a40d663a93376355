from __future__ import annotations

import pytest

from gqe.contracts import InjuryState, RewardEntry
from gqe.core import ReplayRandomSource
from gqe.quests.config import RewardRules
from gqe.quests.injury import (
    apply_injury,
    can_quest,
    heal_injury,
    mitigate_party_injuries,
    reduce_severity,
    rest_multiplier,
)
from gqe.quests.rewards import RewardRoller, effective_drop_chance, luck_multiplier
from tests.helpers import PLAIN_CLASS, make_engine, make_hero, make_party

RULES = RewardRules()


def test_apply_injury_is_monotonic():
    hero = make_hero("h1")
    assert apply_injury(hero, InjuryState.INJURED) == InjuryState.INJURED
    assert apply_injury(hero, InjuryState.FATIGUED) == InjuryState.INJURED
    assert apply_injury(hero, InjuryState.WOUNDED) == InjuryState.WOUNDED


def test_reduce_severity_bottoms_out_at_none():
    assert reduce_severity(InjuryState.WOUNDED) == InjuryState.INJURED
    assert reduce_severity(InjuryState.FATIGUED, tiers=3) == InjuryState.NONE


def test_heal_and_rest_rules():
    engine = make_engine()
    hero = make_hero("h1", injury=InjuryState.WOUNDED)
    assert not can_quest(hero)
    assert rest_multiplier(hero, engine.config) == 3
    assert heal_injury(hero) == InjuryState.INJURED
    assert can_quest(hero)
    assert rest_multiplier(make_hero("h2"), engine.config) == 0.0


def test_mitigation_without_roles_keeps_base():
    engine = make_engine()
    heroes = make_party(PLAIN_CLASS, PLAIN_CLASS)
    base = {"h1": InjuryState.INJURED, "h2": InjuryState.FATIGUED}
    assert mitigate_party_injuries(heroes, base, engine.config) == base


def test_mitigation_tank_and_healer_from_wounded_base():
    engine = make_engine()
    heroes = make_party("Paladin", "Saint", "Archer", "Mage")
    base = {hero.hero_id: InjuryState.WOUNDED for hero in heroes}
    assert mitigate_party_injuries(heroes, base, engine.config) == {
        "h1": InjuryState.WOUNDED,
        "h2": InjuryState.FATIGUED,
        "h3": InjuryState.FATIGUED,
        "h4": InjuryState.FATIGUED,
    }


def test_healer_alone_mends_one_tier():
    engine = make_engine()
    heroes = make_party("Priest", PLAIN_CLASS)
    base = {"h1": InjuryState.INJURED, "h2": InjuryState.FATIGUED}
    assert mitigate_party_injuries(heroes, base, engine.config) == {
        "h1": InjuryState.FATIGUED,
        "h2": InjuryState.NONE,
    }


def test_luck_multiplier_clamped_then_inflated():
    assert luck_multiplier(5, RULES) == pytest.approx(1.0)
    assert luck_multiplier(45, RULES) == pytest.approx(2.0)
    assert luck_multiplier(-40, RULES) == pytest.approx(0.5)
    assert luck_multiplier(5, RULES, material_bonus=0.4, drop_multiplier=1.25) == pytest.approx(1.75)


def test_effective_drop_chance_capped():
    assert effective_drop_chance(RewardEntry("relic", 1, 0.99), 1.0, RULES.drop_chance_cap) == 0.95
    assert effective_drop_chance(RewardEntry("ore", 1, 0.4), 1.0, RULES.drop_chance_cap) == 0.4
    assert effective_drop_chance(RewardEntry("ore", 1, 0.4), 3.0, RULES.drop_chance_cap) == 0.95


def test_zero_chance_entries_never_drop():
    entries = [RewardEntry("nothing", 1, 0.0), RewardEntry("ore", 3, 0.5)]
    drops = RewardRoller().roll(entries, 1.0, ReplayRandomSource([0.0, 0.5]), RULES)
    assert [(drop.reward_id, drop.amount) for drop in drops] == [("ore", 3)]
