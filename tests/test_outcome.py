from __future__ import annotations

from dataclasses import replace

from gqe.contracts import CombatReport, InjuryState, PassiveCategory, Rank, RewardEntry
from gqe.core import ReplayRandomSource, seeded_random
from gqe.quests import Capabilities
from tests.helpers import PLAIN_CLASS, make_engine, make_hero, make_party, make_passive, make_quest, ore_drop, plain_party

FAIL = 0.99


def _injuries(result):
    return {injury.hero_id: injury.severity for injury in result.hero_injuries}


class ScriptedCombat:
    def __init__(self, report):
        self.report = report
        self.calls = 0

    def run_combat(self, quest, heroes, random_source):
        self.calls += 1
        return self.report


def test_success_pays_full_rewards_and_rolls_drops():
    engine = make_engine()
    quest = make_quest(Rank.C, possible_rewards=[ore_drop(0.5)])
    result = engine.resolve(quest, plain_party(4), random_source=ReplayRandomSource([0.1, 0.2]))
    assert result.success
    assert result.gold_reward == 100
    assert result.xp_reward == 40
    assert [(drop.reward_id, drop.amount) for drop in result.bonus_rewards] == [("iron_ore", 2)]
    assert result.hero_injuries == []


def test_roll_equal_to_chance_succeeds():
    engine = make_engine()
    quest = make_quest(Rank.C)
    heroes = plain_party(4)
    chance = engine.calculate_success_chance(quest, heroes)
    result = engine.resolve(quest, heroes, random_source=ReplayRandomSource([chance]))
    assert result.success
    assert result.roll == chance


def test_gold_kind_drop_adds_to_gold_reward():
    engine = make_engine()
    pouch = RewardEntry(reward_id="coin_pouch", amount=15, drop_chance=1.0, kind="gold")
    quest = make_quest(Rank.C, possible_rewards=[pouch])
    result = engine.resolve(quest, plain_party(4), random_source=ReplayRandomSource([0.1, 0.5]))
    assert result.gold_reward == 115
    assert result.bonus_rewards == []


def test_party_luck_scales_drop_chance():
    engine = make_engine()
    quest = make_quest(Rank.C, possible_rewards=[ore_drop(0.5)])
    average = engine.resolve(quest, plain_party(4), random_source=ReplayRandomSource([0.1, 0.7]))
    lucky = engine.resolve(quest, plain_party(4, luck=15), random_source=ReplayRandomSource([0.1, 0.7]))
    boosted = engine.resolve(
        quest, plain_party(4), party_luck_bonus=0.5, random_source=ReplayRandomSource([0.1, 0.7])
    )
    assert average.bonus_rewards == []
    assert [drop.reward_id for drop in lucky.bonus_rewards] == ["iron_ore"]
    assert lucky.bonus_rewards[0].drop_chance == 0.75
    assert [drop.reward_id for drop in boosted.bonus_rewards] == ["iron_ore"]


def test_failure_pays_partial_rewards_and_injures_party():
    engine = make_engine()
    quest = make_quest(Rank.C, injury_only=True, possible_rewards=[ore_drop(1.0)])
    heroes = plain_party(4)
    result = engine.resolve(quest, heroes, random_source=ReplayRandomSource([FAIL]))
    assert not result.success
    assert result.gold_reward == 20
    assert result.xp_reward == 12
    assert result.bonus_rewards == []
    assert set(_injuries(result).values()) == {InjuryState.INJURED}
    assert all(hero.injury_state == InjuryState.INJURED for hero in heroes)


def test_tank_absorbs_and_healer_mends_on_injury_only_failure():
    engine = make_engine()
    heroes = make_party("Knight", "Priest", "Mage", "Archer")
    result = engine.resolve(make_quest(Rank.C, injury_only=True), heroes, random_source=ReplayRandomSource([FAIL]))
    assert _injuries(result) == {"h1": InjuryState.INJURED}
    assert [hero.injury_state for hero in heroes] == [
        InjuryState.INJURED,
        InjuryState.NONE,
        InjuryState.NONE,
        InjuryState.NONE,
    ]


def test_tank_without_healer_shifts_worst_hit():
    engine = make_engine()
    heroes = make_party("Knight", PLAIN_CLASS, PLAIN_CLASS)
    result = engine.resolve(make_quest(Rank.C, injury_only=True), heroes, random_source=ReplayRandomSource([FAIL]))
    assert _injuries(result) == {
        "h1": InjuryState.INJURED,
        "h2": InjuryState.FATIGUED,
        "h3": InjuryState.FATIGUED,
    }


def test_injury_never_downgrades_existing_state():
    engine = make_engine()
    heroes = plain_party(2)
    heroes[0].injury_state = InjuryState.WOUNDED
    result = engine.resolve(make_quest(Rank.C, injury_only=True), heroes, random_source=ReplayRandomSource([FAIL]))
    assert heroes[0].injury_state == InjuryState.WOUNDED
    assert result.hero_injuries[0].resulting_state == InjuryState.WOUNDED


def test_injury_reduction_rolls_per_injured_hero():
    engine = make_engine()
    heroes = plain_party(4)
    for hero in heroes:
        hero.passive = make_passive(PassiveCategory.DEFENSE, "party_injury_reduction", 0.0)
    rolls = ReplayRandomSource([FAIL, 0.1, 0.9, 0.1, 0.9])
    result = engine.resolve(make_quest(Rank.C, injury_only=True), heroes, random_source=rolls)
    assert _injuries(result) == {
        "h1": InjuryState.FATIGUED,
        "h2": InjuryState.INJURED,
        "h3": InjuryState.FATIGUED,
        "h4": InjuryState.INJURED,
    }
    assert rolls.consumed == 5


def test_can_kill_failure_rolls_death_per_hero():
    engine = make_engine()
    quest = make_quest(Rank.C, can_kill=True, death_chance=0.5)
    heroes = plain_party(2)
    result = engine.resolve(quest, heroes, random_source=ReplayRandomSource([FAIL, 0.1, 0.9]))
    assert result.hero_deaths == ["h1"]
    assert _injuries(result) == {"h2": InjuryState.WOUNDED}


def test_tank_lowers_death_chance_for_the_rest_of_the_party():
    engine = make_engine()
    quest = make_quest(Rank.C, can_kill=True, death_chance=0.5)
    heroes = make_party("Knight", PLAIN_CLASS)
    # 0.4 survives the reduced 0.375 chance.
    result = engine.resolve(quest, heroes, random_source=ReplayRandomSource([FAIL, 0.9, 0.4]))
    assert result.hero_deaths == []


def test_survival_synergy_reduces_death_chance():
    engine = make_engine()
    quest = make_quest(Rank.C, can_kill=True, death_chance=0.5)
    heroes = make_party("Knight", "Paladin")
    result = engine.resolve(quest, heroes, random_source=ReplayRandomSource([FAIL, 0.46, 0.44]))
    assert result.hero_deaths == ["h2"]


def test_cleric_protection_skips_death_rolls():
    engine = make_engine()
    quest = make_quest(Rank.S, can_kill=True, death_chance=1.0, cleric_protection=True)
    heroes = make_party("Priest", PLAIN_CLASS, PLAIN_CLASS)
    result = engine.resolve(quest, heroes, random_source=ReplayRandomSource([FAIL]))
    assert result.hero_deaths == []
    assert set(_injuries(result).values()) == {InjuryState.WOUNDED}
    assert "cleric_protection" in result.notes


def test_cleric_class_grants_cleric_protection():
    engine = make_engine()
    quest = make_quest(Rank.S, can_kill=True, death_chance=1.0, cleric_protection=True)
    heroes = make_party("Cleric", PLAIN_CLASS, PLAIN_CLASS, PLAIN_CLASS)
    result = engine.resolve(quest, heroes, random_source=ReplayRandomSource([FAIL]))
    assert result.hero_deaths == []
    assert result.notes == ["cleric_protection"]
    assert all(hero.injury_state == InjuryState.WOUNDED for hero in heroes)


def test_cleric_protection_requires_a_cleric():
    engine = make_engine()
    quest = make_quest(Rank.S, can_kill=True, death_chance=1.0, cleric_protection=True)
    result = engine.resolve(quest, plain_party(2), random_source=ReplayRandomSource([FAIL, 0.5, 0.5]))
    assert result.hero_deaths == ["h1", "h2"]


def test_death_protection_synergy_guards_party():
    engine = make_engine()
    quest = make_quest(Rank.S, can_kill=True, death_chance=1.0)
    result = engine.resolve(quest, make_party("Knight", "Priest"), random_source=ReplayRandomSource([FAIL]))
    assert result.hero_deaths == []
    assert "synergy_death_protection" in result.notes


def test_veteran_escape_artist_avoids_death():
    engine = make_engine()
    quest = make_quest(Rank.S, can_kill=True, death_chance=1.0)
    veteran = make_hero("h1", "Rogue", level=10)
    rookie = make_hero("h2", "Rogue", level=9)
    result = engine.resolve(quest, [veteran, rookie], random_source=ReplayRandomSource([FAIL, 0.0, 0.0]))
    assert result.hero_deaths == ["h2"]
    assert "escape_artist:h1" in result.notes
    assert result.hero_injuries[0].averted_death


def test_shadow_step_passive_can_avoid_death():
    engine = make_engine()
    quest = make_quest(Rank.S, can_kill=True, death_chance=1.0)
    hero = make_hero("h1", passive=make_passive(PassiveCategory.SPEED, "shadow_step", 0.5))
    result = engine.resolve(quest, [hero], random_source=ReplayRandomSource([FAIL, 0.0, 0.3]))
    assert result.hero_deaths == []
    assert result.notes == ["shadow_step:h1"]
    assert hero.injury_state == InjuryState.WOUNDED


def test_optional_fatigue_after_success():
    engine = make_engine()
    config = engine.config
    engine.reload_config(replace(config, failure=replace(config.failure, success_severity=InjuryState.FATIGUED)))
    heroes = plain_party(2)
    result = engine.resolve(make_quest(Rank.C), heroes, random_source=ReplayRandomSource([0.1]))
    assert result.success
    assert _injuries(result) == {"h1": InjuryState.FATIGUED, "h2": InjuryState.FATIGUED}


def test_combat_report_decides_outcome():
    report = CombatReport(success=False, rounds=3, alive={"h1": False, "h2": True}, log_ref="combat-17")
    combat = ScriptedCombat(report)
    engine = make_engine(capabilities=Capabilities(combat=combat))
    quest = make_quest(Rank.C, combat=True, can_kill=True, death_chance=0.1)
    result = engine.resolve(quest, plain_party(2), random_source=ReplayRandomSource([]))
    assert combat.calls == 1
    assert result.roll is None
    assert result.hero_deaths == ["h1"]
    assert _injuries(result) == {"h2": InjuryState.INJURED}
    assert result.combat_log_ref == "combat-17"
    assert result.gold_reward == 20


def test_combat_quest_without_simulator_falls_back_to_roll():
    engine = make_engine()
    quest = make_quest(Rank.C, combat=True)
    result = engine.resolve(quest, plain_party(2), random_source=ReplayRandomSource([0.1]))
    assert result.success
    assert result.combat is None


def test_empty_party_fails_without_rolling():
    engine = make_engine()
    rolls = ReplayRandomSource([])
    result = engine.resolve(make_quest(Rank.C), [], random_source=rolls)
    assert not result.success
    assert result.roll is None
    assert result.notes == ["empty_party"]
    assert rolls.consumed == 0


def test_seeded_resolution_replays_identically():
    quest = make_quest(Rank.B, can_kill=True, death_chance=0.4, possible_rewards=[ore_drop(0.5)])
    first = make_engine().resolve(quest, plain_party(4), random_source=seeded_random(99))
    second = make_engine().resolve(quest, plain_party(4), random_source=seeded_random(99))
    assert first == second
