from __future__ import annotations

import pytest

from gqe.contracts import BonusVector, InjuryState, Party, Rank, SecondaryStat, Stat
from gqe.quests import (
    CHANCE_CEILING,
    CHANCE_FLOOR,
    Capabilities,
    EarnedPartyTraits,
    InMemoryPartyRegistry,
    StaticEquipment,
    rank_base_chance,
)
from tests.helpers import make_engine, make_hero, make_party, make_quest, plain_party


def test_even_party_at_expected_stats_sits_on_rank_baseline():
    engine = make_engine()
    breakdown = engine.success_breakdown(make_quest(Rank.C), plain_party(4))
    assert breakdown.base == pytest.approx(0.60)
    assert breakdown.rank_bonus == pytest.approx(0.03)
    assert breakdown.primary_bonus == pytest.approx(0.0)
    assert breakdown.luck_bonus == pytest.approx(0.0)
    assert breakdown.final == pytest.approx(0.63)


def test_rank_base_chance_curve():
    assert rank_base_chance(1.0) == pytest.approx(0.60)
    assert rank_base_chance(0.5) == pytest.approx(0.375)
    assert rank_base_chance(2.0) == pytest.approx(0.95)
    assert rank_base_chance(5.0) == CHANCE_CEILING


def test_chance_clamped_to_floor_and_ceiling():
    engine = make_engine()
    weak = plain_party(2, rank=Rank.D, stat=0, luck=0)
    strong = plain_party(2, rank=Rank.S, stat=60, luck=30)
    assert engine.calculate_success_chance(make_quest(Rank.S), weak) == CHANCE_FLOOR
    assert engine.calculate_success_chance(make_quest(Rank.D), strong) == CHANCE_CEILING


def test_empty_party_has_zero_chance():
    engine = make_engine()
    breakdown = engine.success_breakdown(make_quest(Rank.C), [])
    assert breakdown.final == 0.0
    assert breakdown.party_size == 0


def test_primary_stat_and_luck_weights():
    engine = make_engine()
    heroes = plain_party(2, stat=12, luck=9)
    breakdown = engine.success_breakdown(make_quest(Rank.C), heroes)
    assert breakdown.primary_bonus == pytest.approx((12 - 7) * 0.02)
    assert breakdown.luck_bonus == pytest.approx((9 - 5) * 0.01)


def test_injury_penalty_scales_effective_stats():
    engine = make_engine()
    healthy = engine.success_breakdown(make_quest(Rank.C), [make_hero("h1", stat=10)])
    wounded = engine.success_breakdown(make_quest(Rank.C), [make_hero("h1", stat=10, injury=InjuryState.WOUNDED)])
    assert healthy.stats.primary_average == 10
    assert wounded.stats.primary_average == 5
    assert wounded.final < healthy.final


def test_secondary_stats_weighted_against_scaled_expectation():
    engine = make_engine()
    quest = make_quest(Rank.C, secondary_stats=[SecondaryStat(stat=Stat.DEX.value, weight=2.0)])
    heroes = [make_hero("h1", stat=10)]
    breakdown = engine.success_breakdown(quest, heroes)
    assert breakdown.secondary_bonus == pytest.approx((10 - 0.7 * 7) * 0.015 * 2.0)


def test_unknown_secondary_stat_contributes_nothing():
    engine = make_engine()
    quest = make_quest(Rank.C, secondary_stats=[SecondaryStat(stat="charisma")])
    breakdown = engine.success_breakdown(quest, plain_party(2))
    assert breakdown.secondary_bonus == 0.0


def test_class_affinity_averaged_over_party():
    engine = make_engine()
    quest = make_quest(Rank.C, Stat.DEX.value)
    breakdown = engine.success_breakdown(quest, make_party("Rogue", "Adventurer"))
    # Rogue: exploration 0.04 + dex 0.03, Adventurer has no profile.
    assert breakdown.affinity_bonus == pytest.approx((0.04 + 0.03) / 2)


def test_synergy_success_and_stat_bonus_feed_chance():
    engine = make_engine()
    quest = make_quest(Rank.C, Stat.INT.value)
    breakdown = engine.success_breakdown(quest, make_party("Mage", "Archmage"))
    assert [rule.rule_id for rule in breakdown.synergy.active_rules] == ["arcane_circle"]
    assert breakdown.synergy_bonus == pytest.approx(0.05)


def test_equipment_bonus_added_after_penalty():
    equipment = StaticEquipment({"h1": {Stat.STR.value: 4}})
    engine = make_engine(capabilities=Capabilities(equipment=equipment))
    hero = make_hero("h1", stat=10, injury=InjuryState.INJURED)
    breakdown = engine.success_breakdown(make_quest(Rank.C), [hero])
    assert breakdown.stats.primary_total == 7 + 4


def test_formed_party_traits_apply_only_to_exact_members():
    heroes = plain_party(3)
    registry = InMemoryPartyRegistry([Party(party_id="p1", name="Ashen Blades", member_ids=["h1", "h2", "h3"])])
    traits = EarnedPartyTraits(
        bonuses_by_party={"p1": BonusVector.of(success=0.05)},
        rank_bonuses={"p1": {"C": BonusVector.of(success=0.02)}},
    )
    engine = make_engine(capabilities=Capabilities(parties=registry, party_traits=traits))

    full = engine.success_breakdown(make_quest(Rank.C), heroes)
    assert full.party_trait_bonus == pytest.approx(0.07)

    partial = engine.success_breakdown(make_quest(Rank.C), heroes[:2])
    assert partial.party_trait_bonus == 0.0

    registry.register(Party(party_id="p1", name="Ashen Blades", member_ids=["h1", "h2", "h3"], is_formed=False))
    assert engine.success_breakdown(make_quest(Rank.C), heroes).party_trait_bonus == 0.0


def test_calculation_is_pure():
    engine = make_engine()
    heroes = make_party("Knight", "Mage", "Priest", "Rogue")
    quest = make_quest(Rank.B)
    first = engine.calculate_success_chance(quest, heroes)
    assert engine.calculate_success_chance(quest, heroes) == first
    assert all(hero.injury_state == InjuryState.NONE for hero in heroes)
