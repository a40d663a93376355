from __future__ import annotations

import pytest

from gqe.contracts import Passive, PassiveEffect, RewardEntry, SecondaryStat, ValidationError
from gqe.quests import QuestInputValidator
from tests.helpers import make_engine, make_hero, make_quest, plain_party


def _codes(result) -> set[str]:
    return {issue.code for issue in result.issues}


def test_well_formed_inputs_pass():
    result = make_engine().validate_inputs(make_quest(), plain_party(4))
    assert result.ok
    assert result.issues == []


def test_quest_shape_errors_are_blocking():
    quest = make_quest(
        required_stat="charisma",
        death_chance=1.5,
        can_kill=True,
        injury_only=True,
        possible_rewards=[RewardEntry("relic", 1, 1.2)],
    )
    quest.rank = "Z"
    result = make_engine().validate_inputs(quest, plain_party(1))
    assert not result.ok
    assert {
        "MISSING_QUEST_RANK",
        "UNKNOWN_REQUIRED_STAT",
        "INVALID_DEATH_CHANCE",
        "CONFLICTING_FAILURE_MODE",
        "INVALID_DROP_CHANCE",
    } <= _codes(result)


def test_unknown_secondary_stat_is_only_a_warning():
    quest = make_quest(secondary_stats=[SecondaryStat(stat="charisma")])
    result = make_engine().validate_inputs(quest, plain_party(2))
    assert result.ok
    assert [issue.severity for issue in result.issues] == ["warning"]


def test_duplicate_and_negative_party_inputs():
    hero = make_hero("h1")
    broken = make_hero("h2")
    broken.stats["str"] = -3
    result = make_engine().validate_inputs(make_quest(), [hero, hero, broken])
    assert {"DUPLICATE_HERO", "NEGATIVE_HERO_STAT"} <= _codes(result)


def test_validate_or_raise_reports_blocking_issues_only():
    validator = QuestInputValidator()
    quest = make_quest(secondary_stats=[SecondaryStat(stat="charisma")], reward=-5)
    with pytest.raises(ValidationError) as ex:
        validator.validate_or_raise(quest, plain_party(2))
    assert [issue.code for issue in ex.value.issues] == ["NEGATIVE_REWARD"]


def test_unknown_passive_category_is_a_warning():
    hero = make_hero("h1")
    hero.passive = Passive(
        passive_id="arcane_hoard",
        name="Arcane Hoard",
        category="MAGIC",
        effect=PassiveEffect(effect_type="gold_bonus", value=0.2),
    )
    known = make_hero("h2")
    known.passive = Passive(
        passive_id="coin_sense",
        name="Coin Sense",
        category="WEALTH",
        effect=PassiveEffect(effect_type="gold_bonus", value=0.1),
    )
    result = make_engine().validate_inputs(make_quest(), [hero, known])
    assert result.ok
    assert [(issue.code, issue.entity_id, issue.severity) for issue in result.issues] == [
        ("UNKNOWN_PASSIVE_CATEGORY", "h1", "warning")
    ]
