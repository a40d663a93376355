from __future__ import annotations

from dataclasses import asdict
from datetime import UTC, datetime

from gqe.contracts import (
    ArchetypeKind,
    ContractAuditCheck,
    ContractAuditReport,
    InjuryState,
    PassiveCategory,
    Rank,
    RewardEntry,
    Stat,
)
from gqe.core import RecordingRandomSource, ReplayRandomSource, fixed_random, make_id, seeded_random
from gqe.quests.config import CHANCE_CEILING, CHANCE_FLOOR, EngineConfig
from gqe.quests.dungeon import fatigue_multiplier
from gqe.quests.engine import QuestEngine
from gqe.quests.injury import apply_injury, mitigate_party_injuries
from gqe.quests.resources import load_engine_config
from gqe.quests.rewards import effective_drop_chance
from gqe.quests.samples import sample_hero, sample_passive, sample_quest

# Class id with no tuning profile, so baseline checks carry no affinity or synergy.
NEUTRAL_CLASS = "Adventurer"


class QuestContractAuditor:
    def __init__(self, config: EngineConfig | None = None) -> None:
        self._config = config if config is not None else load_engine_config()
        self._engine = QuestEngine(self._config, random_source=seeded_random(2026))

    def run(self) -> ContractAuditReport:
        checks: list[ContractAuditCheck] = [
            self._check_chance_bounds(),
            self._check_primary_monotonicity(),
            self._check_empty_party(),
            self._check_injury_monotonic(),
            self._check_tank_healer_mitigation(),
            self._check_cleric_protection(),
            self._check_archetypes(),
            self._check_fatigue_floor_three(),
            self._check_reward_cap(),
            self._check_seeded_replay(),
        ]
        checks.extend(self._check_baseline_bands())
        return ContractAuditReport(
            report_id=make_id("audit"),
            generated_at=datetime.now(UTC),
            scope="quest_resolution",
            checks=checks,
        )

    def _check_chance_bounds(self) -> ContractAuditCheck:
        lowest = 1.0
        highest = 0.0
        for quest_rank in Rank:
            quest = sample_quest(quest_rank)
            for hero_rank in Rank:
                for stat_value in (0, 5, 15, 40):
                    for size in (1, 4, 6):
                        heroes = [sample_hero(f"h{i}", hero_rank, stat_value, hero_class="Knight") for i in range(size)]
                        chance = self._engine.calculate_success_chance(quest, heroes)
                        lowest = min(lowest, chance)
                        highest = max(highest, chance)
        return ContractAuditCheck(
            check_id="chance_bounds",
            description="Success chance stays inside the configured floor and ceiling.",
            passed=lowest >= CHANCE_FLOOR and highest <= CHANCE_CEILING,
            evidence=f"min={lowest:.4f} max={highest:.4f}",
        )

    def _check_primary_monotonicity(self) -> ContractAuditCheck:
        quest = sample_quest(Rank.B, Stat.DEX.value)
        previous = 0.0
        monotonic = True
        for stat_value in range(0, 31):
            heroes = [sample_hero(f"h{i}", Rank.B, 7, hero_class=NEUTRAL_CLASS) for i in range(4)]
            for hero in heroes:
                hero.stats[Stat.DEX.value] = stat_value
            chance = self._engine.calculate_success_chance(quest, heroes)
            monotonic = monotonic and chance >= previous
            previous = chance
        return ContractAuditCheck(
            check_id="primary_stat_monotonic",
            description="Raising the required stat never lowers success chance.",
            passed=monotonic,
            evidence=f"final_chance={previous:.4f}",
        )

    def _check_empty_party(self) -> ContractAuditCheck:
        chance = self._engine.calculate_success_chance(sample_quest(Rank.D), [])
        return ContractAuditCheck(
            check_id="empty_party_zero",
            description="An empty party has zero chance instead of raising.",
            passed=chance == 0.0,
            evidence=f"chance={chance}",
        )

    def _check_injury_monotonic(self) -> ContractAuditCheck:
        hero = sample_hero("h1", Rank.C, 5)
        apply_injury(hero, InjuryState.WOUNDED)
        apply_injury(hero, InjuryState.FATIGUED)
        return ContractAuditCheck(
            check_id="injury_monotonic",
            description="A milder injury never downgrades a worse one.",
            passed=hero.injury_state == InjuryState.WOUNDED,
            evidence=f"state={hero.injury_state.value}",
        )

    def _check_tank_healer_mitigation(self) -> ContractAuditCheck:
        heroes = [
            sample_hero("tank", Rank.C, 5, hero_class="Knight"),
            sample_hero("healer", Rank.C, 5, hero_class="Priest"),
            sample_hero("mage", Rank.C, 5, hero_class="Mage"),
            sample_hero("archer", Rank.C, 5, hero_class="Archer"),
        ]
        severities = mitigate_party_injuries(heroes, {h.hero_id: InjuryState.WOUNDED for h in heroes}, self._config)
        others = [state for hero_id, state in severities.items() if hero_id != "tank"]
        return ContractAuditCheck(
            check_id="tank_healer_mitigation",
            description="Tank absorbs the worst hit while a healer mends the rest of the party.",
            passed=severities["tank"] == InjuryState.WOUNDED and all(s == InjuryState.FATIGUED for s in others),
            evidence=str({hero_id: state.value for hero_id, state in severities.items()}),
        )

    def _check_cleric_protection(self) -> ContractAuditCheck:
        quest = sample_quest(Rank.S, can_kill=True, death_chance=1.0)
        quest.cleric_protection = True
        heroes = [
            sample_hero("cleric", Rank.D, 1, hero_class="Priest"),
            sample_hero("h2", Rank.D, 1, hero_class="Mage"),
            sample_hero("h3", Rank.D, 1, hero_class="Archer"),
        ]
        result = self._engine.resolve(quest, heroes, random_source=fixed_random(0.99))
        return ContractAuditCheck(
            check_id="cleric_protection",
            description="A cleric on a protected quest converts every death into an injury.",
            passed=not result.success and not result.hero_deaths and len(result.hero_injuries) == len(heroes),
            evidence=f"deaths={len(result.hero_deaths)} injuries={len(result.hero_injuries)}",
        )

    def _check_archetypes(self) -> ContractAuditCheck:
        offense, defense = PassiveCategory.OFFENSE, PassiveCategory.DEFENSE
        cases = {
            "pure": ([offense] * 4, ArchetypeKind.PURE, (offense,)),
            "focused": ([offense] * 3 + [defense], ArchetypeKind.FOCUSED, (offense, defense)),
            "balanced": ([offense, defense, offense, defense], ArchetypeKind.BALANCED, (offense, defense)),
            "small": ([offense] * 3, ArchetypeKind.NONE, ()),
        }
        outcomes: dict[str, str] = {}
        passed = True
        for label, (categories, kind, expected) in cases.items():
            heroes = []
            for idx, category in enumerate(categories):
                hero = sample_hero(f"h{idx}", Rank.C, 5)
                hero.passive = sample_passive(category)
                heroes.append(hero)
            archetype = self._engine.get_synergy_archetype(heroes)
            outcomes[label] = archetype.kind.value
            passed = passed and archetype.kind == kind and archetype.categories == expected
        return ContractAuditCheck(
            check_id="archetype_classification",
            description="Passive-category distributions map to the documented archetypes.",
            passed=passed,
            evidence=str(outcomes),
        )

    def _check_fatigue_floor_three(self) -> ContractAuditCheck:
        multiplier = fatigue_multiplier(3, self._config.dungeon)
        expected = 1.0 - 2 * self._config.dungeon.fatigue_per_floor
        return ContractAuditCheck(
            check_id="dungeon_fatigue",
            description="Floor fatigue follows 1 - (floor - 1) * fatigue_per_floor.",
            passed=multiplier == max(self._config.dungeon.min_fatigue_multiplier, expected),
            evidence=f"floor3={multiplier}",
        )

    def _check_reward_cap(self) -> ContractAuditCheck:
        cap = self._config.rewards.drop_chance_cap
        high = effective_drop_chance(RewardEntry("relic", 1, 0.99), 1.0, cap)
        raw = effective_drop_chance(RewardEntry("ore", 1, 0.4), 1.0, cap)
        return ContractAuditCheck(
            check_id="reward_cap",
            description="Neutral luck uses the raw drop chance, capped.",
            passed=high == cap and raw == 0.4,
            evidence=f"high={high} raw={raw}",
        )

    def _check_seeded_replay(self) -> ContractAuditCheck:
        quest = sample_quest(Rank.B, can_kill=True, death_chance=0.3)
        recorder = RecordingRandomSource(seeded_random(77))
        sources = [recorder, seeded_random(77)]
        outcomes = []
        for source in sources:
            heroes = [sample_hero(f"h{i}", Rank.C, 8, hero_class="Ranger") for i in range(4)]
            outcomes.append(asdict(self._engine.resolve(quest, heroes, random_source=source)))
        heroes = [sample_hero(f"h{i}", Rank.C, 8, hero_class="Ranger") for i in range(4)]
        outcomes.append(asdict(self._engine.resolve(quest, heroes, random_source=ReplayRandomSource(recorder.rolls))))
        return ContractAuditCheck(
            check_id="seeded_replay",
            description="Identical seeds and replayed roll logs reproduce identical outcomes.",
            passed=outcomes[0] == outcomes[1] == outcomes[2],
            evidence=f"success={outcomes[0]['success']} roll={outcomes[0]['roll']} rolls={len(recorder.rolls)}",
        )

    def _check_baseline_bands(self) -> list[ContractAuditCheck]:
        checks: list[ContractAuditCheck] = []
        for rank in Rank:
            profile = self._config.rank_profile(rank)
            heroes = [sample_hero(f"h{i}", rank, profile.minimum_stat, hero_class=NEUTRAL_CLASS) for i in range(4)]
            chance = self._engine.calculate_success_chance(sample_quest(rank), heroes)
            low, high = profile.baseline_band
            checks.append(
                ContractAuditCheck(
                    check_id=f"baseline_band_{rank.value}",
                    description=f"{rank.value}-rank party at minimum stats lands inside its baseline band.",
                    passed=low <= chance <= high,
                    evidence=f"chance={chance:.4f} band=[{low}, {high}]",
                )
            )
        return checks


def run_quest_contract_audit(config: EngineConfig | None = None) -> ContractAuditReport:
    return QuestContractAuditor(config).run()
