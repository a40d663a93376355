from __future__ import annotations

from typing import Sequence

from gqe.contracts import (
    Hero,
    InjuryState,
    PassiveCategory,
    Quest,
    Rank,
    Stat,
    ValidationError,
    ValidationIssue,
    ValidationResult,
)

_STATS = frozenset(stat.value for stat in Stat)
_CATEGORIES = frozenset(category.value for category in PassiveCategory)


class QuestInputValidator:
    """Structural checks callers run before handing a quest and party to the engine."""

    def validate(self, quest: Quest, heroes: Sequence[Hero]) -> ValidationResult:
        issues = self.quest_issues(quest) + self.party_issues(heroes)
        return ValidationResult(ok=not any(i.severity == "blocking" for i in issues), issues=issues)

    def validate_or_raise(self, quest: Quest, heroes: Sequence[Hero]) -> None:
        result = self.validate(quest, heroes)
        blocking = [issue for issue in result.issues if issue.severity == "blocking"]
        if blocking:
            raise ValidationError(blocking)

    def quest_issues(self, quest: Quest) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        qid = quest.quest_id or "unknown"
        if not isinstance(quest.rank, Rank):
            issues.append(self._issue("MISSING_QUEST_RANK", "quest.rank", qid, f"rank '{quest.rank}' is not one of D/C/B/A/S"))
        if str(getattr(quest.required_stat, "value", quest.required_stat)) not in _STATS:
            issues.append(
                self._issue("UNKNOWN_REQUIRED_STAT", "quest.required_stat", qid, f"unknown stat '{quest.required_stat}'")
            )
        for idx, secondary in enumerate(quest.secondary_stats):
            if str(getattr(secondary.stat, "value", secondary.stat)) not in _STATS:
                issues.append(
                    self._issue(
                        "UNKNOWN_SECONDARY_STAT",
                        f"quest.secondary_stats[{idx}]",
                        qid,
                        f"unknown stat '{secondary.stat}' contributes nothing",
                        severity="warning",
                    )
                )
            if secondary.weight < 0:
                issues.append(self._issue("NEGATIVE_STAT_WEIGHT", f"quest.secondary_stats[{idx}].weight", qid, "weight must be >= 0"))
        if quest.reward < 0 or quest.xp_reward < 0:
            issues.append(self._issue("NEGATIVE_REWARD", "quest.reward", qid, "gold and xp rewards must be >= 0"))
        if not 0.0 <= quest.death_chance <= 1.0:
            issues.append(self._issue("INVALID_DEATH_CHANCE", "quest.death_chance", qid, "death_chance must be within [0, 1]"))
        if quest.can_kill and quest.injury_only:
            issues.append(
                self._issue("CONFLICTING_FAILURE_MODE", "quest.can_kill", qid, "quest cannot be both can_kill and injury_only")
            )
        if quest.is_dungeon and quest.floor_count < 1:
            issues.append(self._issue("INVALID_FLOOR_COUNT", "quest.floor_count", qid, "dungeon quests need at least one floor"))
        for idx, entry in enumerate(quest.possible_rewards):
            if not 0.0 <= entry.drop_chance <= 1.0:
                issues.append(
                    self._issue(
                        "INVALID_DROP_CHANCE",
                        f"quest.possible_rewards[{idx}].drop_chance",
                        entry.reward_id,
                        "drop_chance must be within [0, 1]",
                    )
                )
        return issues

    def party_issues(self, heroes: Sequence[Hero]) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        seen: set[str] = set()
        for hero in heroes:
            if hero.hero_id in seen:
                issues.append(self._issue("DUPLICATE_HERO", "party", hero.hero_id, "hero appears twice in the party"))
            seen.add(hero.hero_id)
            if not isinstance(hero.rank, Rank):
                issues.append(self._issue("MISSING_HERO_RANK", "hero.rank", hero.hero_id, f"rank '{hero.rank}' is invalid"))
            if not isinstance(hero.injury_state, InjuryState):
                issues.append(
                    self._issue("INVALID_INJURY_STATE", "hero.injury_state", hero.hero_id, f"'{hero.injury_state}' is invalid")
                )
            if hero.passive is not None and str(getattr(hero.passive.category, "value", hero.passive.category)) not in _CATEGORIES:
                issues.append(
                    self._issue(
                        "UNKNOWN_PASSIVE_CATEGORY",
                        "hero.passive.category",
                        hero.hero_id,
                        f"'{hero.passive.category}' is not a passive category",
                        severity="warning",
                    )
                )
            for stat, value in hero.stats.items():
                if stat not in _STATS:
                    issues.append(
                        self._issue("UNKNOWN_HERO_STAT", f"hero.stats.{stat}", hero.hero_id, "stat is ignored", severity="warning")
                    )
                elif value < 0:
                    issues.append(self._issue("NEGATIVE_HERO_STAT", f"hero.stats.{stat}", hero.hero_id, "stats must be >= 0"))
        return issues

    def _issue(self, code: str, field_path: str, entity_id: str, message: str, severity: str = "blocking") -> ValidationIssue:
        return ValidationIssue(code=code, severity=severity, field_path=field_path, entity_id=entity_id, message=message)
