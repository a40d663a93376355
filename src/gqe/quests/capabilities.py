from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Sequence

from gqe.contracts import (
    BonusVector,
    CombatReport,
    CombatSimulator,
    EquipmentProvider,
    Hero,
    Party,
    PartyRegistry,
    PartyTraitProvider,
    Quest,
    RandomSource,
)


class NoEquipment:
    def get_equip_bonus(self, hero: Hero, stat: str) -> float:
        return 0


class NoPartyRegistry:
    def find_party_by_members(self, heroes: Sequence[Hero]) -> Party | None:
        return None


class NoPartyTraits:
    def get_quest_bonuses(self, party: Party, quest: Quest) -> BonusVector:
        return BonusVector.empty()


class NoCombatSimulator:
    """Reports nothing, so combat-flagged quests fall back to the roll path."""

    def run_combat(self, quest: Quest, heroes: Sequence[Hero], random_source: RandomSource) -> CombatReport | None:
        return None


class StaticEquipment:
    """Fixed per-hero, per-stat gear bonuses."""

    def __init__(self, bonuses: Mapping[str, Mapping[str, float]]) -> None:
        self._bonuses = {hero_id: dict(stats) for hero_id, stats in bonuses.items()}

    def get_equip_bonus(self, hero: Hero, stat: str) -> float:
        return self._bonuses.get(hero.hero_id, {}).get(stat, 0)


class InMemoryPartyRegistry:
    """Matches a hero set to a registered, formed party with exactly those members."""

    def __init__(self, parties: Sequence[Party] = ()) -> None:
        self._parties: dict[str, Party] = {party.party_id: party for party in parties}

    def register(self, party: Party) -> None:
        self._parties[party.party_id] = party

    def find_party_by_members(self, heroes: Sequence[Hero]) -> Party | None:
        member_ids = {hero.hero_id for hero in heroes}
        if not member_ids:
            return None
        for party in self._parties.values():
            if party.is_formed and set(party.member_ids) == member_ids:
                return party
        return None


@dataclass(slots=True)
class EarnedPartyTraits:
    """Party-trait provider backed by a per-party bonus table with rank and dungeon riders."""

    bonuses_by_party: dict[str, BonusVector] = field(default_factory=dict)
    rank_bonuses: dict[str, dict[str, BonusVector]] = field(default_factory=dict)
    dungeon_bonuses: dict[str, BonusVector] = field(default_factory=dict)

    def get_quest_bonuses(self, party: Party, quest: Quest) -> BonusVector:
        parts = [self.bonuses_by_party.get(party.party_id, BonusVector.empty())]
        rank_table = self.rank_bonuses.get(party.party_id, {})
        if quest.rank.value in rank_table:
            parts.append(rank_table[quest.rank.value])
        if quest.is_dungeon and party.party_id in self.dungeon_bonuses:
            parts.append(self.dungeon_bonuses[party.party_id])
        return BonusVector.empty().combine(*parts)


@dataclass(slots=True)
class Capabilities:
    equipment: EquipmentProvider = field(default_factory=NoEquipment)
    parties: PartyRegistry = field(default_factory=NoPartyRegistry)
    party_traits: PartyTraitProvider = field(default_factory=NoPartyTraits)
    combat: CombatSimulator = field(default_factory=NoCombatSimulator)

    def party_bonuses(self, heroes: Sequence[Hero], quest: Quest) -> BonusVector:
        party = self.parties.find_party_by_members(heroes)
        if party is None:
            return BonusVector.empty()
        return self.party_traits.get_quest_bonuses(party, quest)
