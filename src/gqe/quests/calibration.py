from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

from gqe.contracts import (
    CalibrationRunRequest,
    CalibrationRunResult,
    Rank,
    TuningProfile,
)
from gqe.core import gameplay_random, make_id, seeded_random, stable_id
from gqe.quests.config import EngineConfig
from gqe.quests.engine import QuestEngine
from gqe.quests.resources import canonical_checksum, load_engine_config, load_packaged_payload
from gqe.quests.samples import sample_party, sample_quest

CALIBRATION_DEATH_CHANCE: dict[Rank, float] = {
    Rank.D: 0.1,
    Rank.C: 0.15,
    Rank.B: 0.2,
    Rank.A: 0.3,
    Rank.S: 0.5,
}

_RUNS_DDL = """
CREATE TABLE IF NOT EXISTS dev_calibration_runs (
    run_id VARCHAR PRIMARY KEY,
    quest_rank VARCHAR,
    party_rank VARCHAR,
    party_size INTEGER,
    sample_count INTEGER,
    stat_profile VARCHAR,
    tuning_profile_id VARCHAR,
    mean_success_chance DOUBLE,
    success_rate DOUBLE,
    death_rate DOUBLE,
    injury_rate DOUBLE,
    mean_gold DOUBLE,
    injury_distribution_json VARCHAR,
    seed BIGINT,
    persisted_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
)
"""

_INJURY_DDL = """
CREATE TABLE IF NOT EXISTS dev_calibration_injury_distribution (
    run_id VARCHAR NOT NULL,
    severity VARCHAR NOT NULL,
    injury_count INTEGER NOT NULL,
    injury_rate DOUBLE NOT NULL,
    PRIMARY KEY (run_id, severity)
)
"""


class CalibrationService:
    """Dev-only Monte-Carlo batches over synthetic parties, isolated from live resolution."""

    def __init__(self) -> None:
        self._profiles = self._default_tuning_profiles()

    def list_tuning_profiles(self) -> list[TuningProfile]:
        return list(self._profiles.values())

    def get_tuning_profile(self, profile_id: str) -> TuningProfile:
        profile = self._profiles.get(profile_id)
        if profile is None:
            raise ValueError(f"unknown tuning profile '{profile_id}'")
        return profile

    def upsert_tuning_profile(self, profile: TuningProfile) -> None:
        self._profiles[profile.profile_id] = profile

    def run_batch(self, request: CalibrationRunRequest) -> CalibrationRunResult:
        if request.sample_count <= 0:
            raise ValueError("sample_count must be > 0")
        if request.party_size <= 0:
            raise ValueError("party_size must be > 0")
        tuning = self.get_tuning_profile(request.tuning_profile_id)
        random_source = seeded_random(request.seed) if request.seed is not None else gameplay_random()
        engine = QuestEngine(self.build_tuned_config(tuning), random_source=random_source)
        death_chance = min(1.0, CALIBRATION_DEATH_CHANCE[request.quest_rank] * tuning.death_chance_multiplier)

        chance_total = 0.0
        successes = 0
        deaths = 0
        injuries = 0
        gold_total = 0
        injury_distribution: dict[str, int] = {}

        for idx in range(request.sample_count):
            substream = random_source.spawn(f"calibration:{idx}")
            heroes = sample_party(request.party_rank, request.party_size, engine.config, request.stat_profile, substream)
            quest = sample_quest(request.quest_rank, can_kill=request.can_kill, death_chance=death_chance)
            result = engine.resolve(quest, heroes, random_source=substream)
            chance_total += result.success_chance
            successes += int(result.success)
            deaths += len(result.hero_deaths)
            injuries += len(result.hero_injuries)
            gold_total += result.gold_reward
            for injury in result.hero_injuries:
                key = injury.severity.value
                injury_distribution[key] = injury_distribution.get(key, 0) + 1

        hero_rolls = request.sample_count * request.party_size
        return CalibrationRunResult(
            run_id=self._run_id(request),
            quest_rank=request.quest_rank,
            party_rank=request.party_rank,
            party_size=request.party_size,
            sample_count=request.sample_count,
            stat_profile=request.stat_profile,
            tuning_profile_id=tuning.profile_id,
            mean_success_chance=chance_total / request.sample_count,
            success_rate=successes / request.sample_count,
            death_rate=deaths / hero_rolls,
            injury_rate=injuries / hero_rolls,
            mean_gold=gold_total / request.sample_count,
            injury_distribution=injury_distribution,
            seed=request.seed,
        )

    def persist_result(self, result: CalibrationRunResult, duckdb_path: Path) -> None:
        try:
            import duckdb
        except ModuleNotFoundError as exc:  # pragma: no cover
            raise RuntimeError("duckdb is required for calibration persistence") from exc

        duckdb_path.parent.mkdir(parents=True, exist_ok=True)
        with duckdb.connect(str(duckdb_path)) as conn:
            conn.execute(_RUNS_DDL)
            conn.execute(_INJURY_DDL)
            conn.execute(
                """
                INSERT OR REPLACE INTO dev_calibration_runs(
                    run_id, quest_rank, party_rank, party_size, sample_count, stat_profile, tuning_profile_id,
                    mean_success_chance, success_rate, death_rate, injury_rate, mean_gold, injury_distribution_json, seed
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    result.run_id,
                    result.quest_rank.value,
                    result.party_rank.value,
                    result.party_size,
                    result.sample_count,
                    result.stat_profile.value,
                    result.tuning_profile_id,
                    result.mean_success_chance,
                    result.success_rate,
                    result.death_rate,
                    result.injury_rate,
                    result.mean_gold,
                    json.dumps(result.injury_distribution, sort_keys=True),
                    result.seed,
                ],
            )
            conn.execute(
                "DELETE FROM dev_calibration_injury_distribution WHERE run_id = ?",
                [result.run_id],
            )
            hero_rolls = result.sample_count * result.party_size
            rows = [
                (result.run_id, severity, count, count / hero_rolls)
                for severity, count in sorted(result.injury_distribution.items())
            ]
            if rows:
                conn.executemany(
                    """
                    INSERT INTO dev_calibration_injury_distribution(
                        run_id, severity, injury_count, injury_rate
                    ) VALUES (?, ?, ?, ?)
                    """,
                    rows,
                )

    def export_reports(self, duckdb_path: Path, output_dir: Path) -> tuple[list[Path], dict[str, int]]:
        try:
            import duckdb
        except ModuleNotFoundError as exc:  # pragma: no cover
            raise RuntimeError("duckdb is required for calibration export") from exc

        output_dir.mkdir(parents=True, exist_ok=True)
        stems = {
            "dev_calibration_runs": output_dir / "dev_calibration_runs",
            "dev_calibration_injury_distribution": output_dir / "dev_calibration_injury_distribution",
        }
        outputs: list[Path] = []
        row_counts: dict[str, int] = {}
        with duckdb.connect(str(duckdb_path)) as conn:
            conn.execute(_RUNS_DDL)
            conn.execute(_INJURY_DDL)
            for table, stem in stems.items():
                count_row = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()
                row_counts[table] = int(count_row[0]) if count_row is not None else 0
                csv_path = stem.with_suffix(".csv")
                parquet_path = stem.with_suffix(".parquet")
                conn.execute(f"COPY (SELECT * FROM {table}) TO '{csv_path.as_posix()}' (HEADER, DELIMITER ',')")
                conn.execute(f"COPY (SELECT * FROM {table}) TO '{parquet_path.as_posix()}' (FORMAT PARQUET)")
                outputs.extend([csv_path, parquet_path])
        return outputs, row_counts

    def build_tuned_config(self, tuning: TuningProfile) -> EngineConfig:
        if not tuning.weight_multipliers:
            return load_engine_config()
        payload = load_packaged_payload("resolution_tuning.json")
        resources = payload.get("resources")
        if not isinstance(resources, list):
            raise ValueError("resolution_tuning payload resources must be list")
        tuned_resources = copy.deepcopy(resources)
        weights = next((entry for entry in tuned_resources if entry.get("id") == "chance_weights"), None)
        if weights is None:
            raise ValueError("resolution_tuning payload missing chance_weights")
        for key, multiplier in tuning.weight_multipliers.items():
            if key not in weights:
                raise ValueError(f"chance_weights has no tunable '{key}'")
            weights[key] = float(weights[key]) * multiplier

        override: dict[str, Any] = {"manifest": dict(payload["manifest"]), "resources": tuned_resources}
        override["manifest"]["checksum"] = canonical_checksum(tuned_resources)
        override["manifest"]["resource_version"] = f"{override['manifest']['resource_version']}+{tuning.profile_id}"
        return load_engine_config({"resolution_tuning.json": override})

    def _run_id(self, request: CalibrationRunRequest) -> str:
        # Seeded batches are reproducible, so re-running one replaces its stored row.
        if request.seed is None:
            return make_id("cal")
        return stable_id(
            "cal",
            request.quest_rank.value,
            request.party_rank.value,
            request.party_size,
            request.sample_count,
            request.stat_profile.value,
            request.can_kill,
            request.tuning_profile_id,
            request.seed,
        )

    def _default_tuning_profiles(self) -> dict[str, TuningProfile]:
        profiles = [
            TuningProfile(profile_id="neutral", description="No tuning multipliers"),
            TuningProfile(
                profile_id="stat_heavy",
                description="Amplify stat contributions to check rank expectations",
                weight_multipliers={"primary_weight": 1.5, "secondary_weight": 1.5},
            ),
            TuningProfile(
                profile_id="luck_heavy",
                description="Amplify luck for reward and chance diagnostics",
                weight_multipliers={"luck_weight": 2.0},
            ),
            TuningProfile(
                profile_id="lethal",
                description="Raise death chance on can-kill calibration quests",
                death_chance_multiplier=1.5,
            ),
        ]
        return {profile.profile_id: profile for profile in profiles}
