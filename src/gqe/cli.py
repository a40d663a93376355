from __future__ import annotations

import argparse
from pathlib import Path

from gqe.contracts import CalibrationRunRequest, CalibrationStatProfile, Rank, Stat
from gqe.core import EngineIntegrityError, persist_forensic_artifact, seeded_random
from gqe.quests import CalibrationService, QuestEngine, run_quest_contract_audit
from gqe.quests.samples import sample_party, sample_quest


def _rank(value: str) -> Rank:
    try:
        return Rank(value.upper())
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"rank must be one of {', '.join(r.value for r in Rank)}") from exc


def _cmd_audit(args: argparse.Namespace) -> int:
    report = run_quest_contract_audit()
    for check in report.checks:
        status = "PASS" if check.passed else "FAIL"
        print(f"[{status}] {check.check_id}: {check.evidence}")
    print(f"audit {'passed' if report.passed else 'failed'} ({len(report.checks)} checks)")
    return 0 if report.passed else 1


def _cmd_chance(args: argparse.Namespace) -> int:
    engine = QuestEngine()
    quest = sample_quest(args.quest_rank, args.stat)
    if args.seed is None:
        heroes = sample_party(args.party_rank, args.party_size, engine.config)
    else:
        heroes = sample_party(
            args.party_rank,
            args.party_size,
            engine.config,
            CalibrationStatProfile.SPREAD,
            seeded_random(args.seed),
        )
    breakdown = engine.success_breakdown(quest, heroes)
    print(f"{args.party_size}x {args.party_rank.value} party vs {args.quest_rank.value} quest ({args.stat})")
    print(f"party {args.stat}: {' '.join(str(hero.stats[args.stat]) for hero in heroes)}")
    for label in (
        "base",
        "rank_bonus",
        "primary_bonus",
        "secondary_bonus",
        "luck_bonus",
        "synergy_bonus",
        "affinity_bonus",
        "party_trait_bonus",
    ):
        print(f"- {label}: {getattr(breakdown, label):+.4f}")
    print(f"raw={breakdown.raw:.4f} final={breakdown.final:.4f}")
    return 0


def _cmd_calibrate(args: argparse.Namespace) -> int:
    service = CalibrationService()
    result = service.run_batch(
        CalibrationRunRequest(
            quest_rank=args.quest_rank,
            party_rank=args.party_rank,
            sample_count=args.samples,
            party_size=args.party_size,
            stat_profile=CalibrationStatProfile(args.stat_profile),
            can_kill=args.can_kill,
            tuning_profile_id=args.profile,
            seed=args.seed,
        )
    )
    print(
        f"{result.run_id}: success_rate={result.success_rate:.3f} mean_chance={result.mean_success_chance:.3f} "
        f"death_rate={result.death_rate:.3f} injury_rate={result.injury_rate:.3f} mean_gold={result.mean_gold:.1f}"
    )
    if args.duckdb is not None:
        try:
            service.persist_result(result, args.duckdb)
        except RuntimeError as exc:
            print(f"Persistence unavailable: {exc}")
            return 1
        print(f"persisted to {args.duckdb}")
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    try:
        outputs, row_counts = CalibrationService().export_reports(args.duckdb, args.out)
    except RuntimeError as exc:
        print(f"Export unavailable: {exc}")
        return 1
    print("Exported datasets:")
    for path in outputs:
        print(f"- {path}")
    for table, count in row_counts.items():
        print(f"{table}: {count} rows")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Guild quest resolution engine dev tools")
    parser.add_argument("--forensics", type=Path, default=Path("forensics"), help="directory for integrity artifacts")
    sub = parser.add_subparsers(dest="command", required=True)

    audit = sub.add_parser("audit", help="run the resolution contract audit matrix")
    audit.set_defaults(handler=_cmd_audit)

    chance = sub.add_parser("chance", help="print a success-chance breakdown for a sample party")
    chance.add_argument("--quest-rank", type=_rank, default=Rank.C)
    chance.add_argument("--party-rank", type=_rank, default=Rank.C)
    chance.add_argument("--party-size", type=int, default=4)
    chance.add_argument("--stat", choices=[s.value for s in Stat], default=Stat.STR.value)
    chance.add_argument("--seed", type=int, default=None, help="seed a spread of stats instead of rank-expected ones")
    chance.set_defaults(handler=_cmd_chance)

    calibrate = sub.add_parser("calibrate", help="run a Monte-Carlo calibration batch")
    calibrate.add_argument("--quest-rank", type=_rank, default=Rank.C)
    calibrate.add_argument("--party-rank", type=_rank, default=Rank.C)
    calibrate.add_argument("--party-size", type=int, default=4)
    calibrate.add_argument("--samples", type=int, default=500)
    calibrate.add_argument(
        "--stat-profile",
        choices=[p.value for p in CalibrationStatProfile],
        default=CalibrationStatProfile.RANK_EXPECTED.value,
    )
    calibrate.add_argument("--can-kill", action="store_true")
    calibrate.add_argument("--profile", default="neutral", help="tuning profile id")
    calibrate.add_argument("--seed", type=int, default=None, help="seed for deterministic batches")
    calibrate.add_argument("--duckdb", type=Path, default=None, help="analytics database to persist into")
    calibrate.set_defaults(handler=_cmd_calibrate)

    export = sub.add_parser("export", help="export calibration tables to CSV and Parquet")
    export.add_argument("--duckdb", type=Path, required=True)
    export.add_argument("--out", type=Path, default=Path("exports"))
    export.set_defaults(handler=_cmd_export)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.handler(args)
    except EngineIntegrityError as exc:
        path = persist_forensic_artifact(exc.artifact, args.forensics)
        print(f"Integrity failure {exc.code}: forensic artifact written to {path}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
