"""
CLI entry point for the pyramid ladder.

Parses arguments, wires storage and the ladder service, and renders
results as tables.
"""

import argparse
import json
import sys
import time
from argparse import Namespace
from pathlib import Path
from typing import TypedDict

from prettytable import PrettyTable

from .exceptions import (
    IneligibleChallengeError,
    InvariantViolation,
    LadderError,
    NotFoundError,
    ValidationError,
)
from .ladder import ChallengePreview, LadderConfig, LadderService
from .logging_config import get_logger, setup_logging
from .models import ContactInfo, Movement, Pair, RankedPair
from .movement import MovementPlan
from .storage.jsonl_storage import JSONLStorage

# Seed roster loaded by `demo`, best pair first
SAMPLE_PAIRS: list[tuple[str, str, str]] = [
    ("João Silva", "Pedro Santos", "(11) 99999-0001"),
    ("Ana Costa", "Maria Oliveira", "(11) 99999-0002"),
    ("Carlos Lima", "Bruno Souza", "(11) 99999-0003"),
    ("Lucas Pereira", "Rafael Alves", "(11) 99999-0004"),
    ("Paula Ferreira", "Carla Rodrigues", "(11) 99999-0005"),
    ("Diego Martins", "Marcos Gomes", "(11) 99999-0006"),
    ("Fernanda Ribeiro", "Júlia Carvalho", "(11) 99999-0007"),
]


class CLIArgs(TypedDict):
    """Typed representation of the global CLI arguments."""
    data_dir: str
    capacity: int | None
    log_level: str
    log_file: str
    debug: bool
    command: str


def parse_args(argv: list[str] | None = None) -> Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="pyramid-ladder",
        description="Pyramid Ladder - challenge ranking for beach-tennis pairs",
    )

    _ = parser.add_argument(
        "--data-dir",
        default="./ladder_data",
        help="Directory holding pairs, settings and movement history (default: ./ladder_data)"
    )
    _ = parser.add_argument(
        "--capacity",
        type=int,
        default=None,
        help="Maximum number of pairs for a new roster (default: 45)"
    )
    _ = parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="WARNING",
        help="Set logging level (default: WARNING)"
    )
    _ = parser.add_argument(
        "--log-file",
        default="pyramid_ladder.log",
        help="Log file path, empty to disable (default: pyramid_ladder.log)"
    )
    _ = parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    admit = sub.add_parser("admit", help="Admit a new pair at the bottom of the pyramid")
    _ = admit.add_argument("player_a")
    _ = admit.add_argument("player_b")
    _ = admit.add_argument("--phone", default="")
    _ = admit.add_argument("--email", default="")
    _ = admit.add_argument("--notes", default="")

    remove = sub.add_parser("remove", help="Remove a pair and close the gap")
    _ = remove.add_argument("pair", help="Pair id, or #RANK")

    _ = sub.add_parser("list", help="List pairs in rank order")
    _ = sub.add_parser("pyramid", help="Show the pyramid level by level")

    check = sub.add_parser("check", help="Check whether a challenge is allowed")
    _ = check.add_argument("challenger", help="Pair id, or #RANK")
    _ = check.add_argument("target", help="Pair id, or #RANK")

    targets = sub.add_parser("targets", help="List the pairs a pair may challenge")
    _ = targets.add_argument("pair", help="Pair id, or #RANK")

    challenge = sub.add_parser("challenge", help="Record a challenge result")
    _ = challenge.add_argument("challenger", help="Pair id, or #RANK")
    _ = challenge.add_argument("defender", help="Pair id, or #RANK")
    _ = challenge.add_argument(
        "--result",
        choices=["won", "lost"],
        required=True,
        help="Result from the challenger's point of view"
    )
    _ = challenge.add_argument("--yes", action="store_true", help="Apply without asking for confirmation")

    reposition = sub.add_parser("reposition", help="Move a pair to another rank")
    _ = reposition.add_argument("pair", help="Pair id, or #RANK")
    _ = reposition.add_argument("rank", type=int)

    edit = sub.add_parser("edit", help="Edit player names or contact details")
    _ = edit.add_argument("pair", help="Pair id, or #RANK")
    _ = edit.add_argument("--players", nargs=2, metavar=("PLAYER_A", "PLAYER_B"))
    _ = edit.add_argument("--phone")
    _ = edit.add_argument("--email")
    _ = edit.add_argument("--notes")

    find = sub.add_parser("find", help="Find a pair by phone number")
    _ = find.add_argument("phone")

    threshold = sub.add_parser("threshold", help="Show or set the top-challenge position limit")
    _ = threshold.add_argument("value", type=int, nargs="?")

    _ = sub.add_parser("stats", help="Roster statistics")

    history = sub.add_parser("history", help="Movement history")
    _ = history.add_argument("pair", nargs="?", help="Pair id, or #RANK")

    _ = sub.add_parser("demo", help="Load sample pairs into an empty roster")

    export = sub.add_parser("export", help="Write every pair to a JSON backup file")
    _ = export.add_argument("file")

    import_ = sub.add_parser("import", help="Replace the roster with the pairs of a JSON backup file")
    _ = import_.add_argument("file")
    _ = import_.add_argument("--yes", action="store_true", help="Replace without asking for confirmation")

    return parser.parse_args(argv)


def args_to_typed(ns: Namespace) -> CLIArgs:
    """Convert argparse Namespace to typed CLIArgs."""
    return CLIArgs(
        data_dir=ns.data_dir,
        capacity=ns.capacity,
        log_level=ns.log_level,
        log_file=ns.log_file,
        debug=ns.debug,
        command=ns.command,
    )


def wire_service(args: CLIArgs) -> LadderService:
    """Wire storage and configuration into a LadderService."""
    logger = get_logger("wire_service")

    data_dir = Path(args["data_dir"])
    logger.info(f"Data directory: {data_dir}")
    storage = JSONLStorage.in_directory(data_dir)

    config = LadderConfig() if args["capacity"] is None else LadderConfig(capacity=args["capacity"])
    return LadderService(storage, config)


def resolve_pair(service: LadderService, ref: str) -> Pair:
    """Look a pair up by id, or by current rank when written as #RANK."""
    if ref.startswith("#"):
        try:
            rank = int(ref[1:])
        except ValueError:
            raise ValidationError(f"invalid rank reference: {ref}") from None
        for ranked in service.list_ranked_pairs():
            if ranked.rank == rank:
                return ranked.pair
        raise NotFoundError(f"No pair at rank {rank}")
    return service.get_pair(ref)


# ---- rendering ---------------------------------------------------------


def pairs_table(ranked_pairs: list[RankedPair]) -> PrettyTable:
    table = PrettyTable()
    table.field_names = ["Rank", "Level", "Slot", "ID", "Players", "W-L", "Points"]
    table.align["Rank"] = "r"
    table.align["Players"] = "l"
    table.align["Points"] = "r"
    for ranked in ranked_pairs:
        pair = ranked.pair
        table.add_row([
            ranked.rank,
            ranked.level,
            ranked.slot,
            pair.pair_id,
            pair.name,
            f"{pair.wins}-{pair.losses}",
            pair.points,
        ])
    return table


def render_pyramid(levels: list[list[RankedPair]]) -> str:
    """Text pyramid, one line per level, open slots on the last level marked."""
    if not levels:
        return "(empty pyramid)"

    lines = list[str]()
    for level, row in enumerate(levels, 1):
        cells = [f"{r.rank}. {r.pair.name}" for r in row]
        cells.extend("(open)" for _ in range(level - len(row)))
        lines.append(f"L{level}: " + " | ".join(cells))

    width = max(len(line) for line in lines)
    return "\n".join(line.center(width).rstrip() for line in lines)


def print_plan(title: str, plan: MovementPlan) -> None:
    print(title)
    for line in plan.description.splitlines():
        print(f"  {line}")


def history_table(service: LadderService, movements: list[Movement]) -> PrettyTable:
    names = dict[str, str]()
    table = PrettyTable()
    table.field_names = ["Time", "Pair", "Reason", "From", "To"]
    table.align["Pair"] = "l"
    for movement in movements:
        if movement.pair_id not in names:
            try:
                names[movement.pair_id] = service.get_pair(movement.pair_id).name
            except NotFoundError:
                names[movement.pair_id] = movement.pair_id
        table.add_row([
            time.strftime("%Y-%m-%d %H:%M", time.localtime(movement.timestamp)),
            names[movement.pair_id],
            movement.reason.value,
            "-" if movement.previous_rank is None else movement.previous_rank,
            "-" if movement.new_rank is None else movement.new_rank,
        ])
    return table


# ---- commands ----------------------------------------------------------


def cmd_admit(service: LadderService, ns: Namespace) -> None:
    contact = ContactInfo(phone=ns.phone, email=ns.email, notes=ns.notes)
    ranked = service.admit_pair((ns.player_a, ns.player_b), contact)
    print(
        f"Admitted {ranked.pair.name} ({ranked.pair.pair_id}) at rank {ranked.rank} "
        f"(level {ranked.level}, slot {ranked.slot})"
    )


def cmd_remove(service: LadderService, ns: Namespace) -> None:
    pair = resolve_pair(service, ns.pair)
    movements = service.remove_pair(pair.pair_id)
    print(f"Removed {pair.name}; {len(movements) - 1} pair(s) moved up")


def cmd_list(service: LadderService, ns: Namespace) -> None:
    ranked = service.list_ranked_pairs()
    if not ranked:
        print("No pairs registered")
        return
    print(pairs_table(ranked))
    print(f"{len(ranked)}/{service.capacity} pairs")


def cmd_pyramid(service: LadderService, ns: Namespace) -> None:
    print(render_pyramid(service.pyramid_levels()))


def cmd_check(service: LadderService, ns: Namespace) -> None:
    challenger = resolve_pair(service, ns.challenger)
    target = resolve_pair(service, ns.target)
    decision = service.evaluate_challenge(challenger.pair_id, target.pair_id)
    verdict = "ALLOWED" if decision.eligible else "NOT ALLOWED"
    print(f"{verdict} [{decision.rule.value}]: {decision.reason}")


def cmd_targets(service: LadderService, ns: Namespace) -> None:
    pair = resolve_pair(service, ns.pair)
    targets = service.challengeable_targets(pair.pair_id)
    if not targets:
        print(f"{pair.name} has no pair to challenge")
        return
    print(f"{pair.name} may challenge:")
    print(pairs_table(targets))


def cmd_challenge(service: LadderService, ns: Namespace) -> None:
    challenger = resolve_pair(service, ns.challenger)
    defender = resolve_pair(service, ns.defender)
    challenger_won = ns.result == "won"

    preview: ChallengePreview = service.preview_challenge(challenger.pair_id, defender.pair_id)
    if not preview.decision.eligible:
        raise IneligibleChallengeError(preview.decision.reason, preview.decision.rule.value)

    plan = preview.if_won if challenger_won else preview.if_lost
    assert plan is not None, "eligible preview carries both plans"
    print_plan("Result to apply:", plan)

    if not ns.yes:
        answer = input("Apply this result? [y/N] ").strip().lower()
        if answer not in ("y", "yes"):
            print("Cancelled")
            return

    resolution = service.resolve_challenge(challenger.pair_id, defender.pair_id, challenger_won)
    print(f"Applied: {len(resolution.movements)} pair(s) changed rank")


def cmd_reposition(service: LadderService, ns: Namespace) -> None:
    pair = resolve_pair(service, ns.pair)
    resolution = service.reposition_pair(pair.pair_id, ns.rank)
    print_plan("Repositioned:", resolution.plan)


def cmd_edit(service: LadderService, ns: Namespace) -> None:
    pair = resolve_pair(service, ns.pair)
    contact = None
    if ns.phone is not None or ns.email is not None or ns.notes is not None:
        contact = ContactInfo(
            phone=pair.contact.phone if ns.phone is None else ns.phone,
            email=pair.contact.email if ns.email is None else ns.email,
            notes=pair.contact.notes if ns.notes is None else ns.notes,
        )
    updated = service.update_pair(pair.pair_id, players=ns.players, contact=contact)
    print(f"Updated {updated.name} ({updated.pair_id})")


def cmd_find(service: LadderService, ns: Namespace) -> None:
    pair = service.find_by_phone(ns.phone)
    if pair is None:
        print(f"No pair with phone {ns.phone}")
        return
    print(f"{pair.name} ({pair.pair_id}) at rank {pair.rank}")


def cmd_threshold(service: LadderService, ns: Namespace) -> None:
    if ns.value is not None:
        service.set_threshold(ns.value)
        print(f"Top-challenge position limit set to {ns.value}")
    else:
        print(f"Top-challenge position limit: {service.get_threshold()}")


def cmd_stats(service: LadderService, ns: Namespace) -> None:
    stats = service.statistics()
    print(f"Pairs:     {stats.total_pairs}/{stats.capacity}")
    print(f"Vacancies: {stats.vacancies}")
    print(f"Levels:    {stats.levels}")
    if stats.most_wins is not None:
        print(f"Most wins: {stats.most_wins.name} ({stats.most_wins.wins})")
    if stats.most_active is not None:
        print(f"Most active: {stats.most_active.name} ({stats.most_active.games_played} games)")


def cmd_history(service: LadderService, ns: Namespace) -> None:
    pair_id = resolve_pair(service, ns.pair).pair_id if ns.pair else None
    movements = service.movement_history(pair_id)
    if not movements:
        print("No movements recorded")
        return
    print(history_table(service, movements))


def cmd_export(service: LadderService, ns: Namespace) -> None:
    backup = service.export_roster()
    path = Path(ns.file)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(backup, f, indent=2, ensure_ascii=False)
    print(f"Exported {len(backup['pairs'])} pair(s) to {path}")


def cmd_import(service: LadderService, ns: Namespace) -> None:
    path = Path(ns.file)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise NotFoundError(f"Backup file not found: {path}") from None
    except json.JSONDecodeError as e:
        raise ValidationError(f"invalid backup: {path} is not valid JSON ({e})") from e

    if not ns.yes:
        answer = input(f"Replace all {service.active_count} pair(s) with the backup? [y/N] ").strip().lower()
        if answer not in ("y", "yes"):
            print("Cancelled")
            return

    active = service.import_roster(data)
    print(f"Imported backup: {active} active pair(s)")


def cmd_demo(service: LadderService, ns: Namespace) -> None:
    if service.active_count:
        raise ValidationError("demo data can only be loaded into an empty roster")
    for player_a, player_b, phone in SAMPLE_PAIRS:
        _ = service.admit_pair((player_a, player_b), ContactInfo(phone=phone))
    print(f"Loaded {len(SAMPLE_PAIRS)} sample pairs")
    print(render_pyramid(service.pyramid_levels()))


COMMANDS = {
    "admit": cmd_admit,
    "remove": cmd_remove,
    "list": cmd_list,
    "pyramid": cmd_pyramid,
    "check": cmd_check,
    "targets": cmd_targets,
    "challenge": cmd_challenge,
    "reposition": cmd_reposition,
    "edit": cmd_edit,
    "find": cmd_find,
    "threshold": cmd_threshold,
    "stats": cmd_stats,
    "history": cmd_history,
    "demo": cmd_demo,
    "export": cmd_export,
    "import": cmd_import,
}


def run(argv: list[str] | None = None) -> int:
    """Run one CLI command and return the exit status."""
    raw_args = parse_args(argv)
    args = args_to_typed(raw_args)

    setup_logging(level=args["log_level"], debug=args["debug"], log_file=args["log_file"] or None)
    logger = get_logger("main")
    logger.debug(f"Running command: {args['command']}")

    try:
        service = wire_service(args)
        COMMANDS[args["command"]](service, raw_args)
    except InvariantViolation as e:
        logger.error(f"Invariant violation: {e}")
        print(f"Internal error: {e}", file=sys.stderr)
        return 2
    except LadderError as e:
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        print("\nInterrupted")
        return 1
    return 0


def main() -> None:
    """Main CLI entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
