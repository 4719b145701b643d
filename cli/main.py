#!/usr/bin/env python3
"""
CD3 Prioritizer CLI - score and rank backlog items from the terminal.
"""

import sys
from pathlib import Path

from prioritizer import build_service, config, paths
from prioritizer.models import DIMENSIONS, Dimension
from prioritizer.observability import configure_logging
from prioritizer.service import OperationResult, PrioritizerService

_service: PrioritizerService | None = None


def get_service() -> PrioritizerService:
    global _service
    if _service is None:
        _service = build_service()
    return _service


def print_header(text: str):
    """Print a section header."""
    print(f"\n{'═' * 50}")
    print(f"  {text}")
    print(f"{'═' * 50}")


def print_table(headers: list, rows: list, widths: list = None):
    """Print a simple table."""
    if not widths:
        widths = [max(len(str(row[i])) for row in [headers] + rows) for i in range(len(headers))]

    header_str = " │ ".join(str(h).ljust(w) for h, w in zip(headers, widths))
    print(header_str)
    print("─" * len(header_str))

    for row in rows:
        print(" │ ".join(str(c)[:w].ljust(w) for c, w in zip(row, widths)))


def report(result: OperationResult, ok_message: str = "") -> bool:
    """Print the outcome of an operation. Returns its success flag."""
    if result.success:
        if ok_message:
            print(f"✓ {ok_message}")
    else:
        print(f"✗ {result.error}")
    return result.success


def resolve_item_id(ref: str) -> str:
    """Accept an item id or its 1-based position in the item list."""
    items = get_service().get_items()["items"]
    if any(item["id"] == ref for item in items):
        return ref
    if ref.isdigit() and 1 <= int(ref) <= len(items):
        return items[int(ref) - 1]["id"]
    return ref


def _fmt(value) -> str:
    return "-" if value in (None, 0) else f"{value:.2f}" if isinstance(value, float) else str(value)


# ==================== Items ====================


def cmd_add(args):
    """Add one item: add <name> [link]."""
    if not args:
        print("Usage: add <name> [link]")
        return False
    link = args[-1] if len(args) > 1 and args[-1].startswith(("http://", "https://")) else None
    name = " ".join(args[:-1] if link else args)
    result = get_service().add_item(name, link)
    return report(result, f"Added: {name}")


def cmd_bulk_add(args):
    """Add one item per line from a file or stdin: bulk-add [file|-]."""
    if args and args[0] != "-":
        try:
            text = Path(args[0]).read_text()
        except OSError as e:
            print(f"✗ Could not read {args[0]}: {e.strerror or e}")
            return False
    else:
        text = sys.stdin.read()
    result = get_service().bulk_add_items(text)
    if result.success:
        print(f"✓ Added {result['added']} of {result['total']} items")
        for error in result["errors"]:
            print(f"  ! {error}")
        return True
    return report(result)


def cmd_set(args):
    """Set a level: set <item> <urgency|value|duration> <0-3>."""
    if len(args) != 3 or not args[2].isdigit():
        print("Usage: set <item> <urgency|value|duration> <0-3>")
        return False
    item_id = resolve_item_id(args[0])
    result = get_service().set_item_property(item_id, args[1], int(args[2]))
    return report(result, f"{args[1]} = {args[2]}")


def cmd_list(args):
    """Show all items with their levels and scores."""
    service = get_service()
    stage = service.get_current_stage()["currentStage"]
    items = service.get_items()["items"]

    print_header(f"ITEMS ({len(items)}) - stage: {stage}")
    if not items:
        print("No items yet. Use 'add' or 'bulk-add'.")
        return True

    rows = []
    for i, item in enumerate(items, 1):
        rows.append(
            [
                i,
                item["name"],
                item["urgency"] or "-",
                item["value"] or "-",
                item["duration"] or "-",
                _fmt(item["costOfDelay"]),
                _fmt(item["CD3"]),
                item["sequence"] or "-",
                "" if item["active"] else "inactive",
            ]
        )
    print_table(
        ["#", "Name", "U", "V", "D", "CoD", "CD3", "Seq", ""], rows, [3, 32, 2, 2, 2, 6, 6, 4, 8]
    )
    return True


def cmd_results(args):
    """Show ranked results."""
    service = get_service()
    items = service.get_results()["items"]
    buckets = service.get_app_state()["state"]["buckets"]

    def title(dimension: Dimension, level: int) -> str:
        return buckets[dimension.value][str(level)]["title"] if level else "-"

    print_header("RESULTS")
    if not items:
        print("No items.")
        return True

    rows = []
    for i, item in enumerate(items, 1):
        marker = "*" if item["reordered"] else ""
        rows.append(
            [
                f"{item['sequence'] or i}{marker}",
                item["name"],
                title(Dimension.URGENCY, item["urgency"]),
                title(Dimension.VALUE, item["value"]),
                title(Dimension.DURATION, item["duration"]),
                _fmt(item["CD3"]),
                _fmt(item["confidenceWeightedCD3"]),
            ]
        )
    print_table(
        ["Rank", "Name", "Urgency", "Value", "Duration", "CD3", "cwCD3"],
        rows,
        [5, 32, 9, 7, 8, 6, 6],
    )
    return True


# ==================== Stages ====================


def cmd_advance(args):
    """Advance to the next stage."""
    result = get_service().advance_stage()
    return report(result, f"Stage: {result.get('currentStage')}")


def cmd_back(args):
    """Go back one stage."""
    result = get_service().back_stage()
    return report(result, f"Stage: {result.get('currentStage')}")


def cmd_stage(args):
    """Show the stage map, or jump: stage [name]."""
    service = get_service()
    if args:
        result = service.set_current_stage(" ".join(args))
        return report(result, f"Stage: {result.get('currentStage')}")

    nav = service.get_stage_navigation_state()
    print_header(f"STAGE: {nav['current_stage']}")
    rows = [[s["display_name"], s["status"], s["reason"]] for s in nav["stages"]]
    print_table(["Stage", "Status", "Reason"], rows, [10, 8, 60])
    return True


def cmd_lock(args):
    """Lock earlier stages."""
    return report(get_service().set_locked(True), "Locked")


def cmd_unlock(args):
    """Allow editing levels of earlier stages."""
    return report(get_service().set_locked(False), "Unlocked")


# ==================== Buckets ====================


def cmd_weight(args):
    """Set a bucket weight: weight <dimension> <level> <weight>."""
    if len(args) != 3:
        print("Usage: weight <urgency|value|duration> <1-3> <weight>")
        return False
    dimension, level, weight = args
    if not level.isdigit():
        print("Level must be 1, 2 or 3")
        return False
    result = get_service().update_bucket_field(dimension, int(level), "weight", weight)
    if result.success:
        print(f"✓ {dimension} level {level} weight = {weight} ({len(result['affected'])} items recomputed)")
        return True
    return report(result)


# ==================== Sequence ====================


def cmd_reorder(args):
    """Move an item in the results: reorder <item> <up|down>."""
    if len(args) != 2:
        print("Usage: reorder <item> <up|down>")
        return False
    result = get_service().reorder_item_sequence(resolve_item_id(args[0]), args[1])
    return report(result, f"Moved to position {result.get('sequence')}")


def cmd_reset_order(args):
    """Restore CD3 order in the results."""
    return report(get_service().reset_results_order(), "Results order reset")


# ==================== Survey ====================


def _parse_votes(raw: str) -> dict:
    counts = [part.strip() for part in raw.split(",")]
    if len(counts) != 4 or not all(c.isdigit() for c in counts):
        raise ValueError(raw)
    return {str(level): int(count) for level, count in enumerate(counts, 1)}


def cmd_survey(args):
    """
    Confidence survey:
      survey <item>                          show
      survey <item> delete                   remove
      survey <item> <scope> <urg> <val> <dur> submit, each as 4 counts "a,b,c,d"
    """
    if not args:
        print("Usage: survey <item> [delete | <scope> <urgency> <value> <duration>]")
        return False

    service = get_service()
    item_id = resolve_item_id(args[0])

    if len(args) == 1:
        result = service.get_confidence_survey(item_id)
        if not result.success:
            return report(result)
        survey = result["survey"]
        if survey is None:
            print("No survey for this item.")
            return True
        labels = service.get_confidence_level_labels()["labels"]
        for section, votes in survey.items():
            print(f"\n{section}")
            for level, count in votes.items():
                print(f"  {count:>3}  {labels[level]}")
        return True

    if args[1] == "delete":
        return report(service.delete_confidence_survey(item_id), "Survey deleted")

    if len(args) != 5:
        print("Usage: survey <item> <scope> <urgency> <value> <duration>")
        return False
    try:
        sections = [_parse_votes(raw) for raw in args[1:]]
    except ValueError as e:
        print(f"Invalid vote counts: {e}. Use four comma-separated integers, e.g. 0,1,2,0")
        return False

    data = dict(
        zip(
            ("scopeConfidence", "urgencyConfidence", "valueConfidence", "durationConfidence"),
            sections,
        )
    )
    result = service.submit_confidence_survey(item_id, data)
    if result.success:
        weighted = result["item"]["confidenceWeightedCD3"]
        print(f"✓ Survey saved ({result['selectionsCount']} selections), cwCD3 = {_fmt(weighted)}")
        return True
    return report(result)


# ==================== Export / reset ====================


def cmd_export(args):
    """Write the CSV export: export [path]."""
    filename, content = get_service().export_csv()
    target = Path(args[0]) if args else paths.out_dir() / filename
    try:
        target.write_text(content, encoding="utf-8")
    except OSError as e:
        print(f"✗ Could not write {target}: {e.strerror or e}")
        return False
    print(f"✓ Exported to {target}")
    return True


def cmd_reset(args):
    """Clear data: reset [items|all|settings]."""
    scope = args[0] if args else "all"
    service = get_service()
    if scope == "items":
        return report(service.clear_item_data_only(), "Items cleared, settings kept")
    if scope == "all":
        return report(service.clear_all_data(), "All items cleared, bucket settings kept")
    if scope == "settings":
        return report(service.clear_all_data(clear_settings=True), "Everything reset to defaults")
    print("Usage: reset [items|all|settings]")
    return False


def cmd_help(args):
    """Show help."""
    print_header("CD3 PRIORITIZER CLI")
    print(f"""
COMMANDS:

  add <name> [link]             Add an item (Item Listing stage only)
  bulk-add [file|-]             Add one item per line ("name, https://link")
  list                          Show items and scores
  set <item> <dim> <0-3>        Set {"/".join(d.value for d in DIMENSIONS)} for an item
  advance | back                Move through the workflow stages
  stage [name]                  Show the stage map, or jump to a stage
  lock | unlock                 Lock or unlock editing of earlier stages
  weight <dim> <level> <w>      Change a bucket weight
  results                       Show ranked results
  reorder <item> <up|down>      Move an item in the results
  reset-order                   Restore CD3 order
  survey <item> [...]           Show, submit or delete a confidence survey
  export [path]                 Write the CSV export
  reset [items|all|settings]    Clear data
  help                          Show this help

<item> is an item id or its number in 'list'.
""")
    return True


COMMANDS = {
    "add": cmd_add,
    "bulk-add": cmd_bulk_add,
    "set": cmd_set,
    "list": cmd_list,
    "ls": cmd_list,
    "results": cmd_results,
    "r": cmd_results,
    "advance": cmd_advance,
    "back": cmd_back,
    "stage": cmd_stage,
    "lock": cmd_lock,
    "unlock": cmd_unlock,
    "weight": cmd_weight,
    "reorder": cmd_reorder,
    "reset-order": cmd_reset_order,
    "survey": cmd_survey,
    "export": cmd_export,
    "reset": cmd_reset,
    "help": cmd_help,
    "h": cmd_help,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    argv = sys.argv[1:] if argv is None else argv
    configure_logging(config.CLI_LOG_LEVEL, config.LOG_JSON)

    if not argv:
        cmd_help([])
        return 0

    cmd, args = argv[0], argv[1:]
    if cmd not in COMMANDS:
        print(f"Unknown command: {cmd}")
        print("Run 'help' for available commands.")
        return 2
    return 0 if COMMANDS[cmd](args) else 1


if __name__ == "__main__":
    sys.exit(main())
