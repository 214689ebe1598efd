"""Command-line interface for contactcore."""

import argparse
import json
import sys
from typing import Any, Dict, List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import ConfigManager
from .error_handling import ContactCoreError, handle_errors
from .logging_config import log_event, setup_logging
from .models import CategorizedDuplicates, Contact, DuplicateGroup
from .services import ContactManager

console = Console()
err_console = Console(stderr=True)


def _load_manager(args) -> ContactManager:
    manager = ContactManager(config=args.app_config)
    for path in args.files:
        manager.import_path(path)
    return manager


def _contact_table(contacts: Sequence[Contact], title: str, files: Dict[str, str]) -> Table:
    table = Table(title=title, box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right", style="dim", width=4)
    table.add_column("Name", style="cyan")
    table.add_column("Phones")
    table.add_column("Emails")
    table.add_column("Organization")
    table.add_column("File", style="dim")

    for idx, contact in enumerate(contacts, 1):
        table.add_row(
            str(idx),
            contact.name,
            ", ".join(p.value for p in contact.phones),
            ", ".join(e.value for e in contact.emails),
            contact.organization,
            files.get(contact.source_file, "Unknown"),
        )
    return table


def _group_table(groups: Sequence[DuplicateGroup], title: str) -> Table:
    table = Table(title=title, box=box.ROUNDED, show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right", style="dim", width=4)
    table.add_column("Contacts", style="cyan")
    table.add_column("Matched On")
    table.add_column("Similarity", justify="right", style="green")
    table.add_column("Conflicts", style="yellow")

    for idx, group in enumerate(groups, 1):
        table.add_row(
            str(idx),
            "\n".join(c.name for c in group.contacts),
            group.matched_on,
            f"{group.similarity}%",
            ", ".join(group.conflict_fields or []),
        )
    return table


def _summary_table(categories: CategorizedDuplicates) -> Table:
    table = Table(title="Duplicate Summary", box=box.SIMPLE, header_style="bold")
    table.add_column("Category")
    table.add_column("Groups", justify="right")
    for name, count in categories.stats().items():
        table.add_row(name, str(count))
    return table


@handle_errors(reraise=True, convert_to=ContactCoreError)
def _write_report(path: str, report: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, default=str)


@handle_errors(reraise=True, convert_to=ContactCoreError)
def _write_cards(path: str, text: str) -> None:
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(text)


def inspect_files(args) -> int:
    """Decode files and list their contacts."""
    manager = _load_manager(args)
    files = {f.id: f.name for f in manager.get_files()}
    contacts = manager.get_contacts(search=args.search)

    console.print(_contact_table(contacts, f"Contacts ({len(contacts)})", files))
    return 0


def analyze_files(args) -> int:
    """Categorize duplicates, optionally with the pairwise fuzzy finder."""
    manager = _load_manager(args)
    categories = manager.analyze()

    console.print(f"Analyzed [bold]{manager.total_contacts()}[/bold] contacts")
    console.print(_summary_table(categories))
    for name in CategorizedDuplicates.CATEGORY_NAMES:
        groups = categories.category(name)
        if groups:
            console.print(_group_table(groups, name))

    report: Dict[str, Any] = {
        "totalContacts": manager.total_contacts(),
        "stats": categories.stats(),
        "categories": categories.model_dump(by_alias=True, mode="json"),
    }

    if args.fuzzy:
        fuzzy_groups = manager.find_duplicates(args.threshold)
        console.print(_group_table(fuzzy_groups, f"Pairwise matches ({len(fuzzy_groups)})"))
        report["fuzzy"] = [g.model_dump(by_alias=True, mode="json") for g in fuzzy_groups]

    if args.output:
        _write_report(args.output, report)
        console.print(f"Report saved to: {args.output}")

    return 0


def dedupe_files(args) -> int:
    """Auto-merge duplicate groups and write the cleaned contacts."""
    manager = _load_manager(args)
    before = manager.total_contacts()
    categories = manager.analyze()

    groups: List[DuplicateGroup] = []
    for name in args.categories:
        groups.extend(categories.category(name))

    if args.dry_run:
        console.print("[yellow]DRY RUN[/yellow] - no merges applied, nothing written")
        console.print(_summary_table(categories))
        console.print(f"Would merge {len(groups)} groups from {', '.join(args.categories)}")
        return 0

    results = manager.auto_merge(groups)
    failed = [r for r in results if not r.success]

    console.print(
        f"Merged {len(results) - len(failed)} of {len(results)} groups: "
        f"{before} -> {manager.total_contacts()} contacts"
    )
    for result in failed:
        console.print(f"[red]Skipped[/red] {', '.join(result.contact_ids)}: {escape(result.error or '')}")

    _write_cards(args.output, manager.export_to_vcf())
    log_event(
        __name__, "dedupe_completed",
        merged_groups=len(results) - len(failed), failed_groups=len(failed),
        contacts_before=before, contacts_after=manager.total_contacts(), output=args.output,
    )
    console.print(f"Written to: {args.output}")
    return 0


def export_files(args) -> int:
    """Re-encode files canonically."""
    manager = _load_manager(args)
    _write_cards(args.output, manager.export_to_vcf())
    console.print(f"Exported {manager.total_contacts()} contacts to: {args.output}")
    return 0


def config_template(args) -> int:
    path = ConfigManager(use_dotenv=False).save_template(args.path)
    console.print(f"Configuration template saved to: {path}")
    return 0


def _category_name(value: str) -> str:
    try:
        CategorizedDuplicates().category(value)
    except KeyError:
        choices = ", ".join(CategorizedDuplicates.CATEGORY_NAMES)
        raise argparse.ArgumentTypeError(f"unknown category '{value}' (choose from {choices})")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="contactcore",
        description="Inspect, deduplicate and re-export vCard contact files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List the contacts in a file
  contactcore inspect contacts.vcf

  # Show duplicate groups, including pairwise fuzzy matches
  contactcore analyze phone.vcf sim.vcf --fuzzy --threshold 85

  # Merge exact duplicates and write the result
  contactcore dedupe contacts.vcf --output cleaned.vcf
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-c", "--config", help="Path to configuration file")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING, ...)")
    parser.add_argument("--log-format", choices=["json", "text"], help="Log output format")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    inspect_parser = subparsers.add_parser("inspect", help="Decode files and list contacts")
    inspect_parser.add_argument("files", nargs="+", help="vCard files")
    inspect_parser.add_argument("-s", "--search", help="Only show contacts matching this text")
    inspect_parser.set_defaults(handler=inspect_files)

    analyze_parser = subparsers.add_parser("analyze", help="Find duplicate groups")
    analyze_parser.add_argument("files", nargs="+", help="vCard files")
    analyze_parser.add_argument("--fuzzy", action="store_true", help="Also run the pairwise finder")
    analyze_parser.add_argument("--threshold", type=int, help="Fuzzy match threshold (50-100)")
    analyze_parser.add_argument("-o", "--output", help="Save a JSON report to file")
    analyze_parser.set_defaults(handler=analyze_files)

    dedupe_parser = subparsers.add_parser("dedupe", help="Merge duplicates and export")
    dedupe_parser.add_argument("files", nargs="+", help="vCard files")
    dedupe_parser.add_argument("-o", "--output", required=True, help="Output vCard file")
    dedupe_parser.add_argument(
        "--categories",
        nargs="+",
        type=_category_name,
        default=["exactMatch"],
        help="Duplicate categories to merge (default: exactMatch)",
    )
    dedupe_parser.add_argument(
        "--dry-run", action="store_true", help="Preview without merging or writing"
    )
    dedupe_parser.set_defaults(handler=dedupe_files)

    export_parser = subparsers.add_parser("export", help="Re-encode files canonically")
    export_parser.add_argument("files", nargs="+", help="vCard files")
    export_parser.add_argument("-o", "--output", required=True, help="Output vCard file")
    export_parser.set_defaults(handler=export_files)

    template_parser = subparsers.add_parser("config-template", help="Write a configuration template")
    template_parser.add_argument("path", help="Where to write the template")
    template_parser.set_defaults(handler=config_template)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        if args.command != "config-template":
            args.app_config = ConfigManager(args.config).load()
            logging_config = args.app_config.logging
            setup_logging(
                format=args.log_format or logging_config.format,
                level=args.log_level or logging_config.level,
                log_file=logging_config.log_file,
            )
        return args.handler(args)
    except KeyboardInterrupt:
        err_console.print("\nInterrupted by user")
        return 1
    except ContactCoreError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
