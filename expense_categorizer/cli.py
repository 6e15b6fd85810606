"""CLI for the ``expense_categorizer`` package.

A Typer application over the library: parse a bank export, categorize it,
look for recurring charges, review categories interactively and manage the
learned rules. Environment variables (notably ``OPENAI_API_KEY``) are loaded
from a local ``.env`` with ``python-dotenv`` before any command runs.

Expected failures (unreadable file, nothing parsed, bad import file) print a
single ``Error: ...`` line to stderr and exit with status 1.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import ArgumentInfo, OptionInfo

from .cache import CacheSweeper, get_default_cache
from .categories import CATEGORIES
from .categorize import Categorizer
from .classifier import OpenAIClassifier
from .config import Settings, load_settings
from .exporter import export_to_csv
from .ingest import parse_upload
from .logging_setup import configure_logging, get_logger
from .merchants import rule_key
from .models import CategorizationResult, Transaction
from .recurring import detect_recurring
from .rules import JsonFileRuleStore, LearnedRules, RuleImportError, RuleStore

_logger = get_logger("expense_categorizer.cli")


# ---- Small module-level helpers used by CLI commands -------------------------


def _fail(message: str) -> typer.Exit:
    print(f"Error: {message}", file=sys.stderr)
    return typer.Exit(1)


def _open_rule_store(settings: Settings) -> RuleStore:
    """SQL store when ``DATABASE_URL`` is set, the JSON file otherwise."""

    if settings.database_url:
        # Deferred so JSON-only use never touches SQLAlchemy engines
        from .persistence import SqlRuleStore

        return SqlRuleStore(settings.database_url)
    return JsonFileRuleStore(settings.rules_path)


def _learned_rules(settings: Settings) -> LearnedRules:
    return LearnedRules(_open_rule_store(settings))


def _load_transactions(path: Path) -> list[Transaction]:
    """Read and parse ``path``; row errors are reported as warnings."""

    try:
        data = path.read_bytes()
    except FileNotFoundError:
        raise _fail(f"File not found: {path}") from None
    except PermissionError:
        raise _fail(f"Permission denied: {path}") from None
    except OSError as e:
        raise _fail(f"Unable to read '{path}': {e}") from None

    parsed = parse_upload(path.name, data)
    if not parsed.transactions:
        detail = "; ".join(parsed.errors) if parsed.errors else "no transactions found"
        raise _fail(f"Failed to parse {path.name}: {detail}")
    for err in parsed.errors:
        print(f"Warning: {err}", file=sys.stderr)
    _logger.info(
        "cli:parsed format=%s transactions=%d errors=%d",
        parsed.format,
        len(parsed.transactions),
        len(parsed.errors),
    )
    return parsed.transactions


def _categorize(
    transactions: list[Transaction], *, settings: Settings, use_ai: bool
) -> CategorizationResult:
    classifier = None
    if use_ai and settings.ai_enabled:
        classifier = OpenAIClassifier(model=settings.model, timeout=settings.ai_timeout_seconds)
    elif use_ai:
        _logger.info("cli:ai_disabled reason=no_api_key")

    cache = get_default_cache()
    categorizer = Categorizer(
        classifier=classifier, cache=cache, rules=_learned_rules(settings)
    )
    with CacheSweeper(cache, interval_seconds=settings.sweep_interval_seconds):
        return categorizer.categorize(transactions)


def _format_confidence(value: float | None) -> str:
    return "N/A" if value is None else f"{round(value * 100)}%"


def _print_result(result: CategorizationResult) -> None:
    for item in result.transactions:
        print(
            f"{item.date}\t{item.amount:.2f}\t{item.category}\t"
            f"{_format_confidence(item.confidence)}\t{item.description}"
        )
    print()
    print(f"Total expenses: {result.total_expenses:.2f}")
    print(f"Total income: {result.total_income:.2f}")
    for s in result.category_summary:
        print(f"  {s.category:<18} {s.total:>10.2f}  {s.count:>4}  {s.percentage:5.1f}%")
    print(
        f"Sources: rules={result.rule_matches} cache={result.cache_hits} "
        f"ai={result.ai_categorized} fallback={result.fallback_categorized}"
    )


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Categorize bank and credit card exports (CSV, OFX/QFX, Excel) and find "
        "recurring subscriptions. Loads OPENAI_API_KEY from a local .env."
    ),
)
rules_app = typer.Typer(no_args_is_help=True, help="Manage learned categorization rules.")
app.add_typer(rules_app, name="rules")

# Module-level argument/option objects to satisfy ruff B008 (no calls in
# parameter defaults).
FILE_ARGUMENT: ArgumentInfo = typer.Argument(
    ...,
    help="Bank export to read (.csv, .txt, .ofx, .qfx, .xlsx)",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports a friendly error
)
NO_AI_OPTION: OptionInfo = typer.Option(
    "--no-ai", help="Skip the AI classifier; use rules, cache and heuristics only."
)
OUTPUT_OPTION: OptionInfo = typer.Option(
    "--output", "-o", help="Write the categorized transactions to this CSV file."
)
WITH_RECURRING_OPTION: OptionInfo = typer.Option(
    "--with-recurring", help="Prepend a recurring-subscription summary to the CSV."
)


@app.command("categorize")
def categorize_cmd(
    file: Annotated[Path, FILE_ARGUMENT],
    *,
    no_ai: Annotated[bool, NO_AI_OPTION] = False,
    output: Annotated[Path | None, OUTPUT_OPTION] = None,
    with_recurring: Annotated[bool, WITH_RECURRING_OPTION] = False,
) -> None:
    """Categorize every transaction in FILE and print a spending summary."""

    settings = load_settings()
    transactions = _load_transactions(file)
    result = _categorize(transactions, settings=settings, use_ai=not no_ai)
    _print_result(result)

    if output is not None:
        recurring = detect_recurring(result.transactions) if with_recurring else None
        try:
            output.write_text(export_to_csv(result.transactions, recurring), encoding="utf-8")
        except OSError as e:
            raise _fail(f"Unable to write '{output}': {e}") from None
        print(f"Wrote {len(result.transactions)} transactions to {output}")


@app.command("recurring")
def recurring_cmd(file: Annotated[Path, FILE_ARGUMENT]) -> None:
    """Detect recurring charges and subscriptions in FILE."""

    settings = load_settings()
    transactions = _load_transactions(file)
    result = _categorize(transactions, settings=settings, use_ai=False)
    analysis = detect_recurring(result.transactions)

    if not analysis.recurring:
        print("No recurring charges found.")
        return
    for group in analysis.groups:
        print(f"{group.group_name} ({group.count}): {group.total_monthly:.2f}/month")
        for r in group.subscriptions:
            print(
                f"  {r.merchant:<28} {r.frequency:<9} {r.average_amount:>8.2f}  "
                f"x{r.occurrences}  next {r.next_expected_date or 'N/A'}  "
                f"confidence {_format_confidence(r.confidence)}"
            )
    print()
    print(f"Total monthly: {analysis.total_monthly_spend:.2f}")
    print(f"Total annual: {analysis.total_annual_spend:.2f}")
    print(f"Small monthly charges (< $20): {analysis.hidden_count}")


@app.command("review")
def review_cmd(
    file: Annotated[Path, FILE_ARGUMENT],
    *,
    no_ai: Annotated[bool, NO_AI_OPTION] = False,
) -> None:
    """Review categories merchant by merchant; every change becomes a learned rule.

    The current category is pre-filled: Enter keeps it, Tab or Down opens the
    category list, and typing a prefix completes inline.
    """

    # Deferred so non-interactive commands never import prompt_toolkit
    from .term_ui import select_category

    settings = load_settings()
    transactions = _load_transactions(file)
    result = _categorize(transactions, settings=settings, use_ai=not no_ai)
    rules = _learned_rules(settings)

    seen: set[str] = set()
    changed = 0
    try:
        for item in result.transactions:
            pattern = rule_key(item.description)
            if pattern in seen:
                continue
            seen.add(pattern)
            print(f"{item.date}  {item.amount:.2f}  {item.description}")
            chosen = select_category(CATEGORIES, default=item.category)
            if chosen == item.category:
                continue
            update = rules.create_or_update_rule(item.description, chosen)
            changed += 1
            verb = "Learned" if update.is_new_rule else "Updated"
            print(f"{verb} rule: {update.rule.merchant_pattern} -> {chosen}")
    except (KeyboardInterrupt, EOFError):
        print("Review stopped.")
    print(f"Reviewed {len(seen)} merchants, {changed} rule(s) saved.")


@app.command("teach")
def teach_cmd(
    description: Annotated[str, typer.Argument(help="Transaction description to learn from")],
    category: Annotated[str, typer.Argument(help="Category to assign")],
) -> None:
    """Create or update a learned rule mapping DESCRIPTION's merchant to CATEGORY."""

    rules = _learned_rules(load_settings())
    try:
        update = rules.create_or_update_rule(description, category)
    except ValueError as e:
        raise _fail(f"{e}. Valid categories: {', '.join(CATEGORIES)}") from None
    verb = "Created" if update.is_new_rule else "Updated"
    print(f"{verb} rule {update.rule.id}: {update.rule.merchant_pattern} -> {update.rule.category}")


@rules_app.command("list")
def rules_list_cmd(
    limit: Annotated[int, typer.Option(help="Show at most this many rules.")] = 50,
) -> None:
    """List learned rules, most used first."""

    rules = _learned_rules(load_settings())
    top = rules.top_rules(limit)
    if not top:
        print("No learned rules.")
        return
    for r in top:
        print(f"{r.id}\t{r.merchant_pattern}\t{r.category}\tapplied={r.applied_count}")
    print(f"{rules.count()} rule(s) total.")


@rules_app.command("delete")
def rules_delete_cmd(rule_id: Annotated[str, typer.Argument(help="Rule id to delete")]) -> None:
    """Delete one learned rule by id."""

    if not _learned_rules(load_settings()).delete_rule(rule_id):
        raise _fail(f"No rule with id {rule_id}")
    print(f"Deleted rule {rule_id}")


@rules_app.command("clear")
def rules_clear_cmd(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation.")] = False,
) -> None:
    """Delete every learned rule."""

    if not yes and not typer.confirm("Delete all learned rules?"):
        raise typer.Exit(1)
    _learned_rules(load_settings()).clear_all_rules()
    print("All learned rules deleted.")


@rules_app.command("export")
def rules_export_cmd(
    output: Annotated[Path | None, OUTPUT_OPTION] = None,
) -> None:
    """Export learned rules as JSON to stdout or a file."""

    text = _learned_rules(load_settings()).export_as_json()
    if output is None:
        print(text)
        return
    try:
        output.write_text(text, encoding="utf-8")
    except OSError as e:
        raise _fail(f"Unable to write '{output}': {e}") from None
    print(f"Exported rules to {output}")


@rules_app.command("import")
def rules_import_cmd(
    file: Annotated[Path, typer.Argument(help="JSON export to import", dir_okay=False)],
) -> None:
    """Merge rules from a JSON export; existing patterns are kept."""

    try:
        text = file.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise _fail(f"File not found: {file}") from None
    except OSError as e:
        raise _fail(f"Unable to read '{file}': {e}") from None
    try:
        outcome = _learned_rules(load_settings()).import_from_json(text)
    except RuleImportError as e:
        raise _fail(str(e)) from None
    print(f"Imported {outcome.imported} rule(s), skipped {outcome.skipped}.")


@app.callback()
def _root() -> None:
    """Load ``.env`` from the working directory and configure logging."""

    # override=False keeps variables already set in the environment
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    app()
