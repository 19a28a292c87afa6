#!/usr/bin/env python3
"""
Command Line Interface for ClariSQL.
Chat with a registered database: ask in plain language, answer the
clarifying questions, see the SQL and the rows.

MODES:
- Interactive Mode (default): one conversation, questions and answers alternate
- Single Query Mode (-q): process one message and exit (a pending question is printed)
- Schema Mode (--schema): print tables, columns and inferred relationships
"""
import sys
import uuid
import argparse
from datetime import datetime
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.syntax import Syntax
from rich.progress import Progress, SpinnerColumn, TextColumn

from clarisql import __version__
from clarisql.models import PipelineResponse
from clarisql.orchestrator import ClarificationPipeline
from clarisql.tools import infer_relationships
from configs import ConfigurationError, LLM_MODEL, VERBOSE, validate_configuration

console = Console()

# Rows rendered in the result table
MAX_DISPLAY_ROWS = 20


# ============================================================
# DISPLAY HELPERS
# ============================================================

def print_header():
    """Print the application header."""
    header = f"""
╔═══════════════════════════════════════════════════════════════╗
║         🔍 ClariSQL v{__version__:<41}║
║         Natural Language to SQL, with clarifying questions    ║
╚═══════════════════════════════════════════════════════════════╝
    """
    console.print(header, style="bold blue")


def print_session_info(session_id: str, database_id: str):
    info_table = Table.grid(padding=(0, 2))
    info_table.add_column(style="cyan", justify="right")
    info_table.add_column(style="white")

    info_table.add_row("🗄️ Database:", f"[bold]{database_id}[/bold]")
    info_table.add_row("💬 Session:", session_id)
    info_table.add_row("🤖 Model:", f"[green]{LLM_MODEL}[/green]")
    info_table.add_row("🕐 Started:", datetime.now().strftime("%Y-%m-%d %H:%M:%S"))

    console.print(Panel(info_table, border_style="blue", padding=(1, 2)))
    console.print()


def print_rows(response: PipelineResponse):
    """Render result rows as a table (first MAX_DISPLAY_ROWS only)."""
    rows = response.rows or []
    if not response.columns:
        return

    table = Table(show_header=True, header_style="bold magenta")
    for column in response.columns:
        table.add_column(column)
    for row in rows[:MAX_DISPLAY_ROWS]:
        table.add_row(*[str(row.get(column, "")) for column in response.columns])

    console.print(table)
    if len(rows) > MAX_DISPLAY_ROWS:
        console.print(f"[dim]... {len(rows) - MAX_DISPLAY_ROWS} more rows[/dim]")


def print_response(response: PipelineResponse):
    """Display one pipeline response."""
    if response.sql:
        console.print(Panel(
            Syntax(response.sql, "sql", theme="monokai", word_wrap=True),
            title="[bold]SQL[/bold]",
            border_style="cyan",
        ))

    if response.needs_clarification:
        if response.rows:
            print_rows(response)
        console.print(Panel(response.question, title="[bold yellow]❓ Clarification needed[/bold yellow]",
                            border_style="yellow"))
        return

    if not response.success:
        detail = f"\n[dim]{response.error_detail}[/dim]" if VERBOSE and response.error_detail else ""
        console.print(Panel(f"{response.message}{detail}", title="[bold red]❌ Failed[/bold red]",
                            border_style="red"))
        return

    print_rows(response)
    console.print(f"[bold green]✅ {response.message}[/bold green]")
    if response.duplicate_count:
        console.print(f"[yellow]{response.duplicate_count} duplicate rows in the result.[/yellow]")


def print_schema(pipeline: ClarificationPipeline, database_id: str):
    """Display tables, columns and inferred relationships."""
    snapshot = pipeline.introspector.get_schema(database_id)

    table = Table(title=f"Schema of '{database_id}'", show_header=True, header_style="bold magenta")
    table.add_column("Table", style="cyan")
    table.add_column("Columns")
    for name, columns in snapshot.tables.items():
        table.add_row(name, ", ".join(f"{c.name} [dim]{c.data_type}[/dim]" for c in columns))
    console.print(table)

    relationships = infer_relationships(snapshot)
    if len(relationships):
        console.print("\n[bold]Inferred relationships[/bold]")
        for relationship in relationships:
            console.print(f"  • {relationship}")


def process_with_spinner(pipeline: ClarificationPipeline, session_id: str, database_id: str, text: str) -> PipelineResponse:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True
    ) as progress:
        progress.add_task(description="Processing...", total=None)
        return pipeline.process_query(session_id, database_id, text)


# ============================================================
# MODES
# ============================================================

def interactive_mode(pipeline: ClarificationPipeline, database_id: str):
    """
    Run one conversation until the user leaves.
    While a question is pending, whatever is typed next is the answer.
    """
    print_header()
    session_id = uuid.uuid4().hex
    print_session_info(session_id, database_id)

    console.print("[dim]Type your questions in natural language. Type 'exit' or 'quit' to stop.[/dim]")
    console.print("[dim]Type 'schema' to see the tables.[/dim]\n")

    awaiting = False
    while True:
        try:
            console.print("[bold cyan]" + "─" * 70 + "[/bold cyan]")
            prompt = "Your answer: " if awaiting else "Your question: "
            text = console.input(f"[bold yellow]{prompt}[/bold yellow]")

            if text.lower() in ['exit', 'quit', 'q']:
                console.print("\n[bold green]Goodbye! 👋[/bold green]")
                break

            if not text.strip():
                console.print("[yellow]Please enter a question.[/yellow]")
                continue

            if text.strip().lower() == "schema" and not awaiting:
                print_schema(pipeline, database_id)
                continue

            response = process_with_spinner(pipeline, session_id, database_id, text)
            print_response(response)
            awaiting = response.needs_clarification

        except KeyboardInterrupt:
            console.print("\n\n[bold green]Interrupted. Goodbye! 👋[/bold green]")
            break
        except Exception as e:
            console.print(f"[bold red]Error: {str(e)}[/bold red]")
            console.print("[dim]Please try again with a different query.[/dim]")


def single_query_mode(pipeline: ClarificationPipeline, database_id: str, query: str) -> int:
    """Process one message; exit status 0 on success, 2 when a question is pending, 1 on failure."""
    response = process_with_spinner(pipeline, uuid.uuid4().hex, database_id, query)
    print_response(response)
    if response.needs_clarification:
        return 2
    return 0 if response.success else 1


def main():
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="ClariSQL - natural language to SQL with clarifying questions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  clarisql                                   # Interactive conversation with the default database
  clarisql -d sales                          # Interactive conversation with database 'sales'
  clarisql -q "total sales per customer last quarter"
  clarisql --schema                          # Tables, columns and inferred relationships
        """
    )

    parser.add_argument(
        "-q", "--query",
        type=str,
        help="Process a single message and exit"
    )

    parser.add_argument(
        "-d", "--database",
        type=str,
        default="default",
        help="Registered database id (default: 'default')"
    )

    parser.add_argument(
        "--schema",
        action="store_true",
        help="Print the schema of the database and exit"
    )

    args = parser.parse_args()

    try:
        validate_configuration()
    except ConfigurationError as e:
        console.print(f"[bold red]{e}[/bold red]")
        sys.exit(1)

    # Imported here so configuration errors are reported before the pipeline is built
    from clarisql.api.deps import get_pipeline, get_registry

    if args.database not in get_registry():
        console.print(f"[bold red]Database '{args.database}' is not registered.[/bold red]")
        sys.exit(1)

    pipeline = get_pipeline()
    try:
        if args.schema:
            print_schema(pipeline, args.database)
        elif args.query:
            sys.exit(single_query_mode(pipeline, args.database, args.query))
        else:
            interactive_mode(pipeline, args.database)

    except Exception as e:
        console.print(f"[bold red]Fatal error: {str(e)}[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
