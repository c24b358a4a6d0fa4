"""Rule inspection commands."""

import click
from rich.console import Console
from rich.table import Table

from cleancut.cli._common import app


@app.command("rules", help="List the boilerplate rule sets.")
@click.option(
    "--set",
    "rule_set_name",
    type=click.Choice(["safe", "aggressive", "all"], case_sensitive=False),
    default="all",
    show_default=True,
    help="Which rule set to list",
)
def list_rules(rule_set_name: str) -> None:
    """List boilerplate filter rules.

    Examples:
        cleancut rules
        cleancut rules --set aggressive
    """
    from cleancut.services.filters import AGGRESSIVE_RULES, SAFE_RULES

    rule_sets = [SAFE_RULES, AGGRESSIVE_RULES]
    if rule_set_name != "all":
        rule_sets = [rs for rs in rule_sets if rs.name == rule_set_name.lower()]

    console = Console()
    for rule_set in rule_sets:
        table = Table(title=f"{rule_set.name} rules (v{rule_set.version})")
        table.add_column("Description", style="cyan")
        table.add_column("Action", style="magenta")
        table.add_column("Selector", overflow="fold")
        for rule in rule_set.rules:
            table.add_row(rule.description, rule.action.value, rule.selector)
        console.print(table)
