"""Command-line interface for statement import and reconciliation."""

import logging
import os
import sys
from typing import List, Optional

import click

from .models.core import ParsedTransaction, ParseResult
from .session import ImportSession
from .stores import JsonFileKeyValueStore, JsonLedgerStore
from .utils.bank_profiles import format_amount
from .utils.categorizer import KeywordCategorizer
from .utils.config_manager import ConfigManager
from .utils.duplicate_detector import DuplicateDetector
from .utils.error_handler import ErrorHandler
from .utils.file_scanner import parse_statement
from .utils.import_history import ImportHistory, calculate_file_hash
from .utils.importer import StatementImportError


logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class StatementImportCLI:
    """Wires configuration, stores and the import pipeline for the commands"""

    def __init__(self, config_path: Optional[str] = None):
        self.config_manager = ConfigManager(config_path)
        self.config = self.config_manager.load_config()
        self.error_handler = ErrorHandler()

    def parse_file(self, file_path: str) -> ParseResult:
        return parse_statement(file_path, self.config, error_handler=self.error_handler)

    def ledger(self, ledger_path: Optional[str] = None) -> JsonLedgerStore:
        return JsonLedgerStore(ledger_path or self.config.ledger_path, self.error_handler)

    def history(self, history_path: Optional[str] = None) -> ImportHistory:
        store = JsonFileKeyValueStore(history_path or self.config.history_path, self.error_handler)
        return ImportHistory(store, self.error_handler)

    def generate_config_template(self, output_path: str) -> bool:
        try:
            self.config_manager.save_config_template(output_path)
            return True
        except OSError as e:
            logger.error(f"Error saving configuration template: {e}")
            return False


def _echo_messages(result: ParseResult):
    for warning in result.warnings:
        click.echo(f"⚠ {warning}")
    for error in result.errors:
        click.echo(f"✗ {error}", err=True)


def _echo_transactions(transactions: List[ParsedTransaction],
                       currency: Optional[str],
                       selected: Optional[set] = None):
    for index, transaction in enumerate(transactions):
        mark = ''
        if selected is not None:
            mark = '[x] ' if index in selected else '[ ] '
        confidence = '' if transaction.confidence is None else f"  ({transaction.confidence}%)"
        if transaction.confidence == 0:
            confidence = "  (duplicate)"
        category = f"  [{transaction.category}]" if transaction.category else ''
        click.echo(
            f"{mark}{index:>3}  {transaction.date.isoformat()}  "
            f"{transaction.description[:40]:<40}  "
            f"{format_amount(transaction.amount, transaction.type, currency):>18}"
            f"{confidence}{category}"
        )


@click.group()
@click.option('--config', '-c', help='Path to configuration file')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx, config, verbose):
    """Reynar Import - bring bank statements into your ledger without duplicates"""

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    ctx.ensure_object(dict)
    try:
        ctx.obj['cli'] = StatementImportCLI(config)
    except StatementImportError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)


@cli.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--ledger', '-l', help='Ledger file to score duplicates against')
@click.pass_context
def parse(ctx, file_path, ledger):
    """Parse a statement and show what would be imported"""

    cli_instance = ctx.obj['cli']
    result = cli_instance.parse_file(file_path)

    if result.bank_name:
        click.echo(f"Bank: {result.bank_name}")
    if result.period:
        click.echo(f"Period: {result.period.start.isoformat()} to {result.period.end.isoformat()}")
    click.echo(f"Currency: {result.currency}")
    click.echo(f"Transactions: {len(result.transactions)}")

    transactions = result.transactions
    if ledger and transactions:
        try:
            existing = cli_instance.ledger(ledger).list()
        except (OSError, ValueError) as e:
            click.echo(f"✗ Could not read ledger: {e}", err=True)
            sys.exit(1)
        transactions = DuplicateDetector.from_config(cli_instance.config).detect_duplicates(
            transactions, existing
        )

    _echo_transactions(transactions, result.currency)
    _echo_messages(result)

    if result.failed:
        sys.exit(1)


@cli.command(name='import')
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--ledger', '-l', help='Ledger file to import into')
@click.option('--history', 'history_path', help='Import history file')
@click.option('--yes', '-y', is_flag=True, help='Import without asking for confirmation')
@click.option('--include-duplicates', is_flag=True, help='Also select transactions flagged as duplicates')
@click.option('--categorize', is_flag=True, help='Suggest categories before importing')
@click.option('--force', is_flag=True, help='Import even if this file was imported before')
@click.pass_context
def import_statement(ctx, file_path, ledger, history_path, yes, include_duplicates, categorize, force):
    """Import a statement into the ledger"""

    cli_instance = ctx.obj['cli']
    history = cli_instance.history(history_path)

    file_hash = calculate_file_hash(file_path)
    if not force and history.has_file_been_imported(file_hash):
        click.echo(f"⚠ {os.path.basename(file_path)} was already imported, use --force to import it again")
        return

    result = cli_instance.parse_file(file_path)
    if result.failed:
        _echo_messages(result)
        sys.exit(1)

    store = cli_instance.ledger(ledger)
    try:
        session = ImportSession.start(
            result,
            store,
            categorizer=KeywordCategorizer() if categorize else None,
            config=cli_instance.config,
            error_handler=cli_instance.error_handler,
        )
    except (OSError, ValueError) as e:
        click.echo(f"✗ Could not read ledger: {e}", err=True)
        sys.exit(1)

    if include_duplicates:
        for index in range(len(session.transactions)):
            if index not in session.selected_indices:
                session.toggle_select(index)

    if categorize and not session.categorize_all():
        click.echo(f"⚠ {session.last_error}")

    _echo_transactions(session.transactions, result.currency, session.selected_indices)
    _echo_messages(result)

    summary = session.summary()
    click.echo(
        f"Selected {summary.selected_count} of {summary.total_count}"
        f" | income {summary.income_total} | expenses {summary.expense_total}"
        f" | duplicates {summary.duplicate_count}"
    )

    if summary.selected_count == 0:
        session.cancel()
        click.echo("Nothing selected, no transactions imported")
        return

    if not yes and not click.confirm(f"Import {summary.selected_count} transactions?", default=True):
        session.cancel()
        click.echo("Import cancelled")
        return

    import_result = session.commit()
    click.echo(f"✓ {import_result.summary}")
    for failure in import_result.failures:
        click.echo(f"✗ {failure.description}: {failure.message}", err=True)
    for error in import_result.errors:
        click.echo(f"✗ {error}", err=True)

    if import_result.imported > 0:
        history.mark_file_as_imported(file_path, file_hash)

    if not import_result.success:
        sys.exit(1)


@cli.command()
@click.option('--history', 'history_path', help='Import history file')
@click.option('--clear', is_flag=True, help='Forget all imported files')
@click.pass_context
def history(ctx, history_path, clear):
    """Show or clear the import history"""

    cli_instance = ctx.obj['cli']
    import_history = cli_instance.history(history_path)

    if clear:
        import_history.clear_import_history()
        click.echo("✓ Import history cleared")
        return

    records = import_history.get_import_history()
    if not records:
        click.echo("No import history found")
        return

    for record in records:
        click.echo(f"{record.date}  {record.file_name}  {record.size} bytes  {record.hash[:12]}")


@cli.command(name='init-config')
@click.argument('output_path', default='reynar_import.json')
@click.option('--format', 'config_format', type=click.Choice(['json', 'yaml']), default='json',
              help='Configuration file format')
@click.pass_context
def init_config(ctx, output_path, config_format):
    """Generate configuration template file"""

    cli_instance = ctx.obj['cli']

    if config_format == 'yaml' and not output_path.endswith(('.yml', '.yaml')):
        output_path = os.path.splitext(output_path)[0] + '.yml'
    elif config_format == 'json' and not output_path.endswith('.json'):
        output_path = os.path.splitext(output_path)[0] + '.json'

    if cli_instance.generate_config_template(output_path):
        click.echo(f"✓ Configuration template generated: {output_path}")
    else:
        click.echo("✗ Failed to generate configuration template", err=True)
        sys.exit(1)


if __name__ == '__main__':
    cli()
