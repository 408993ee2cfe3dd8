"""Command line entry point.

Works offline on an exported BusinessData JSON file (the body of GET /api/data),
or starts the HTTP service.
"""

from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError

from invoiceflow.core.business import invoice_filename, summarize
from invoiceflow.core.calculator import totals_for_invoice
from invoiceflow.core.config import settings
from invoiceflow.core.converter import get_converter, save_pdf, write_atomic
from invoiceflow.core.errors import InvoiceFlowError, NotFound
from invoiceflow.core.renderer import render_invoice
from invoiceflow.schemas.business import BusinessData


def handle_error(ctx: click.Context, error: Exception) -> None:
    """Render an error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    ctx.exit(1)


def load_data(path: str) -> BusinessData:
    return BusinessData.model_validate_json(Path(path).read_text(encoding="utf-8"))


def find_invoice(data: BusinessData, key: str):
    """Look an invoice up by id, falling back to its number."""
    invoice = data.find_invoice(key)
    if invoice is None:
        invoice = next((i for i in data.invoices if i.number == key), None)
    if invoice is None:
        raise NotFound(f"Invoice {key} not found")
    return invoice


@click.group()
def cli():
    """InvoiceFlow - invoices from your business data."""


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
def serve(host: str, port: int):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run("invoiceflow.main:app", host=host, port=port)


@cli.command()
@click.argument("data_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("invoice")
@click.pass_context
def totals(ctx, data_file: str, invoice: str):
    """Show subtotal, tax, retention and total of INVOICE (id or number)."""
    try:
        data = load_data(data_file)
        result = totals_for_invoice(find_invoice(data, invoice), data.issuer)
    except (InvoiceFlowError, ValidationError) as e:
        handle_error(ctx, e)
        return

    currency = settings.CURRENCY_SYMBOL
    click.echo(f"Subtotal:  {result.subtotal:>12.2f}{currency}")
    click.echo(f"Tax:       {result.tax:>12.2f}{currency}")
    click.echo(f"Retention: {-result.retention:>12.2f}{currency}")
    click.echo(f"Total:     {result.total:>12.2f}{currency}")


@cli.command()
@click.argument("data_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("invoice")
@click.option("-o", "--output", type=click.Path(dir_okay=False), help="Output file (default: Factura_<number>.pdf)")
@click.option("--html", "as_html", is_flag=True, help="Write the HTML document instead of a PDF")
@click.option(
    "--converter",
    type=click.Choice(["reportlab", "browser"]),
    default=None,
    help="PDF converter (overrides PDF_CONVERTER)",
)
@click.pass_context
def render(ctx, data_file: str, invoice: str, output: Optional[str], as_html: bool, converter: Optional[str]):
    """Render INVOICE (id or number) from DATA_FILE to a PDF or HTML file."""
    try:
        data = load_data(data_file)
        selected = find_invoice(data, invoice)
        document = render_invoice(selected, data, settings.CURRENCY_SYMBOL)
        if as_html:
            destination = Path(output or invoice_filename(selected.number, settings.INVOICE_FILENAME_PREFIX, "html"))
            write_atomic(document.html.encode("utf-8"), destination)
        else:
            options = settings.model_copy(update={"PDF_CONVERTER": converter}) if converter else settings
            pdf = get_converter(options).convert(document)
            destination = save_pdf(
                pdf, Path(output or invoice_filename(selected.number, settings.INVOICE_FILENAME_PREFIX))
            )
    except (InvoiceFlowError, ValidationError, OSError) as e:
        handle_error(ctx, e)
        return

    click.echo(f"Written: {destination}")


@cli.command()
@click.argument("data_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def summary(ctx, data_file: str):
    """View billing status."""
    try:
        result = summarize(load_data(data_file))
    except ValidationError as e:
        handle_error(ctx, e)
        return

    click.echo("--- Billing Summary ---")
    click.echo(f"Issuer: {result.issuer_name or 'Not set'}")
    click.echo(f"Recipients: {result.recipients} ({result.favorite_recipients} favorites)")
    click.echo(f"Accounts: {result.accounts}")
    click.echo(f"Templates: {result.templates}")
    click.echo(f"Invoices: {result.invoices}")
    click.echo(f"Invoiced total: {result.invoiced_total:.2f}{settings.CURRENCY_SYMBOL}")


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
