import click
import csv
import logging
import sqlalchemy.exc
import traceback
from io import StringIO
from tabulate import tabulate

from config.settings import get_settings
from core.comparison.aggregator import AlertThresholds, CURRENCY_SYMBOL
from core.database.operations import Database, backfill_all
from core.errors import ScrapeError, StorageError
from core.forecast.advisor import forecast_for_product
from core.listings import Marketplace
from core.scan import run_scan
from core.scrapers.scraper_factory import ScraperFactory

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("pricing-cli")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option(
    "--db-url",
    envvar="DATABASE_URL",
    default=None,
    help="SQLAlchemy database URL (default: built from the DB_* settings)",
)
@click.pass_context
def cli(ctx, verbose, db_url):
    """Competitor pharmacy price monitor."""
    # Store options in the Click context instead of global variables
    ctx.ensure_object(dict)
    ctx.obj["VERBOSE"] = verbose
    ctx.obj["DATABASE"] = Database(db_url)
    ctx.call_on_close(ctx.obj["DATABASE"].close)

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug logging enabled")


def _report_error(ctx, label, error):
    click.echo(f"{label}: {str(error)}")
    if ctx.obj["VERBOSE"]:
        click.echo(traceback.format_exc())


def _write_output(result_output, output):
    # Output to file or console
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(result_output)
        click.echo(f"Results written to {output}")
    else:
        click.echo("\n" + result_output)


@cli.command()
@click.pass_context
def init(ctx):
    """Initialize the database."""
    try:
        ctx.obj["DATABASE"].init_db()
    except sqlalchemy.exc.SQLAlchemyError as e:
        _report_error(ctx, "Database error", e)
        return
    click.echo("Database initialized!")


@cli.command()
@click.option(
    "--marketplace",
    "-m",
    type=click.Choice(["all", Marketplace.MEDSGO, Marketplace.WATSONS]),
    default="all",
    help="Marketplace to scan (default: all)",
)
@click.option("--static", "-s", is_flag=True, help="Use the sample catalogs instead of the live sites")
@click.option("--save/--no-save", default=True, help="Save to database (default: True)")
@click.option(
    "--format-type",
    "-f",
    type=click.Choice(["text", "table", "csv"]),
    default="table",
    help="Output format (default: table)",
)
@click.option("--output", "-o", type=click.Path(), help="Save comparison to file")
@click.pass_context
def scan(ctx, marketplace, static, save, format_type, output):
    """Scan competitor catalogs and compare prices per tablet."""
    scrapers = ScraperFactory.create_scrapers(marketplace, static=static)
    click.echo(f"Scanning {len(scrapers)} marketplace(s)...")
    thresholds = AlertThresholds.from_settings()

    try:
        if save:
            with ctx.obj["DATABASE"].store() as store:
                result = run_scan(scrapers, store=store, thresholds=thresholds)
        else:
            result = run_scan(scrapers, thresholds=thresholds)
    except (StorageError, sqlalchemy.exc.SQLAlchemyError) as e:
        _report_error(ctx, "Database error", e)
        return
    except ScrapeError as e:
        _report_error(ctx, "Scraping error", e)
        return

    for marketplace_scan in result.results:
        line = f"{Marketplace.display_name(marketplace_scan.marketplace)}: {marketplace_scan.products_scraped} products"
        if save:
            line += f", {marketplace_scan.saved_to_db} saved"
        click.echo(line)
        for error in marketplace_scan.errors:
            click.echo(f"   Error: {error}")

    click.echo(f"\nTotal: {result.total_products} products scraped.")
    if not result.success:
        return

    _write_output(format_comparison(result.report.groups, format_type), output)

    if result.report.alerts:
        click.echo(f"\nAlerts ({len(result.report.alerts)}):")
        for alert in result.report.alerts:
            click.echo(f"- [{alert.severity}] {alert.title}")
            if ctx.obj["VERBOSE"]:
                click.echo(f"   {alert.message}")
                if alert.action:
                    click.echo(f"   {alert.action}")

    stats = result.report.stats
    if stats.overall_cheaper:
        click.echo(
            f"\nOverall cheaper per tablet: {Marketplace.display_name(stats.overall_cheaper)} "
            f"({stats.total_comparable} comparable products)"
        )


@cli.command()
@click.option(
    "--marketplace",
    "-m",
    type=click.Choice([Marketplace.MEDSGO, Marketplace.WATSONS]),
    help="Only show products of one marketplace",
)
@click.pass_context
def products(ctx, marketplace):
    """List stored competitor products."""
    try:
        with ctx.obj["DATABASE"].store() as store:
            rows = [
                [product.id, _truncate(product.name), product.brand or "", product.dosage or ""]
                for product in store.list_products(marketplace)
            ]
    except (StorageError, sqlalchemy.exc.SQLAlchemyError) as e:
        _report_error(ctx, "Database error", e)
        return

    if not rows:
        click.echo("No products found.")
        return

    click.echo(f"Found {len(rows)} products")
    click.echo(tabulate(rows, headers=["ID", "Product", "Brand", "Dosage"], tablefmt="grid"))


@cli.command()
@click.argument("product_id")
@click.option(
    "--limit",
    type=int,
    default=settings.HISTORY_LIMIT,
    help=f"Maximum number of days (default: {settings.HISTORY_LIMIT})",
)
@click.pass_context
def history(ctx, product_id, limit):
    """View a product's price history, most recent first."""
    try:
        with ctx.obj["DATABASE"].store() as store:
            product = store.get_product(product_id)
            if not product:
                click.echo(f"Error: Product with ID {product_id} not found.")
                return
            product_name = product.name
            points = store.get_history(product_id, limit=limit)
            rows = [
                [
                    point.scraped_at.strftime("%Y-%m-%d %H:%M"),
                    f"{CURRENCY_SYMBOL}{point.price:.2f}",
                    "yes" if point.in_stock else "no",
                    "synthetic" if point.is_synthetic else "",
                ]
                for point in points
            ]
    except (StorageError, sqlalchemy.exc.SQLAlchemyError) as e:
        _report_error(ctx, "Database error", e)
        return

    click.echo(f"Price history for {product_name}")
    if not rows:
        click.echo("No price history recorded.")
        return
    click.echo(tabulate(rows, headers=["Date", "Price", "In Stock", "Note"], tablefmt="grid"))


@cli.command()
@click.option(
    "--days",
    "-d",
    type=int,
    default=settings.BACKFILL_DAYS,
    help=f"Days of history to fill in (default: {settings.BACKFILL_DAYS})",
)
@click.pass_context
def backfill(ctx, days):
    """Fill in synthetic demo history for every product with a stored price."""
    try:
        with ctx.obj["DATABASE"].store() as store:
            result = backfill_all(store, days=days)
    except (StorageError, sqlalchemy.exc.SQLAlchemyError) as e:
        _report_error(ctx, "Database error", e)
        return

    click.echo(
        f"Backfill completed: {result['products_processed']} products processed, "
        f"{result['total_created']} history entries created"
    )
    for error in result["errors"]:
        click.echo(f"   Error: {error}")


@cli.command()
@click.argument("product_id")
@click.option("--our-price", "-p", type=float, required=True, help="Our current price")
@click.option(
    "--target-variance",
    "-t",
    type=float,
    default=settings.FORECAST_TARGET_VARIANCE,
    help=f"Allowed distance above the forecast (default: {settings.FORECAST_TARGET_VARIANCE})",
)
@click.pass_context
def forecast(ctx, product_id, our_price, target_variance):
    """Suggest a price from a competitor product's history."""
    try:
        with ctx.obj["DATABASE"].store() as store:
            if not store.get_product(product_id):
                click.echo(f"Error: Product with ID {product_id} not found.")
                return
            suggestion = forecast_for_product(
                store,
                product_id,
                our_price,
                target_variance=target_variance,
                limit=settings.HISTORY_LIMIT,
            )
    except (StorageError, sqlalchemy.exc.SQLAlchemyError) as e:
        _report_error(ctx, "Database error", e)
        return

    click.echo(suggestion.explanation)
    if suggestion.suggested_price is not None:
        click.echo(f"Suggested price: {CURRENCY_SYMBOL}{suggestion.suggested_price:.2f}")


def _truncate(name, width=40):
    # Truncate product name if too long
    if len(name) > width:
        return name[: width - 3] + "..."
    return name


def _unit_price(group, marketplace):
    priced = group.listing_for(marketplace)
    return priced.unit_price if priced else None


def format_comparison(groups, format_type):
    """Format comparison groups based on specified format type."""
    if not groups:
        return "No comparable products found."

    source_a = groups[0].source_a
    source_b = groups[0].source_b
    name_a = Marketplace.display_name(source_a)
    name_b = Marketplace.display_name(source_b)

    if format_type == "text":
        lines = [f"Found {len(groups)} product groups:"]
        for i, group in enumerate(groups, 1):
            lines.append(f"\n{i}. {group.name} [{group.status}]")
            for name, marketplace in ((name_a, source_a), (name_b, source_b)):
                priced = group.listing_for(marketplace)
                if priced:
                    lines.append(
                        f"   {name}: {CURRENCY_SYMBOL}{priced.unit_price:.2f}/tab "
                        f"({priced.quantity} tabs for {CURRENCY_SYMBOL}{priced.listing.price:.2f})"
                    )
            if group.price_diff_percent is not None:
                lines.append(
                    f"   Difference: {group.price_diff_percent:+.1f}%, "
                    f"cheapest at {Marketplace.display_name(group.cheapest)}"
                )

        return "\n".join(lines)

    headers = ["Product", f"{name_a}/tab", f"{name_b}/tab", "Diff %", "Cheapest", "Status"]

    if format_type == "csv":
        output = StringIO()
        writer = csv.writer(output)
        writer.writerow(headers)

        # Write data
        for group in groups:
            unit_a = _unit_price(group, source_a)
            unit_b = _unit_price(group, source_b)
            writer.writerow(
                [
                    group.name,
                    f"{unit_a:.2f}" if unit_a is not None else "",
                    f"{unit_b:.2f}" if unit_b is not None else "",
                    f"{group.price_diff_percent:.1f}%" if group.price_diff_percent is not None else "",
                    group.cheapest or "",
                    group.status,
                ]
            )

        return output.getvalue()

    # table format
    table_data = []
    for group in groups:
        unit_a = _unit_price(group, source_a)
        unit_b = _unit_price(group, source_b)
        table_data.append(
            [
                _truncate(group.name),
                f"{CURRENCY_SYMBOL}{unit_a:.2f}" if unit_a is not None else "-",
                f"{CURRENCY_SYMBOL}{unit_b:.2f}" if unit_b is not None else "-",
                f"{group.price_diff_percent:.1f}%" if group.price_diff_percent is not None else "-",
                Marketplace.display_name(group.cheapest) if group.cheapest else "-",
                group.status,
            ]
        )

    return tabulate(table_data, headers=headers, tablefmt="grid")


if __name__ == "__main__":
    # This runs the Click application
    cli.main(obj={})
