import click
import httpx

from src.application.carrier_request import OriginAddress
from src.application.metadata_writer import MetadataWriter
from src.application.rate_used_merge import CentsPreservingRateUsed
from src.application.shipping_service import ShippingService
from src.entrypoints.executor import Executor
from src.infrastructure.aggregator_client import ShippingAggregatorClient
from src.infrastructure.order_repository import OrderRepository
from src.shared.logs import configure_logging

HTTP_TIMEOUT_SECONDS = 30.0


def _build_executor(ctx: click.Context) -> Executor:
    # Settings load on first use; --help needs no .env
    from src.entrypoints.settings import config

    configure_logging(config.LOG_LEVEL)

    http_client = httpx.Client(timeout=HTTP_TIMEOUT_SECONDS)
    ctx.call_on_close(http_client.close)

    # --- Storage layer ---
    repository = OrderRepository(
        client=http_client,
        base_url=config.SUPABASE_URL,
        service_key=config.SUPABASE_SERVICE_ROLE_KEY,
    )
    writer = MetadataWriter(
        repository,
        CentsPreservingRateUsed(),
        max_attempts=config.METADATA_WRITE_ATTEMPTS,
    )

    # --- Carrier layer ---
    carrier = ShippingAggregatorClient(
        client=http_client,
        base_url=config.SKYDROPX_BASE_URL,
        api_key=config.SKYDROPX_API_KEY,
    )
    origin = OriginAddress(
        name=config.SHIPPING_ORIGIN_NAME,
        postal_code=config.SHIPPING_ORIGIN_POSTAL_CODE,
        state=config.SHIPPING_ORIGIN_STATE,
        city=config.SHIPPING_ORIGIN_CITY,
        country=config.SHIPPING_ORIGIN_COUNTRY,
        address1=config.SHIPPING_ORIGIN_ADDRESS1,
        address2=config.SHIPPING_ORIGIN_ADDRESS2,
        area_level3=config.SHIPPING_ORIGIN_AREA_LEVEL3,
        phone=config.SHIPPING_ORIGIN_PHONE,
        email=config.SHIPPING_ORIGIN_EMAIL,
    )

    return Executor(
        ShippingService(
            repository,
            carrier,
            writer,
            origin,
            default_item_weight_g=config.DEFAULT_ITEM_WEIGHT_G,
            min_billable_weight_g=config.SKYDROPX_MIN_BILLABLE_WEIGHT_G,
        ),
        repository,
    )


@click.group()
def cli() -> None:
    """Shipping package, quoting and order-metadata tools."""


@cli.command()
@click.argument("order_id")
@click.pass_context
def package(ctx: click.Context, order_id: str) -> None:
    """Compute the parcel for ORDER_ID from its items and the catalog."""
    _build_executor(ctx).package(order_id)


@cli.command()
@click.argument("order_id")
@click.pass_context
def quote(ctx: click.Context, order_id: str) -> None:
    """Quote carrier rates for ORDER_ID."""
    _build_executor(ctx).quote(order_id)


@cli.command()
@click.argument("order_ids", nargs=-1, required=True)
@click.pass_context
def audit(ctx: click.Context, order_ids: tuple[str, ...]) -> None:
    """Check rate_used / shipping_pricing consistency of ORDER_IDS.

    Exits with status 1 when any order has a discrepancy.
    """
    if _build_executor(ctx).audit(list(order_ids)):
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
