"""Command-line interface for the motor insurance quote scraper."""

import json
import sys

from motorquote.browser_config import DEBUG_CONFIG, DEFAULT_CONFIG
from motorquote.config import ScraperConfig
from motorquote.logging_config import setup_logging
from motorquote.models import ManualQuoteRequest, PARKING_TYPES, RegoQuoteRequest, ScrapeResult
from motorquote.scraper import scrape_quote


def print_result(result: ScrapeResult):
    """Print a quote result in a formatted way.

    Args:
        result: ScrapeResult from a quote flow
    """
    print(f"\n{'=' * 60}")
    if result.success:
        print(f"✅ Quote for: {result.vehicle_description or 'vehicle'}")
        print(f"{'=' * 60}")
        if result.annual_premium is not None:
            print(f"\n💰 Annual premium:  ${result.annual_premium:,.2f}")
        if result.monthly_premium is not None:
            print(f"📅 Monthly premium: ${result.monthly_premium:,.2f}")
        if result.excess_amount is not None:
            print(f"🔧 Excess:          ${result.excess_amount:,.2f}")
    else:
        print(f"❌ Quote failed at step: {result.step_reached.value}")
        print(f"{'=' * 60}")
        print(f"\nError: {result.error}")
        if result.vehicle_description:
            print(f"Vehicle: {result.vehicle_description}")

    if result.raw_amounts:
        print(f"\nAmounts on page: {', '.join(result.raw_amounts)}")
    if result.diagnostic_artifact:
        print(f"📸 Snapshot: {result.diagnostic_artifact}")
    print(f"\n{'=' * 60}\n")


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("y", "yes", "true", "1"):
        return True
    if lowered in ("n", "no", "false", "0"):
        return False
    raise ValueError(f"Expected yes or no, got: {value}")


def build_request(args):
    """Build a quote request from parsed arguments."""
    if args.command == "rego":
        return RegoQuoteRequest(
            registration=args.registration,
            address=args.address,
            driver_age=args.age,
            driver_gender=args.gender,
            licence_age=args.licence_age,
            claims_last_5_years=args.claims,
            is_member=args.member,
            under_finance=args.finance,
            purpose=args.purpose,
            business_use=args.business_use,
        )
    return ManualQuoteRequest(
        make=args.make,
        model=args.model,
        year=args.year,
        postcode=args.postcode,
        driver_age=args.age,
        claims_last_5_years=args.claims,
        parking_type=args.parking,
        body_type=args.body_type,
    )


def quote_command(args) -> int:
    """Run one quote flow and report the result.

    Returns:
        Exit code: 0 on success, 1 on failure
    """
    config = ScraperConfig.from_env()
    if args.diagnostics_dir:
        config.diagnostics_dir = args.diagnostics_dir
    if args.no_diagnostics:
        config.capture_diagnostics = False
    if args.url:
        config.quote_url = args.url

    browser_config = DEBUG_CONFIG if args.headed else DEFAULT_CONFIG

    result = scrape_quote(
        build_request(args),
        config=config,
        browser_config=browser_config,
        timeout=args.timeout,
    )

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print_result(result)

    return 0 if result.success else 1


def _add_common_arguments(parser):
    parser.add_argument("--age", type=int, required=True, help="Driver age in years")
    parser.add_argument(
        "--claims",
        type=int,
        default=0,
        help="Claims in the last 5 years (default: 0)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Overall deadline in seconds (default: MOTORQUOTE_OVERALL_TIMEOUT_SECONDS or 180)",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window (slower timeouts, no ad blocking)",
    )
    parser.add_argument("--diagnostics-dir", help="Directory for page snapshots")
    parser.add_argument(
        "--no-diagnostics",
        action="store_true",
        help="Do not save page snapshots",
    )
    parser.add_argument("--url", help="Override the quote form URL")
    parser.set_defaults(func=quote_command)


def main(argv=None):
    """Main CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Motor Quote - Fetch a car insurance premium from the insurer's quote form"
    )

    # Global flags (before subcommands)
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Set logging verbosity (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        help="Write logs to file in addition to console",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Registration lookup
    rego_parser = subparsers.add_parser(
        "rego", help="Quote a car identified by its registration number."
    )
    rego_parser.add_argument("registration", help="Registration plate, e.g. ABC123")
    rego_parser.add_argument("--address", required=True, help="Garaging address")
    rego_parser.add_argument("--gender", default="Male", help="Driver gender (default: Male)")
    rego_parser.add_argument(
        "--licence-age",
        type=int,
        default=18,
        help="Age the driver got their licence (default: 18)",
    )
    rego_parser.add_argument(
        "--member",
        type=_parse_bool,
        default=False,
        help="Insurer membership, yes or no (default: no)",
    )
    rego_parser.add_argument("--finance", type=_parse_bool, help="Car under finance, yes or no")
    rego_parser.add_argument("--purpose", help="Use of the car, e.g. private or business")
    rego_parser.add_argument("--business-use", type=_parse_bool, help="Registered for business use, yes or no")
    _add_common_arguments(rego_parser)

    # Manual vehicle description
    manual_parser = subparsers.add_parser(
        "manual", help="Quote a car described by make, model and year."
    )
    manual_parser.add_argument("make", help="Vehicle make, e.g. Toyota")
    manual_parser.add_argument("model", help="Vehicle model, e.g. Corolla")
    manual_parser.add_argument("year", type=int, help="Year of manufacture")
    manual_parser.add_argument("--postcode", required=True, help="Garaging postcode")
    manual_parser.add_argument(
        "--parking",
        choices=list(PARKING_TYPES),
        default="garage",
        help="Where the car is parked overnight (default: garage)",
    )
    manual_parser.add_argument("--body-type", help="Body type, e.g. Sedan")
    _add_common_arguments(manual_parser)

    args = parser.parse_args(argv)

    # Configure logging based on flags
    setup_logging(
        level=args.log_level,
        log_file=getattr(args, 'log_file', None),
    )

    if hasattr(args, "func"):
        sys.exit(args.func(args))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
