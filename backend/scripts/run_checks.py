#!/usr/bin/env python3
"""
Storefront Readiness Check Runner

Opens each product page in Chromium, checks the product elements, images and
browser errors, and writes JSON/HTML/text reports.

Usage:
    python run_checks.py --products URL [URL ...] [--config CONFIG] [--output DIR]

Examples:
    python run_checks.py --products https://shop.example.com/products/tee
    python run_checks.py --url https://shop.example.com --platform bigcommerce
    python run_checks.py --products URL1 URL2 --config checks.json --no-headless

Exit status is 0 when every page passes, 1 when any page fails and 2 on
usage or configuration errors.
"""

import os
import sys
import asyncio
import logging
import argparse
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Get the backend directory path
SCRIPT_DIR = Path(__file__).parent.resolve()
BACKEND_DIR = SCRIPT_DIR.parent
sys.path.insert(0, str(BACKEND_DIR / "app"))

from shopcheck import ConfigError, ShopcheckError, load_config, merge_config, run_checks
from shopcheck.runner import AUTO_PLATFORM
from html_reporter import format_cli_summary, generate_reports

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2

logger = logging.getLogger("run_checks")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Browser readiness checks for Shopify/BigCommerce product pages"
    )
    parser.add_argument(
        "--url", "-u",
        help="Store URL; checked as a single page when --products is not given"
    )
    parser.add_argument(
        "--products", "-p",
        nargs="+",
        help="Product page URLs to check (space-separated)"
    )
    parser.add_argument(
        "--config", "-c",
        help="Path to a JSON configuration file"
    )
    parser.add_argument(
        "--output", "-o",
        default=os.getenv("SHOPCHECK_REPORT_DIR", "reports"),
        help="Output directory for reports (default: ./reports)"
    )
    parser.add_argument(
        "--platform",
        default=AUTO_PLATFORM,
        help="Platform profile: auto, shopify or bigcommerce (default: auto)"
    )
    parser.add_argument(
        "--headless",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Run the browser headless (default from configuration)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging"
    )
    return parser


def resolve_urls(url: Optional[str], products: Optional[List[str]]) -> List[str]:
    """Product URLs win; a bare store URL is checked as one page"""
    if products:
        return list(products)
    if url:
        return [url]
    return []


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    load_dotenv(BACKEND_DIR / ".env")

    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    urls = resolve_urls(args.url, args.products)
    if not urls:
        print("Error: Either --url or --products must be provided")
        parser.print_usage()
        return EXIT_USAGE

    try:
        config = load_config(args.config)
        if args.headless is not None:
            config = merge_config({"browser": {"headless": args.headless}}, base=config)
    except ConfigError as e:
        print(f"Error loading configuration: {e}")
        return EXIT_USAGE

    print(f"\n{'='*60}")
    print(" Storefront Readiness Checks")
    print(f"{'='*60}")
    print(f"  Platform:         {args.platform}")
    print(f"  Headless:         {config.browser.headless}")
    print(f"  Product URLs:     {len(urls)}")
    print(f"  Output Directory: {args.output}\n")

    if sys.platform == 'win32':
        asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())

    try:
        results = asyncio.run(run_checks(urls, config, args.platform.lower()))
    except ShopcheckError as e:
        print(f"\nError: {e}")
        return EXIT_FAILED
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return EXIT_FAILED

    print(format_cli_summary(results))

    paths = generate_reports(results, args.output)
    print("\nReports generated:")
    print(f"  JSON:    {paths['json']}")
    print(f"  HTML:    {paths['html']}")
    print(f"  Summary: {paths['summary']}\n")

    return EXIT_OK if all(r.passed for r in results) else EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
