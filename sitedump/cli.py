"""Command line entry point: ``sitedump --url https://example.com``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

from sitedump.config import Config, ConfigError
from sitedump.log import get_site_logger, setup_root_logger
from sitedump.output import ensure_dir, write_result
from sitedump.scraper import Scraper


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sitedump",
        description="Scrape a website (via its sitemap or by crawling) into structured JSON plus images.",
    )
    parser.add_argument("--url", "-u", help="Target website URL or sitemap URL.")
    parser.add_argument("--concurrency", "-c", type=int, help="Maximum concurrent requests (default: 10).")
    parser.add_argument("--timeout", "-t", type=float, help="Request timeout in seconds (default: 30).")
    parser.add_argument("--output", "-o", help="Output JSON file (default: results/<site>/scraped.json).")
    parser.add_argument("--max-depth", "-d", type=int, help="Maximum crawl depth when no sitemap exists (default: 3).")
    parser.add_argument("--max-pages", "-m", type=int, help="Maximum pages to scrape (default: 1000).")
    parser.add_argument("--config", type=Path, help="YAML configuration file; command line flags override it.")
    parser.add_argument("--log-file", help="Also write the log to this file.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log filtering decisions too.")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> Config:
    cfg = Config.from_yaml(args.config) if args.config else Config()
    cfg = cfg.with_overrides(
        url=args.url,
        concurrency=args.concurrency,
        timeout=args.timeout,
        output=args.output,
        max_depth=args.max_depth,
        max_pages=args.max_pages,
        log_file=args.log_file,
    )
    return cfg.validate()


async def main_async(cfg: Config) -> int:
    output_path = cfg.output_path()
    images_dir = cfg.images_dir()
    ensure_dir(output_path.parent)
    ensure_dir(images_dir)

    scraper = Scraper(cfg, images_dir=images_dir, logger=get_site_logger(cfg.site_slug))
    result = await scraper.run()

    path = write_result(result, output_path)
    scraper.logger.info(f"Done! Scraped {result.total_pages} page(s); output saved to {path}")
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(argv)
    level = logging.DEBUG if args.verbose else logging.INFO
    setup_root_logger(level, args.log_file)
    root = logging.LoggerAdapter(logging.getLogger("sitedump"), extra={"site": "ALL"})
    try:
        cfg = build_config(args)
    except (ConfigError, OSError) as e:
        root.error(f"Invalid configuration: {e}")
        return 2
    if cfg.log_file != args.log_file:
        # log_file may come from the YAML config
        setup_root_logger(level, cfg.log_file)
    root.info(f"Target {cfg.url}; output {cfg.output_path()}")
    try:
        return asyncio.run(main_async(cfg))
    except KeyboardInterrupt:
        root.warning("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
