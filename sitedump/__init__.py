"""
Async website scraper: discovers a site's pages (sitemap or breadth-first crawl)
and dumps each one as an ordered list of content blocks plus deduplicated images.
"""
from sitedump.config import Config, ConfigError
from sitedump.extract import extract
from sitedump.models import PageResult, ScrapeResult
from sitedump.scraper import Scraper, scrape

__version__ = "0.1.0"
__all__ = ["Config", "ConfigError", "PageResult", "ScrapeResult", "Scraper", "extract", "scrape"]
