"""Scraper package — sitemap discovery, web fetch & content extraction."""

from llamap.scraper.extractor import extract_article, get_extractor
from llamap.scraper.fetcher import fetch_sitemap, fetch_url
from llamap.scraper.models import Article, ParsedSitemap, RawPage
from llamap.scraper.sitemap import collect_urls, parse_sitemap

__all__ = [
    "fetch_url",
    "fetch_sitemap",
    "extract_article",
    "get_extractor",
    "collect_urls",
    "parse_sitemap",
    "RawPage",
    "Article",
    "ParsedSitemap",
]
