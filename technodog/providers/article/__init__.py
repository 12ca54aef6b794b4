"""Content providers.

WebScraperProvider pulls readable text out of arbitrary pages found by the
research stage.  WikipediaProvider looks up encyclopedia articles for
knowledge ingestion.
"""

from technodog.providers.article.web_scraper_provider import WebScraperProvider
from technodog.providers.article.wikipedia_provider import WikipediaProvider, article_url

__all__ = ["WebScraperProvider", "WikipediaProvider", "article_url"]
