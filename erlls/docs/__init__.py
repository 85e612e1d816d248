"""Documentation lookup for Erlang functions."""
from .html import strip_html
from .local_docs import DocIndex, LocalDocs
from .resolver import DocFallbackResult, DocStage, DocumentationResolver
from .scraper import ManPageScraper

__all__ = [
    "DocFallbackResult",
    "DocIndex",
    "DocStage",
    "DocumentationResolver",
    "LocalDocs",
    "ManPageScraper",
    "strip_html",
]
