"""Parsers for HTML pages and sitemap documents."""
