"""Crawling: page fetching, sitemap resolution and the breadth-first scheduler."""
