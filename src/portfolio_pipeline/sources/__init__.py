"""Per-source extractors: GitHub (REST API) and LinkedIn (headless browser)."""
