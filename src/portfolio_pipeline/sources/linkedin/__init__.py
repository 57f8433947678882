"""LinkedIn headless-browser extractor, session manager and retry wrapper."""
