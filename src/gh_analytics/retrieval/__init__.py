"""GitHub REST retrieval: transport helpers and per-resource fetchers."""
