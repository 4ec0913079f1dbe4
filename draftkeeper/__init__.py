"""DraftKeeper: draft coordination engine and reference backend."""
