"""Query result cache."""
