"""Natural-language questions answered with MongoDB queries."""
