"""Provider clients, feature collection and the evaluation side services."""
