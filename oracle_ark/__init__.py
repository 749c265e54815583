"""Oracle Ark: multi-source token price oracle."""
