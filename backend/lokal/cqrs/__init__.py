"""Command/query buses and their composition root."""
