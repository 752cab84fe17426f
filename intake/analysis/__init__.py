"""AI analysis: Mistral analyzer, record reconciliation and HTTP routes."""
