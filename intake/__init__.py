"""Business intake backend: document ingestion and AI analysis pipeline."""
