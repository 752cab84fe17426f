"""Document ingestion: storage access, download and text extraction."""
