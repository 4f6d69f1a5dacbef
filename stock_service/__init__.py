"""Stock item service: bulk ingestion, partial update, delete and listing of inventory per store."""
