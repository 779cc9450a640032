"""Database schema for the document store."""

SCHEMA = """
-- Documents table: one row per ingested document
CREATE TABLE IF NOT EXISTS documents (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    metadata TEXT,             -- JSON object
    created_at TEXT NOT NULL   -- UTC ISO-8601
);

-- Chunks table: text chunks with their embedding
CREATE TABLE IF NOT EXISTS document_chunks (
    id TEXT PRIMARY KEY,
    document_id TEXT NOT NULL,
    chunk_index INTEGER NOT NULL,
    content TEXT NOT NULL,
    start_pos INTEGER,
    end_pos INTEGER,
    content_type TEXT NOT NULL DEFAULT 'body',
    vector_data BLOB NOT NULL, -- little-endian float32
    created_at TEXT NOT NULL,
    FOREIGN KEY (document_id) REFERENCES documents(id)
);

-- Store info table: embedding model and dimension
CREATE TABLE IF NOT EXISTS store_info (
    key TEXT PRIMARY KEY,
    value TEXT
);
"""
