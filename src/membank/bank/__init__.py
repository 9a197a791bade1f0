"""Memory bank storage: SQLite via SQLAlchemy.

Layout:
    db/memory-bank.db
    ├── documents    # unique name per document
    ├── sections     # unique (document_id, title), ordered by creation
    └── entries      # append-only text, ordered by creation within a section

Rendered document:
    ## Section title
    - first entry
    - second entry
    <blank line>
"""
