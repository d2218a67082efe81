"""
aiknowsys - queryable knowledge base for plans, sessions and learned patterns.

Markdown files with YAML frontmatter under ``.aiknowsys/`` are the source of
truth. Two interchangeable storage backends derive a queryable view from them:

- JSON index cache (``.aiknowsys/context-index.json``)
- SQLite database with FTS5 tables (``~/.aiknowsys/knowledge.db`` by default)

On top of the storage layer sit the query/search facade and the learning
pipeline that turns recurring session observations into learned skills.
"""

__version__ = "0.1.0"
