"""
Loader Kernel - batch entity-loading engine.

Takes a batch of structured input records for one entity type and, per record,
decides whether to create, update, upsert, skip or reject it:
- Fluent per-record validation (ValidationBuilder)
- Ordered multi-strategy lookup of existing entities (LookupResolver)
- One generic load algorithm over pluggable per-entity policies
- A registry exposing loaders, categories and field schemas to callers
"""

__version__ = "0.1.0"
