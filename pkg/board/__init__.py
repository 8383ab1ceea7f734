# Board system: projects, lanes, cards, and per-card undo history
#
# Components:
#   schema.py     - Data model (Card, Lane, Project, CardVersion, BoardState)
#   normalizer.py - Upgrades persisted blobs (legacy single-project included)
#   actions.py    - Closed action set and wire decoding
#   reducer.py    - Pure (state, action) -> state transition engine
#   facade.py     - Live board with verbs, debounced saves, load fallback
#   store.py      - SQLite single-row persistence
#   client.py     - HTTP client for the storage service
#   config.py     - YAML + environment configuration
