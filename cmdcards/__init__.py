# Command glossary: cards, filtering, and a local cache kept in sync with a row store
#
# Components:
#   schema.py     - Data model (Card, CardDraft, Example, CardCategory, resolve_category)
#   filters.py    - Pure search/tag/category filter engine
#   selection.py  - Toggle-based filter selection state
#   store.py      - Row store interface, SQLite and in-memory backends
#   rest_store.py - PostgREST-style HTTP row store
#   sync.py       - Local cache synchronizer (load/create/update/remove)
#   board.py      - Add/edit/delete page flow around a synchronizer
#   render.py     - Plain-text card formatting
#   config.py     - YAML/env configuration and backend selection
