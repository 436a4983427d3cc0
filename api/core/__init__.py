"""
Shared, cross-cutting code for the API.

`core/` holds the building blocks every feature uses: settings, DB wiring,
the store and table abstractions, validation and error kinds. Keep
entity-specific tables and orchestration in the feature package (e.g.
`badges/`).
"""
