"""
Data layer for FootyCast.

Includes:
- Record types and fixture validation (`schema`)
- API-Football HTTP client (`client`) and payload parsers (`parsers`)
- Concurrent per-fixture loader (`data_loader`)
- Fixture lookup by date/team (`fixture_finder`)
- Provider prediction parser (`provider_predictions`)
"""
