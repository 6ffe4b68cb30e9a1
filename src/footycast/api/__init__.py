"""
FastAPI prediction service for FootyCast.

Exposes endpoints to:
- Predict the score distribution of a fixture.
- Find fixtures and screen a matchday by market-implied probabilities.
"""
