"""FootyCast: football match score-distribution prediction."""
