"""
Scoring model for FootyCast.

- `lambdas` and `modifiers` produce the two expected-goal rates.
- `score_matrix` builds the corrected Poisson score grid.
- `market` parses odds, blends 1X2 and calibrates total goals.
- `outcomes` aggregates the grid into match markets.
- `engine` wires it all together; `screener` ranks fixtures by odds.
"""
