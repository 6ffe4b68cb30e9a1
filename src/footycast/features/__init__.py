"""
Signal derivation for FootyCast.

- `ratings` turns player season stats into Offense/Defense scores.
- `team_profile` aggregates lineups into team profiles.
- `league_baseline` computes the league goal means (mu).
- `signals` derives lineup confidence, formation shape, two-leg ties,
  rest days, referee and tempo profiles.
"""
