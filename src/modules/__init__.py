"""
Pathway domain modules.

- user: user directory (profile, streak fields, points history)
- score: per-user score accumulator
- progression: award engine, level configuration, attempt ledger, streaks
- leaderboard: ranked view over scores
- quiz: answer grading
- reading_state: recently accessed modules
- shared: base classes, exceptions, constants, formulas, validators
"""
