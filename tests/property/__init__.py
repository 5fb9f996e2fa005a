"""Property-based tests for httpsim.

Test categories:
- matching: first-match-wins ordering, glob and method invariants
- randomness: bounded draws, seeded reproducibility, duration text form
"""
