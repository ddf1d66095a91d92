"""Scoring version constants, normalization bounds and weights."""

SCORE_CALC_VERSION = "risk_v1"

# sub-score name -> (zero-risk point, full-risk point). Inverted indicators
# (PMI, book-to-bill) have zero-risk point above full-risk point.
INDICATOR_BOUNDS = {
    "oas": (250.0, 700.0),
    "fci": (-0.8, 0.6),
    "pmi": (55.0, 45.0),
    "dxy": (95.0, 110.0),
    "book_bill": (1.0, 0.9),
    "ur": (3.5, 8.0),
}

SCORE_WEIGHTS = {
    "oas": 0.25,
    "fci": 0.15,
    "pmi": 0.20,
    "dxy": 0.10,
    "book_bill": 0.10,
    "ur": 0.20,
}

# Exclusive-above thresholds.
TIGHT_THRESHOLD = 0.6
NEUTRAL_THRESHOLD = 0.35
