"""
Constants used by the match and player-request lifecycles.
"""

# Finished matches are removed this long after they finish
FINISHED_MATCH_GRACE_MINUTES = 15

# Rejected player requests expire this long after rejection
REJECTED_REQUEST_TTL_MINUTES = 15

# How often the cleanup sweeper runs (seconds)
SWEEP_INTERVAL_SECONDS = 60

# Literal age group that is never split or sorted
MIXED_AGES = "Mixed Ages"

# First birth year offered in the age-group picker
FIRST_AGE_GROUP_YEAR = 2010

DEFAULT_MATCH_DESCRIPTION = "Friendly match"

# Player request listing pagination
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
