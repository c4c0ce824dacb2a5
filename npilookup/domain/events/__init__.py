"""Domain Event definitions.

Represents registry calls, retries, cache lookups and batch completions that
other parts of the system might react to.
"""
