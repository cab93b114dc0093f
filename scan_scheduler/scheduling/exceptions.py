"""Scheduling exceptions."""


class CalculationError(Exception):
    """No occurrence of a pattern was found within the bounded search.

    Only reachable for patterns that slipped past validation; a valid
    schedule always has an occurrence inside the search window.
    """

    pass
