"""
Exception types raised at the pipeline's external seams.
"""


class GieterError(Exception):
    """Base class for all Gieter errors."""


class ListingParseError(GieterError):
    """A listing page could not be turned into a Listing record."""


class JudgmentError(GieterError):
    """The judgment provider did not return a valid judgment."""

    def __init__(self, ref: str, message: str):
        super().__init__(f"{ref}: {message}")
        self.ref = ref
