"""Exception taxonomy shared by the analysis pipeline.

:class:`InvalidInputError` and its subclasses describe caller mistakes and are
mapped to ``400`` at the HTTP boundary.  Everything else is mapped to ``500``
with the exception text as the message.
"""


class AnalysisError(Exception):
    """Base class for every failure raised by the analysis pipeline."""


class InvalidInputError(AnalysisError, ValueError):
    """The input is missing, empty, or malformed."""


class EmptyContentError(InvalidInputError):
    """There is nothing to analyse after extraction or validation."""


class InvalidImageError(InvalidInputError):
    """The image URL is empty or not an absolute http(s) URL."""


class FetchError(AnalysisError):
    """The target URL could not be fetched."""


class UnsupportedFormatError(AnalysisError):
    """The uploaded document could not be decoded."""


class ProviderError(AnalysisError):
    """The external AI service rejected the request or failed to answer."""


class AnalysisTimeoutError(AnalysisError, TimeoutError):
    """A provider call or an assistant run exceeded its wait budget."""
