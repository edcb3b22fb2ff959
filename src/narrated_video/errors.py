"""Error taxonomy for the narrated video pipeline.

Stage-local recoverable conditions (an unparseable scene plan, a scene with
no stock media) are handled inside their stage and never raise. Everything
here is fatal to the job that raised it.
"""


class NarratedVideoError(Exception):
    """Base class for pipeline errors."""

    pass


class InputUnavailableError(NarratedVideoError):
    """Required source text is missing or empty. Raised before any stage runs."""

    pass


class GenerationError(NarratedVideoError):
    """Script generation failed or returned nothing usable."""

    pass


class SynthesisError(NarratedVideoError):
    """The speech provider failed on a narration chunk."""

    pass


class AssemblyError(NarratedVideoError):
    """Building, concatenating or muxing clips failed."""

    pass


class EmptyInputError(InputUnavailableError):
    """Source text exists but is blank."""

    pass
