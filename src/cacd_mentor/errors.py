"""Error taxonomy shared by the store, timer and generation client."""


class MentorError(Exception):
    """Base class for recoverable errors surfaced to the user."""


class ValidationError(MentorError):
    """A user action was rejected; state is unchanged."""


class PersistenceError(MentorError):
    """The progress snapshot could not be written.

    The in-memory state has already been updated when this is raised.
    """


class GenerationError(MentorError):
    """The remote model failed or returned data that could not be parsed."""
