# studyflow/exceptions.py

class StudyFlowError(Exception):
    """Base class for errors raised by the flashcard engine."""


class NotFound(StudyFlowError):
    """A deck or card ID does not resolve."""


class InvalidArgument(StudyFlowError):
    """A required field is empty or a value is not recognised."""


class StoreFailure(StudyFlowError):
    """The underlying document store could not complete an operation."""
