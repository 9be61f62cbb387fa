class DiagramError(Exception):
    """Base class for failures that stop a diagram-generation request."""


class ApiError(DiagramError):
    """The model API could not be reached or rejected the request."""


class ParsingError(DiagramError):
    """The model response could not be read as JSON."""


class ValidationError(DiagramError):
    """The parsed plan does not match the diagram schema."""
