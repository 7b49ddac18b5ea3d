class PipelineError(Exception):
    """Base class for all pipeline assembly errors."""


class ImmutablePipelineError(PipelineError):
    """Raised when a pipeline is mutated after it has been built."""


class DoubleRenderError(PipelineError):
    """Raised when a pipeline is rendered to its backend more than once."""


class PipelineConfigError(PipelineError):
    pass


class GraphValidationError(PipelineError):
    """Raised by backends when an execution graph cannot be rendered."""
