"""Error taxonomy for the DataChat core.

Every failure a component can report has a class here.  Components raise
them internally and catch them at their own boundary, turning them into
report / outcome objects, so none of them reaches the UI as a crash.
"""


class DataChatError(Exception):
    """Base exception for DataChat."""

    category = "error"


class UnsupportedFileType(DataChatError):
    """Raised when an uploaded file's extension is not recognised."""

    category = "unsupported_file_type"


class EmptyDataset(DataChatError):
    """Raised when a table would be created from zero records."""

    category = "empty_dataset"


class IngestionFault(DataChatError):
    """Raised when parsing or copying an uploaded artifact fails."""

    category = "ingestion_fault"


class GenerationServiceError(DataChatError):
    """The text-generation service reported an error (quota, network, ...)."""

    category = "generation_error"


class MalformedGenerationOutput(DataChatError):
    """A structured completion did not match the requested shape."""

    category = "malformed_output"


class QueryExecutionFault(DataChatError):
    """The SQL engine rejected a generated query."""

    category = "query_error"


class NoChartCodeGenerated(DataChatError):
    """The completion carried no fenced Python block."""

    category = "no_chart_code"


class ChartExecutionFault(DataChatError):
    """Generated chart code raised or did not return a figure."""

    category = "chart_error"


class NoCurrentResult(DataChatError):
    """A derived action was requested without an available result."""

    category = "no_result"


class RequestPending(DataChatError):
    """A request of the same kind is still in flight."""

    category = "request_pending"
