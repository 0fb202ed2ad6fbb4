"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for pipeline failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class ContractError(PipelineError):
    """Raised when strict output contracts are broken."""

    error_code = "CONTRACT_ERROR"


class StageError(PipelineError):
    """Raised for stage failures that should halt in strict mode."""

    error_code = "STAGE_ERROR"


class SourceError(StageError):
    """A single source could not contribute to the run."""

    error_code = "SOURCE_ERROR"

    def __init__(self, source_name: str, detail: str = "") -> None:
        self.source_name = source_name
        self.detail = detail
        message = f"{source_name}: {detail}" if detail else source_name
        super().__init__(message)


class SourceUnavailable(SourceError):
    """I/O, network or timeout failure while reading a source."""

    error_code = "SOURCE_UNAVAILABLE"


class MalformedSource(SourceError):
    """Source was readable but did not have the expected structure."""

    error_code = "MALFORMED_SOURCE"


class RecordError(PipelineError):
    """Per-record failure. The record is excluded and counted, the run goes on."""

    error_code = "RECORD_ERROR"

    def __init__(self, detail: str, *, entity_id: str | None = None, metric: str | None = None) -> None:
        self.detail = detail
        self.entity_id = entity_id
        self.metric = metric
        super().__init__(detail)


class UnparseableValue(RecordError):
    error_code = "UNPARSEABLE_VALUE"


class OffsetOutOfRange(RecordError):
    error_code = "OFFSET_OUT_OF_RANGE"


class ImplausibleValue(RecordError):
    error_code = "IMPLAUSIBLE_VALUE"


class UnresolvedEntity(RecordError):
    error_code = "UNRESOLVED_ENTITY"
