"""Application constants."""

USER_AGENT = "jpweather/0.3 (+research; contact: configured-email)"
METRICS = (
    "average_temperature",
    "max_temperature",
    "min_temperature",
    "dew_point",
    "humidity_index",
)
SOURCE_KINDS = ("yearly_json", "html_table", "station_api")
UNITS = ("C", "F", "K")
DEFAULT_PLAUSIBILITY = {
    "average_temperature": {"min": -60.0, "max": 60.0},
    "max_temperature": {"min": -60.0, "max": 60.0},
    "min_temperature": {"min": -60.0, "max": 60.0},
    "dew_point": {"min": -60.0, "max": 60.0},
    "humidity_index": {"min": -60.0, "max": 80.0},
}
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
MAX_EXCLUSION_SAMPLES = 50
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "source",
    "event",
    "status",
    "duration_ms",
    "rows_in",
    "rows_out",
    "error_code",
    "message",
)
