from datetime import date

from jpweather.common.models import RawValue, SourceRecord
from jpweather.pipeline.normalise import normalise_records


def _record(index, fields, source="jma"):
    return SourceRecord(
        source_name=source,
        source_kind="html_table",
        record_index=index,
        entity_key="47662",
        fields={name: RawValue.of(value) for name, value in fields.items()},
        date=date(2023, 8, index + 1),
    )


def test_normalise_emits_one_observation_per_present_metric():
    records = [
        _record(0, {"average_temperature": "29.1", "max_temperature": "34.0"}),
        _record(1, {"average_temperature": "", "max_temperature": "35.2", "sunshine": "9.1"}),
    ]

    pending, stats = normalise_records(records, ["average_temperature", "max_temperature", "min_temperature"])

    assert [(obs.record_index, obs.metric) for obs in pending] == [
        (0, "average_temperature"),
        (0, "max_temperature"),
        (1, "max_temperature"),
    ]
    assert pending[0].value == RawValue("text", "29.1")
    assert pending[0].date == date(2023, 8, 1)
    assert stats["rows_in"] == 2
    assert stats["rows_out"] == 3
    assert stats["missing_values"] == {"jma": 1}
    assert stats["ignored_fields"] == {"jma": 1}


def test_normalise_drops_disabled_metrics():
    records = [_record(0, {"average_temperature": 29.1, "dew_point": 20.5})]

    pending, stats = normalise_records(records, ["dew_point"])

    assert [obs.metric for obs in pending] == ["dew_point"]
    assert stats["ignored_fields"] == {"jma": 1}
