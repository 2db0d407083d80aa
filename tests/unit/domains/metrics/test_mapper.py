"""Tests for MetricMapper — raw records to canonical entities."""

from __future__ import annotations

import pytest

from hmb.domains.metrics.errors import PartialMapError, ValidationError
from hmb.domains.metrics.models import (
    BloodPressureMetric,
    GenericMetric,
    HeartRateMetric,
    SleepMetric,
)


class TestValidation:
    def test_missing_name_raises(self, mapper):
        with pytest.raises(ValidationError, match="no metric name"):
            mapper.map({"data": []})

    def test_empty_name_raises(self, mapper):
        with pytest.raises(ValidationError):
            mapper.map({"name": "", "data": []})

    def test_non_object_record_raises(self, mapper):
        with pytest.raises(ValidationError):
            mapper.map(["HeartRate"])

    def test_non_list_samples_raises(self, mapper):
        with pytest.raises(ValidationError, match="must be a list"):
            mapper.map({"name": "HeartRate", "data": {"bpm": 60}})

    def test_zero_samples_is_not_an_error(self, mapper):
        result = mapper.map({"name": "HeartRate", "data": []})
        assert len(result) == 0
        assert result.dropped == ()

    def test_absent_samples_is_not_an_error(self, mapper):
        assert len(mapper.map({"name": "StepCount"})) == 0


class TestHeartRate:
    def test_n_samples_yield_n_entities(self, mapper):
        samples = [
            {"source": "Watch", "date": f"2024-01-01T00:0{i}:00Z", "bpm": 60 + i}
            for i in range(5)
        ]
        result = mapper.map({"name": "HeartRate", "samples": samples})
        assert len(result) == 5
        assert all(isinstance(e, HeartRateMetric) for e in result)
        assert all(e.source == "Watch" for e in result)

    def test_health_export_shape(self, mapper):
        result = mapper.map({
            "name": "HeartRate",
            "units": "count/min",
            "data": [{"source": "Watch", "date": "2024-01-01 08:30:00 -0500",
                      "Min": 55, "Avg": 61.5, "Max": 70}],
        })
        entity = result.entities[0]
        assert entity.date == "2024-01-01T13:30:00.000Z"
        assert (entity.min_bpm, entity.bpm, entity.max_bpm) == (55.0, 61.5, 70.0)

    def test_record_source_inherited(self, mapper):
        result = mapper.map({
            "name": "HeartRate",
            "source": "Watch",
            "samples": [{"date": "2024-01-01T00:00:00Z", "bpm": 60},
                        {"date": "2024-01-01T00:01:00Z", "bpm": 61}],
        })
        assert [e.source for e in result] == ["Watch", "Watch"]

    def test_sample_source_beats_record_source(self, mapper):
        result = mapper.map({
            "name": "HeartRate",
            "source": "Watch",
            "samples": [{"source": "Strap", "date": "2024-01-01T00:00:00Z", "bpm": 60}],
        })
        assert result.entities[0].source == "Strap"

    def test_canonical_record(self, mapper):
        result = mapper.map({
            "name": "HeartRate",
            "samples": [{"source": "Watch", "date": "2024-01-01T00:00:00Z", "bpm": 60}],
        })
        assert result.entities[0].to_record() == {
            "source": "Watch",
            "date": "2024-01-01T00:00:00.000Z",
            "bpm": 60.0,
            "units": "count/min",
        }


class TestDroppedSamples:
    def test_missing_source_or_date_dropped(self, mapper):
        result = mapper.map({
            "name": "HeartRate",
            "samples": [
                {"source": "Watch", "date": "2024-01-01T00:00:00Z", "bpm": 60},
                {"date": "2024-01-01T00:01:00Z", "bpm": 61},
                {"source": "Watch", "bpm": 62},
                {"source": "Watch", "date": "not a date", "bpm": 63},
            ],
        })
        assert len(result) == 1
        assert len(result.dropped) == 3
        assert all(isinstance(d, PartialMapError) for d in result.dropped)
        assert [d.index for d in result.dropped] == [1, 2, 3]
        assert result.dropped[0].reason == "missing source"
        assert result.dropped[1].reason == "missing date"

    def test_non_object_sample_dropped(self, mapper):
        result = mapper.map({"name": "StepCount", "data": [42, {"source": "P", "date": "2024-01-01"}]})
        assert len(result) == 1
        assert result.dropped[0].reason == "sample is not an object"

    def test_out_of_range_date_drops_only_that_sample(self, mapper):
        result = mapper.map({
            "name": "HeartRate",
            "data": [
                {"source": "Watch", "date": "2024-01-01T00:00:00Z", "bpm": 60},
                {"source": "Watch", "date": "0001-01-01T00:00:00+01:00", "bpm": 61},
                {"source": "Watch", "date": "9999-12-31T23:59:59-01:00", "bpm": 62},
            ],
        })
        assert [e.bpm for e in result] == [60.0]
        assert [d.index for d in result.dropped] == [1, 2]
        assert result.dropped[0].reason.startswith("unparseable date")

    def test_drops_are_logged(self, mapper, caplog):
        mapper.map({"name": "HeartRate", "samples": [{"bpm": 61}]})
        assert "dropped" in caplog.text


class TestBloodPressure:
    def test_nested_readings_expand(self, mapper):
        result = mapper.map({
            "name": "BloodPressure",
            "data": [{
                "source": "Cuff",
                "date": "2024-01-01T07:00:00Z",
                "readings": [
                    {"systolic": 120, "diastolic": 80},
                    {"systolic": 118, "diastolic": 78, "date": "2024-01-01T07:05:00Z"},
                ],
            }],
        })
        assert len(result) == 2
        assert all(isinstance(e, BloodPressureMetric) for e in result)
        assert [e.date for e in result] == ["2024-01-01T07:00:00.000Z", "2024-01-01T07:05:00.000Z"]
        assert all(e.source == "Cuff" for e in result)

    def test_flat_sample(self, mapper):
        result = mapper.map({
            "name": "BloodPressure",
            "data": [{"source": "Cuff", "date": "2024-01-01", "systolic": 121, "diastolic": 79, "pulse": 64}],
        })
        e = result.entities[0]
        assert (e.systolic, e.diastolic, e.pulse, e.units) == (121.0, 79.0, 64.0, "mmHg")

    def test_kpa_converted_to_mmhg(self, mapper):
        result = mapper.map({
            "name": "BloodPressure",
            "units": "kPa",
            "data": [{"source": "Cuff", "date": "2024-01-01", "systolic": 16, "diastolic": 10.7}],
        })
        e = result.entities[0]
        assert e.systolic == pytest.approx(120.0, abs=0.1)
        assert e.diastolic == pytest.approx(80.3, abs=0.1)
        assert e.units == "mmHg"

    def test_non_object_reading_dropped(self, mapper):
        result = mapper.map({
            "name": "BloodPressure",
            "data": [{"source": "Cuff", "date": "2024-01-01", "readings": [{"systolic": 120}, "bad"]}],
        })
        assert len(result) == 1
        assert len(result.dropped) == 1


class TestSleep:
    def test_hours_kept(self, mapper):
        result = mapper.map({
            "name": "SleepAnalysis",
            "units": "hr",
            "data": [{"source": "Ring", "date": "2024-01-02", "totalSleep": 7.5, "deep": 1.25,
                      "rem": 1.5, "core": 4.75, "awake": 0.3, "inBed": 8,
                      "sleepStart": "2024-01-01 23:00:00 +0000", "sleepEnd": "2024-01-02 06:45:00 +0000"}],
        })
        e = result.entities[0]
        assert isinstance(e, SleepMetric)
        assert e.total_sleep == 7.5
        assert e.in_bed == 8.0
        assert e.sleep_start == "2024-01-01T23:00:00.000Z"
        assert e.sleep_end == "2024-01-02T06:45:00.000Z"

    def test_minutes_converted_to_hours(self, mapper):
        result = mapper.map({
            "name": "SleepAnalysis",
            "units": "min",
            "data": [{"source": "Ring", "date": "2024-01-02", "asleep": 450, "deep": 90}],
        })
        e = result.entities[0]
        assert e.total_sleep == pytest.approx(7.5)
        assert e.deep == pytest.approx(1.5)


class TestGeneric:
    def test_fields_pass_through(self, mapper):
        result = mapper.map({
            "name": "StepCount",
            "units": "count",
            "data": [{"source": "Phone", "date": "2024-01-01T00:00:00Z", "qty": 1234,
                      "extra": {"nested": True}}],
        })
        e = result.entities[0]
        assert isinstance(e, GenericMetric)
        assert e.to_record() == {
            "source": "Phone",
            "date": "2024-01-01T00:00:00.000Z",
            "qty": 1234,
            "extra": {"nested": True},
            "units": "count",
        }

    def test_generic_does_not_expand_readings(self, mapper):
        result = mapper.map({
            "name": "Custom",
            "data": [{"source": "P", "date": "2024-01-01", "readings": [{"a": 1}, {"a": 2}]}],
        })
        assert len(result) == 1
        assert result.entities[0].values["readings"] == [{"a": 1}, {"a": 2}]

    def test_result_is_restartable(self, mapper):
        result = mapper.map({"name": "StepCount", "data": [{"source": "P", "date": "2024-01-01"}]})
        assert list(result) == list(result)
