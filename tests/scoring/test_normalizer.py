# /tests/scoring/test_normalizer.py

import numpy as np
import pandas as pd
import pytest

from src.scoring.normalizer import FieldNormalizer


@pytest.fixture
def normalizer():
    return FieldNormalizer()


@pytest.fixture
def default_record():
    return {
        "age": 70,
        "gender": "Male",
        "procedureType": "Isolated CABG",
        "ejectionFraction": 55,
        "priority": "Elective",
    }


def test_normalize_returns_series(normalizer, default_record):
    output = normalizer(default_record)
    assert isinstance(output, pd.Series)
    assert output["age"] == 70.0
    assert output["procedure"] == "cabg"
    assert output["procedure_type"] == "Isolated CABG"
    assert not output["is_female"]
    assert not output["is_emergency"]
    assert not output["is_urgent"]
    assert not output["is_reoperation"]
    assert output["recent_mi"] is None


def test_normalize_accepts_series(normalizer, default_record):
    output = normalizer(pd.Series(default_record))
    assert output["age"] == 70.0
    assert output["ejection_fraction"] == 55.0


def test_normalize_empty_record(normalizer):
    for record in ({}, None):
        output = normalizer(record)
        assert output["age"] is None
        assert output["gender"] == ""
        assert output["procedure"] is None
        assert not output["dialysis"]


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, None),
        ("", None),
        ("missing", None),
        ("N/A", None),
        (np.nan, None),
        ("72", 72.0),
        (72.5, 72.5),
        ("abc", None),  # non-numeric is dropped
        (-5, None),  # implausible is dropped
        (0, None),
        (150, None),
        (True, None),
    ],
)
def test_age_sanitization(normalizer, default_record, value, expected):
    record = default_record.copy()
    record["age"] = value
    assert normalizer(record)["age"] == expected


@pytest.mark.parametrize(
    "value,expected",
    [(100, 100.0), (100.5, None), (0, None), ("35", 35.0), ("low", None)],
)
def test_ejection_fraction_bounds(normalizer, default_record, value, expected):
    record = default_record.copy()
    record["ejectionFraction"] = value
    assert normalizer(record)["ejection_fraction"] == expected


def test_malformed_value_logs_warning(normalizer, default_record, caplog):
    record = default_record.copy()
    record["creatinine"] = "elevated"
    with caplog.at_level("WARNING"):
        output = normalizer(record)
    assert output["creatinine"] is None
    assert "elevated" in caplog.text


def test_first_present_alias_wins(normalizer, default_record):
    record = default_record.copy()
    record["ejectionFraction"] = "missing"
    record["lvef"] = 40
    record["heartFailure"] = "yes"
    record["iabp"] = True
    record["left_main_stenosis"] = 1
    record["peripheralVascularDisease"] = "Yes"
    output = normalizer(record)
    assert output["ejection_fraction"] == 40.0
    assert output["has_chf"]
    assert output["mechanical_support"]
    assert output["left_main_disease"]
    assert output["has_pvd"]


@pytest.mark.parametrize(
    "value,expected",
    [
        ("No", False),
        ("none", False),
        ("", False),
        ("Yes, Insulin", True),
        ("Yes, Oral", True),
        ("Diet only", True),
        (True, True),
        (False, False),
    ],
)
def test_diabetes_sentinels(normalizer, default_record, value, expected):
    record = default_record.copy()
    record["diabetes"] = value
    assert normalizer(record)["has_diabetes"] == expected


@pytest.mark.parametrize(
    "fields",
    [
        {"reoperation": True},
        {"priorCardiacSurgery": "yes"},
        {"previousCABG": "Yes"},
        {"previous_valve": 1},
        {"surgeryIncidence": "Reop #1"},
        {"surgery_incidence": "reoperation"},
    ],
)
def test_reoperation_union(normalizer, default_record, fields):
    record = default_record.copy()
    record.update(fields)
    assert normalizer(record)["is_reoperation"]


def test_reoperation_negative(normalizer, default_record):
    record = default_record.copy()
    record.update(
        {
            "reoperation": "No",
            "previousCABG": False,
            "surgeryIncidence": "First cardiovascular surgery",
        }
    )
    assert not normalizer(record)["is_reoperation"]


@pytest.mark.parametrize(
    "priority,emergency,urgent",
    [
        ("Emergency", True, False),
        ("Emergent", True, False),
        ("Emergent Salvage", True, False),
        ("Urgent", False, True),
        ("  URGENT ", False, True),
        ("urgent/emergent", True, False),
        ("Elective", False, False),
        ("", False, False),
    ],
)
def test_priority(normalizer, default_record, priority, emergency, urgent):
    record = default_record.copy()
    record["priority"] = priority
    output = normalizer(record)
    assert output["is_emergency"] == emergency
    assert output["is_urgent"] == urgent


@pytest.mark.parametrize(
    "fields,expected",
    [
        ({"miTiming": "> 21 Days"}, None),
        ({"miTiming": ">21 days"}, None),
        ({"miTiming": "≤ 6 Hrs"}, "immediate"),
        ({"miTiming": "<= 6 hrs"}, "immediate"),
        ({"miTiming": "< 24 Hrs"}, "recent"),
        ({"miTiming": "1 to 7 Days"}, "recent"),
        ({"miTiming": "8 to 21 Days"}, "recent"),
        ({"recentMI": True}, "recent"),
        ({"recentMI": "No"}, None),
        ({"recentMI": True, "miTiming": "> 21 Days"}, None),
    ],
)
def test_recent_mi_tiers(normalizer, default_record, fields, expected):
    record = default_record.copy()
    record.update(fields)
    assert normalizer(record)["recent_mi"] == expected


@pytest.mark.parametrize(
    "fields,has_copd,severe",
    [
        ({"copd": True}, True, False),
        ({"copd": True, "copdSeverity": "Severe"}, True, True),
        ({"chronicLungDisease": "Mild"}, True, False),
        ({"chronicLungDisease": "Severe"}, True, True),
        ({"chronicLungDisease": "No"}, False, False),
        ({"copdSeverity": "Severe"}, False, False),
    ],
)
def test_copd(normalizer, default_record, fields, has_copd, severe):
    record = default_record.copy()
    record.update(fields)
    output = normalizer(record)
    assert output["has_copd"] == has_copd
    assert output["copd_severe"] == severe


@pytest.mark.parametrize(
    "value,expected",
    [("Class III", 3), ("IV", 4), ("ii", 2), (1, 1), ("3.0", 3), (5, None), ("bad", None)],
)
def test_nyha_class(normalizer, default_record, value, expected):
    record = default_record.copy()
    record["nyhaClass"] = value
    assert normalizer(record)["nyha_class"] == expected


@pytest.mark.parametrize("gender,expected", [("Female", True), ("f", True), ("Male", False)])
def test_is_female(normalizer, default_record, gender, expected):
    record = default_record.copy()
    record["gender"] = gender
    assert normalizer(record)["is_female"] == expected


def test_age_from_dates(normalizer, default_record):
    record = default_record.copy()
    del record["age"]
    record["dateOfBirth"] = "1950-06-15"
    record["dateOfSurgery"] = "2025-06-14"
    assert normalizer(record)["age"] == 74.0

    record["dateOfBirth"] = "29.02.1952"
    record["dateOfSurgery"] = "28.02.2022"
    assert normalizer(record)["age"] == 69.0


def test_age_explicit_wins_over_dates(normalizer, default_record):
    record = default_record.copy()
    record["dateOfBirth"] = "01.01.1990"
    record["dateOfSurgery"] = "01.01.2020"
    assert normalizer(record)["age"] == 70.0


def test_age_implausible_not_replaced_by_dates(normalizer, default_record):
    record = default_record.copy()
    record["age"] = -1
    record["dateOfBirth"] = "01.01.1950"
    record["dateOfSurgery"] = "01.01.2020"
    assert normalizer(record)["age"] is None


def test_bmi_from_height_and_weight(normalizer, default_record):
    record = default_record.copy()
    record["weight"] = 90
    record["height"] = 180
    assert np.isclose(normalizer(record)["bmi"], 27.7778, atol=1e-4)

    record["bmi"] = "31.2"
    assert normalizer(record)["bmi"] == 31.2


def test_display_strings(normalizer, default_record):
    record = default_record.copy()
    record.update(
        {"diabetes": "Yes, Insulin", "miTiming": "1 to 7 Days", "chronicLungDisease": "Moderate"}
    )
    output = normalizer(record)
    assert output["diabetes"] == "Yes, Insulin"
    assert output["mi_timing"] == "1 to 7 Days"
    assert output["lung_disease"] == "Moderate"
    assert normalizer(default_record)["mi_timing"] == "Yes"


@pytest.mark.parametrize(
    "key,value,column,expected",
    [
        ("dialysis", "Yes, hemodialysis", "dialysis", True),
        ("dialysis", "Peritoneal", "dialysis", True),
        ("dialysis", "No", "dialysis", False),
        ("dialysis", "None", "dialysis", False),
        ("dialysis", "false", "dialysis", False),
        ("dialysis", "Unknown", "dialysis", False),
        ("dialysis", "0.0", "dialysis", False),
        ("cardiogenicShock", "Yes - At the time of the transport to the OR", "cardiogenic_shock", True),
        ("chf", "Yes, acute", "has_chf", True),
        ("pvd", "Claudication", "has_pvd", True),
        ("iabp", "Yes, preoperative", "mechanical_support", True),
        ("endocarditis", "Active", "endocarditis", True),
        ("hypertension", "Treated", "has_hypertension", True),
        ("leftMainStenosis", "Yes, >50%", "left_main_disease", True),
        ("previousCABG", "Yes, 2009", "is_reoperation", True),
    ],
)
def test_enum_valued_flags(normalizer, default_record, key, value, column, expected):
    record = default_record.copy()
    record[key] = value
    assert normalizer(record)[column] == expected


def test_enum_valued_flag_no_warning(normalizer, default_record, caplog):
    record = default_record.copy()
    record["dialysis"] = "Yes, hemodialysis"
    with caplog.at_level("WARNING"):
        normalizer(record)
    assert "safe_bool" not in caplog.text


@pytest.mark.parametrize(
    "fields",
    [
        {"chronicLungDisease": "Severe COPD"},
        {"copd": True, "copdSeverity": "Severe (FEV1 < 50%)"},
    ],
)
def test_copd_severe_substring(normalizer, default_record, fields):
    record = default_record.copy()
    record.update(fields)
    output = normalizer(record)
    assert output["has_copd"]
    assert output["copd_severe"]
