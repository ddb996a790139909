# src/scoring/normalizer.py

from pandas import Series

from src.scoring.base import NO_VALUES, YES_VALUES, SafeParser, is_missing
from src.sysops.names import FIELD_ALIASES, NUMERIC_BOUNDS, get_procedure_str


class FieldNormalizer(SafeParser):
    """
    Turns a raw patient record (dict or pandas Series, as delivered by the
    extraction step) into a Series of canonical predicates.

    Every OR-chain over heterogeneous fields (reoperation, COPD, recent MI,
    ...) is resolved here once, so that the outcome tables only ever refer
    to canonical names such as `is_reoperation` or `has_copd`. Besides the
    predicates, the Series carries display strings (`priority`,
    `diabetes`, `lung_disease`, `mi_timing`, ...) used in the trace.
    """

    def __init__(self):
        super().__init__(name="FieldNormalizer")

    def raw(self, record, key):
        """Return the first present raw value among the aliases of `key`."""
        for alias in FIELD_ALIASES.get(key, [key]):
            value = record.get(alias)
            if not is_missing(value):
                return value
        return None

    def number(self, record, key):
        return self.safe_float(self.raw(record, key), bounds=NUMERIC_BOUNDS.get(key))

    def flag(self, record, key) -> bool:
        # enum values such as "Yes, hemodialysis" count as present
        value = self.raw(record, key)
        if isinstance(value, str):
            text = value.strip().lower()
            if text not in YES_VALUES | NO_VALUES:
                try:
                    float(text)
                except ValueError:
                    return self.safe_presence(value)
        return self.safe_bool(value)

    def present(self, record, key) -> bool:
        return self.safe_presence(self.raw(record, key))

    def text(self, record, key) -> str:
        value = self.raw(record, key)
        if value is None:
            return ""
        return str(value).strip()

    def age(self, record):
        age = self.number(record, "age")
        if age is None and self.raw(record, "age") is None:
            dob = self.raw(record, "date_of_birth")
            dos = self.raw(record, "date_of_surgery")
            if dob is not None and dos is not None:
                age, _ = self.age_from_dates(dob, dos)
                if age is not None:
                    age = float(age)
        return age

    def bmi(self, record):
        bmi = self.number(record, "bmi")
        if bmi is None and self.raw(record, "bmi") is None:
            height = self.number(record, "height")
            weight = self.number(record, "weight")
            if height and weight:
                bmi = self.safe_float(
                    weight / (height / 100.0) ** 2, bounds=NUMERIC_BOUNDS["bmi"]
                )
        return bmi

    def is_female(self, record) -> bool:
        return self.text(record, "gender").lower() in {"female", "f"}

    def is_reoperation(self, record) -> bool:
        # union over every field that can signal prior cardiac surgery
        incidence = self.text(record, "surgery_incidence").lower()
        return (
            self.flag(record, "reoperation")
            | self.flag(record, "prior_cardiac_surgery")
            | self.flag(record, "previous_cabg")
            | self.flag(record, "previous_valve")
            | ("reop" in incidence)
        )

    def is_emergency(self, record) -> bool:
        # covers "Emergency", "Emergent" and "Emergent Salvage"
        priority = self.text(record, "priority").lower()
        return ("emergency" in priority) | ("emergent" in priority)

    def is_urgent(self, record) -> bool:
        if self.is_emergency(record):
            return False
        return self.text(record, "priority").lower() == "urgent"

    def has_copd(self, record) -> bool:
        return self.flag(record, "copd") | self.present(record, "chronic_lung_disease")

    def copd_severe(self, record) -> bool:
        severity = self.text(record, "copd_severity").lower()
        lung_disease = self.text(record, "chronic_lung_disease").lower()
        return self.has_copd(record) & (("severe" in severity) | ("severe" in lung_disease))

    def recent_mi(self, record):
        """
        Classify MI timing into 'immediate' (≤ 6 hrs), 'recent' (within 21
        days) or None. '> 21 Days' never counts, whatever the spacing.
        """
        timing = "".join(self.text(record, "mi_timing").lower().split())
        if ">21days" in timing:
            return None
        if "≤6hrs" in timing or "<=6hrs" in timing:
            return "immediate"
        if any(t in timing for t in ("<24", "1to7days", "8to21days")):
            return "recent"
        if self.flag(record, "recent_mi"):
            return "recent"
        return None

    def has_cerebrovascular_disease(self, record) -> bool:
        return self.flag(record, "prior_stroke") | self.present(
            record, "cerebrovascular_disease"
        )

    def __call__(self, record) -> Series:
        if record is None:
            record = {}
        age = self.age(record)
        procedure_type = self.text(record, "procedure_type")
        items = {
            # demographics
            "age": age,
            "gender": self.text(record, "gender"),
            "is_female": self.is_female(record),
            "bmi": self.bmi(record),
            # procedure
            "procedure_type": procedure_type,
            "procedure": get_procedure_str(procedure_type),
            "priority": self.text(record, "priority"),
            "is_emergency": self.is_emergency(record),
            "is_urgent": self.is_urgent(record),
            "is_reoperation": self.is_reoperation(record),
            # cardiac
            "ejection_fraction": self.number(record, "ejection_fraction"),
            "nyha_class": self.safe_nyha(self.raw(record, "nyha_class")),
            "has_chf": self.flag(record, "chf"),
            "recent_mi": self.recent_mi(record),
            "mi_timing": self.text(record, "mi_timing") or "Yes",
            "cardiogenic_shock": self.flag(record, "cardiogenic_shock"),
            "mechanical_support": self.flag(record, "mechanical_support"),
            "left_main_disease": self.flag(record, "left_main_disease"),
            "endocarditis": self.flag(record, "endocarditis"),
            "pulmonary_hypertension": self.flag(record, "pulmonary_hypertension"),
            # comorbidities
            "has_diabetes": self.present(record, "diabetes"),
            "diabetes": self.text(record, "diabetes") or "Yes",
            "has_hypertension": self.flag(record, "hypertension"),
            "dialysis": self.flag(record, "dialysis"),
            "creatinine": self.number(record, "creatinine"),
            "has_pvd": self.flag(record, "pvd"),
            "has_copd": self.has_copd(record),
            "copd_severe": self.copd_severe(record),
            "lung_disease": self.text(record, "chronic_lung_disease") or "Yes",
            "has_cerebrovascular_disease": self.has_cerebrovascular_disease(record),
            "cerebrovascular_disease": self.text(record, "cerebrovascular_disease")
            or "Yes",
        }
        return Series(items, dtype=object)


normalize = FieldNormalizer()
