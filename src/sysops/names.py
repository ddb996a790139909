# src/sysops/names.py

# procedure display/alias to canonical key mapping
PROCEDURE_STR = {
    "cabg": "cabg",
    "isolated cabg": "cabg",
    "coronary artery bypass graft": "cabg",
    "avr": "avr",
    "aortic valve replacement": "avr",
    "isolated avr": "avr",
    "mvr": "mvr",
    "mitral valve replacement": "mvr",
    "isolated mvr": "mvr",
    "mv repair": "mv_repair",
    "mvrepair": "mv_repair",
    "mv_repair": "mv_repair",
    "mitral valve repair": "mv_repair",
}

# canonical key to display mapping
PROCEDURE_DISPLAY = {
    "cabg": "Isolated CABG",
    "avr": "Isolated AVR",
    "mvr": "Isolated MVR",
    "mv_repair": "MV Repair",
}

# outcomes in reporting order
OUTCOMES = (
    "mortality",
    "morbidity",
    "stroke",
    "renal_failure",
    "reoperation",
    "prolonged_ventilation",
    "deep_sternal_wound_infection",
    "long_hospital_stay",
    "short_hospital_stay",
)

OUTCOME_DISPLAY = {
    "mortality": "Mortality",
    "morbidity": "Morbidity & Mortality",
    "stroke": "Stroke",
    "renal_failure": "Renal Failure",
    "reoperation": "Reoperation",
    "prolonged_ventilation": "Prolonged Ventilation",
    "deep_sternal_wound_infection": "Deep Sternal Wound Infection",
    "long_hospital_stay": "Long Hospital Stay",
    "short_hospital_stay": "Short Hospital Stay",
}

# required raw fields, named as delivered by the extraction step
REQUIRED_FIELDS = ("age", "gender", "procedureType")

# canonical fact -> raw field names, first present wins
FIELD_ALIASES = {
    "age": ["age"],
    "gender": ["gender", "sex"],
    "procedure_type": ["procedureType", "procedure_type", "procedure"],
    "date_of_birth": ["dateOfBirth", "date_of_birth"],
    "date_of_surgery": ["dateOfSurgery", "date_of_surgery"],
    "height": ["height", "heightCm", "height_cm"],
    "weight": ["weight", "weightKg", "weight_kg"],
    "bmi": ["bmi", "BMI"],
    "ejection_fraction": ["ejectionFraction", "ejection_fraction", "lvef", "ef"],
    "creatinine": ["creatinine"],
    "nyha_class": ["nyhaClass", "nyha_class", "nyha"],
    "diabetes": ["diabetes"],
    "hypertension": ["hypertension"],
    "dialysis": ["dialysis"],
    "priority": ["priority", "status", "urgency"],
    "surgery_incidence": ["surgeryIncidence", "surgery_incidence"],
    "reoperation": ["reoperation"],
    "prior_cardiac_surgery": ["priorCardiacSurgery", "prior_cardiac_surgery"],
    "previous_cabg": ["previousCABG", "previous_cabg"],
    "previous_valve": ["previousValve", "previous_valve"],
    "chf": ["chf", "heartFailure", "heart_failure"],
    "pvd": ["pvd", "peripheralVascularDisease", "peripheral_vascular_disease"],
    "copd": ["copd"],
    "copd_severity": ["copdSeverity", "copd_severity"],
    "chronic_lung_disease": ["chronicLungDisease", "chronic_lung_disease"],
    "recent_mi": ["recentMI", "recent_mi"],
    "mi_timing": ["miTiming", "mi_timing"],
    "cardiogenic_shock": ["cardiogenicShock", "cardiogenic_shock"],
    "mechanical_support": ["iabp", "mechanicalSupport", "mechanical_support"],
    "left_main_disease": [
        "leftMainStenosis",
        "leftMainDisease",
        "left_main_stenosis",
        "left_main_disease",
    ],
    "prior_stroke": ["priorStroke", "prior_stroke"],
    "cerebrovascular_disease": ["cerebrovascularDisease", "cerebrovascular_disease"],
    "endocarditis": ["endocarditis"],
    "pulmonary_hypertension": ["pulmonaryHypertension", "pulmonary_hypertension"],
}

# plausibility bounds (lower, upper, upper_inclusive) for numeric fields
NUMERIC_BOUNDS = {
    "age": (0, 150, False),
    "ejection_fraction": (0, 100, True),
    "creatinine": (0, 30, False),
    "bmi": (0, 100, False),
    "height": (0, 300, False),
    "weight": (0, 500, False),
}


def get_procedure_str(procedure_name) -> str:
    """
    Get the canonical procedure key for a procedure name, or None if the
    procedure is not modelled.
    """
    if not isinstance(procedure_name, str):
        return None
    procedure = " ".join(procedure_name.lower().split())
    return PROCEDURE_STR.get(procedure)


def get_procedure_display(procedure_str: str) -> str:
    return PROCEDURE_DISPLAY.get(procedure_str, procedure_str)


def get_outcome_display(outcome: str) -> str:
    """
    Get the display representation of an outcome.
    """
    return OUTCOME_DISPLAY.get(outcome, outcome.replace("_", " ").title())
