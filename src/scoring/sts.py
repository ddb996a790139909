# src/scoring/sts.py

from pandas import Series

from src.scoring.base import RiskScore, RiskScoreFactory, is_missing
from src.scoring.engine import load_procedure_model
from src.scoring.normalizer import normalize
from src.scoring.results import OutcomeResult, RiskAssessment, RiskFactorContribution
from src.scoring.trace import format_value
from src.sysops.names import REQUIRED_FIELDS

# (upper bound of risk points, mortality %) for the coarse fallback
HEURISTIC_BREAKPOINTS = ((2, 1.5), (4, 3.0), (6, 5.5), (8, 8.0))
HEURISTIC_CEILING = 12.0
HEURISTIC_MORBIDITY_MULTIPLIER = 3.5


def categorize(mortality_percent) -> str:
    """
    Qualitative band of a mortality percentage: Low below 1%, Moderate
    below 5%, High otherwise.
    """
    mortality = float(mortality_percent)
    if mortality < 1:
        return "Low"
    if mortality < 5:
        return "Moderate"
    return "High"


def missing_required_fields(record: Series) -> list:
    # checked on normalized values, so an implausible age counts as missing
    required = dict(zip(("age", "gender", "procedure_type"), REQUIRED_FIELDS))
    return [raw for key, raw in required.items() if is_missing(record.get(key))]


def assess_confidence(missing_fields, procedure_str) -> str:
    if missing_fields:
        return "low"
    if procedure_str is None:
        return "medium"
    return "high"


@RiskScoreFactory.register("sts")
class STSRiskScore(RiskScore):
    """
    STS-style perioperative risk calculator for adult cardiac surgery.

    Reference:
        O'Brien SM, Feng L, He X, et al.
        The Society of Thoracic Surgeons 2018 Adult Cardiac Surgery Risk
        Models: Part 2 - Statistical Methods and Results.
        Ann Thorac Surg. 2018;105(5):1419–1428.
        https://doi.org/10.1016/j.athoracsur.2018.03.003

    Overview:
        Reproduces the structure of the STS risk models with approximate,
        non-proprietary logistic coefficients. Results are not clinically
        validated against the official STS calculator.

    Outcomes:
        - Operative mortality (PROM)
        - Morbidity or mortality composite (PROMM)
        - Stroke, renal failure, reoperation, prolonged ventilation,
          deep sternal wound infection, long and short hospital stay
          (isolated CABG only)

    Procedures:
        Isolated CABG is fully modelled. AVR, MVR and MV repair model
        mortality only and derive morbidity as a fixed multiple of it.
        Records lacking age, gender or procedure type, and unknown
        procedures, receive a coarse risk-point estimate instead.
    """

    def __init__(self):
        super().__init__(name="STS")

    def heuristic_points(self, record: Series) -> list:
        age = record.get("age")
        ef = record.get("ejection_fraction")
        points = []
        if age is not None and age > 75:
            points.append(("Age > 75", f"{format_value(age)} years", 2))
        elif age is not None and age > 65:
            points.append(("Age 65-75", f"{format_value(age)} years", 1))
        if ef is not None and ef < 30:
            points.append(("Ejection Fraction < 30%", f"{format_value(ef)}%", 3))
        if record.get("dialysis"):
            points.append(("Dialysis", "Yes", 3))
        if record.get("is_emergency"):
            points.append(("Emergency Surgery", record.get("priority"), 3))
        if record.get("cardiogenic_shock"):
            points.append(("Cardiogenic Shock", "Yes", 4))
        if record.get("is_reoperation"):
            points.append(("Reoperation", "Yes", 2))
        return points

    def heuristic(self, record: Series) -> dict:
        points = self.heuristic_points(record)
        rows = [
            RiskFactorContribution(
                factor=factor,
                patient_value=value,
                coefficient=float(p),
                contribution=float(p),
                description="Risk points (coarse estimate)",
            )
            for factor, value, p in points
        ]
        total = sum(p for _, _, p in points)
        rows.append(
            RiskFactorContribution(
                factor="TOTAL RISK POINTS",
                patient_value="Sum of all risk points",
                coefficient="-",
                contribution=float(total),
                description="Sum of risk points",
                summary=True,
            )
        )

        mortality = HEURISTIC_CEILING
        for upper, estimate in HEURISTIC_BREAKPOINTS:
            if total <= upper:
                mortality = estimate
                break
        mortality_rows = rows + [
            RiskFactorContribution(
                factor="FINAL MORTALITY RISK",
                patient_value=f"{mortality:.2f}%",
                coefficient="-",
                contribution=mortality,
                description="Estimated from risk points, not a logistic model",
                calculation=f"{total} points → {mortality}%",
                summary=True,
            )
        ]

        morbidity = round(mortality * HEURISTIC_MORBIDITY_MULTIPLIER, 2)
        morbidity_row = RiskFactorContribution(
            factor="DERIVED MORBIDITY",
            patient_value=f"{mortality:.2f}% mortality",
            coefficient=HEURISTIC_MORBIDITY_MULTIPLIER,
            contribution=morbidity,
            description="Estimated as a fixed multiple of mortality, not independently modelled",
            calculation=f"{mortality:.2f} × {HEURISTIC_MORBIDITY_MULTIPLIER}",
            summary=True,
        )
        self.logger.info(f"Heuristic estimate: {total} risk points → {mortality}% mortality")
        return {
            "mortality": OutcomeResult(
                outcome="mortality",
                probability_percent=mortality,
                precision=2,
                trace=tuple(mortality_rows),
                probability=mortality / 100.0,
            ),
            "morbidity": OutcomeResult(
                outcome="morbidity",
                probability_percent=morbidity,
                precision=2,
                trace=(morbidity_row,),
                probability=morbidity / 100.0,
            ),
        }

    def assess(self, patient_record) -> RiskAssessment:
        """
        Assess one patient record. Never raises on structured input:
        missing or unknown data lowers the confidence instead.
        """
        record = normalize(patient_record)
        missing_fields = missing_required_fields(record)
        procedure_str = None if missing_fields else record.get("procedure")
        confidence = assess_confidence(missing_fields, procedure_str)

        if procedure_str is None:
            if missing_fields:
                self.logger.info(f"Missing required fields {missing_fields}, using heuristic")
            else:
                self.logger.info(
                    f"Procedure '{record.get('procedure_type')}' not modelled, using heuristic"
                )
            outcomes = self.heuristic(record)
            fidelity = "heuristic"
        else:
            model = load_procedure_model(procedure_str)
            outcomes = model.score_all(record)
            fidelity = model.fidelity

        return RiskAssessment(
            outcomes=outcomes,
            risk_category=categorize(outcomes["mortality"].probability_percent),
            confidence=confidence,
            missing_fields=missing_fields,
            procedure=procedure_str,
            fidelity=fidelity,
        )

    def calculate(self, row: Series) -> Series:
        return self.assess(row).to_series()


def assess(patient_record) -> RiskAssessment:
    return STSRiskScore().assess(patient_record)
