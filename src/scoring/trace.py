# src/scoring/trace.py

import logging
from numpy import exp

from src.scoring.results import (
    NOT_APPLICABLE,
    OutcomeResult,
    RiskFactorContribution,
)
from src.sysops.names import get_outcome_display

logger = logging.getLogger(__name__)


def format_value(value) -> str:
    """Render a patient value for display, dropping a trailing '.0'."""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return f"{value:g}"
    if value is None:
        return "N/A"
    return str(value)


def logistic(logit: float) -> float:
    return float(1.0 / (1.0 + exp(-logit)))


class TraceBuilder:
    """
    Collects the ordered contributions of one outcome and closes the trace
    with the TOTAL LOGIT, LOGISTIC TRANSFORMATION and FINAL rows.
    """

    def __init__(self, outcome: str, precision: int = 2, favorable: bool = False):
        self.outcome = outcome
        self.precision = precision
        self.favorable = favorable
        self.rows = []
        self.logit = 0.0

    def add(
        self,
        factor: str,
        patient_value: str,
        coefficient,
        contribution: float,
        description: str,
        calculation: str = None,
    ):
        self.logit += contribution
        self.rows.append(
            RiskFactorContribution(
                factor=factor,
                patient_value=patient_value,
                coefficient=coefficient,
                contribution=contribution,
                description=description,
                calculation=calculation,
            )
        )
        return self

    def baseline(self, intercept: float, description: str):
        return self.add("Baseline Intercept", "N/A", intercept, intercept, description)

    def _summary(self, factor, patient_value, contribution, description, calculation):
        self.rows.append(
            RiskFactorContribution(
                factor=factor,
                patient_value=patient_value,
                coefficient="-",
                contribution=contribution,
                description=description,
                calculation=calculation,
                summary=True,
            )
        )

    @property
    def final_label(self) -> str:
        kind = "PROBABILITY" if self.favorable else "RISK"
        return f"FINAL {get_outcome_display(self.outcome).upper()} {kind}"

    def build(self, final_description: str = "") -> OutcomeResult:
        logit = self.logit
        self._summary(
            "TOTAL LOGIT",
            "Sum of all contributions",
            logit,
            "Sum of intercept and all risk factors",
            f"{logit:.3f}",
        )

        odds_inverse = float(exp(-logit))
        probability = logistic(logit)
        self._summary(
            "LOGISTIC TRANSFORMATION",
            f"1 / (1 + e^({-logit:.3f}))",
            round(probability, 6),
            "Convert logit to probability using logistic function",
            f"1 / (1 + {odds_inverse:.6f}) = {probability:.6f}",
        )

        percent = round(probability * 100, self.precision)
        self._summary(
            self.final_label,
            f"{percent:.{self.precision}f}%",
            percent,
            final_description,
            f"{probability:.6f} × 100",
        )
        logger.debug(f"{self.outcome}: logit={logit:.3f}, risk={percent}%")
        return OutcomeResult(
            outcome=self.outcome,
            probability_percent=percent,
            precision=self.precision,
            trace=tuple(self.rows),
            logit=logit,
            probability=probability,
        )

    def not_applicable(self, factor: str, patient_value: str, description: str):
        row = RiskFactorContribution(
            factor=factor,
            patient_value=patient_value,
            coefficient="N/A",
            contribution=0.0,
            description=description,
            summary=True,
        )
        return OutcomeResult(
            outcome=self.outcome,
            probability_percent=None,
            precision=self.precision,
            trace=(row,),
            applicability=NOT_APPLICABLE,
        )
