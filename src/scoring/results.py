# src/scoring/results.py

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from pandas import Series

from src.sysops.names import OUTCOMES, get_procedure_display

COMPUTED = "computed"
NOT_APPLICABLE = "not-applicable"


@dataclass(frozen=True)
class RiskFactorContribution:
    """One row of a calculation trace."""

    factor: str
    patient_value: str
    coefficient: Union[float, str]
    contribution: float
    description: str
    calculation: Optional[str] = None
    summary: bool = False

    def to_dict(self) -> dict:
        return {
            "factor": self.factor,
            "patient_value": self.patient_value,
            "coefficient": self.coefficient,
            "calculation": self.calculation,
            "contribution": self.contribution,
            "description": self.description,
            "summary": self.summary,
        }


@dataclass(frozen=True)
class OutcomeResult:
    outcome: str
    probability_percent: Optional[float]
    precision: int
    trace: Tuple[RiskFactorContribution, ...]
    applicability: str = COMPUTED
    logit: Optional[float] = None
    probability: Optional[float] = None

    @property
    def is_applicable(self) -> bool:
        return self.applicability == COMPUTED

    @property
    def display(self) -> str:
        if not self.is_applicable:
            return "N/A"
        return f"{self.probability_percent:.{self.precision}f}%"

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome,
            "probability_percent": self.probability_percent,
            "display": self.display,
            "applicability": self.applicability,
            "logit": self.logit,
            "probability": self.probability,
            "trace": [row.to_dict() for row in self.trace],
        }


@dataclass
class RiskAssessment:
    outcomes: Dict[str, OutcomeResult]
    risk_category: str
    confidence: str
    missing_fields: List[str] = field(default_factory=list)
    procedure: Optional[str] = None
    fidelity: str = "full"
    method: str = "mathematical"

    @property
    def mortality(self) -> Optional[float]:
        return self.outcomes["mortality"].probability_percent

    def to_dict(self) -> dict:
        return {
            "method": self.method,
            "procedure": self.procedure,
            "procedure_display": (
                get_procedure_display(self.procedure) if self.procedure else None
            ),
            "fidelity": self.fidelity,
            "risk_category": self.risk_category,
            "confidence": self.confidence,
            "missing_fields": list(self.missing_fields),
            "outcomes": {k: v.to_dict() for k, v in self.outcomes.items()},
        }

    def to_series(self) -> Series:
        """Flatten into one row: one column per outcome plus annotations."""
        items = {
            "procedure": self.procedure,
            "fidelity": self.fidelity,
        }
        for outcome in OUTCOMES:
            result = self.outcomes.get(outcome)
            if result is None or not result.is_applicable:
                items[outcome] = None
            else:
                items[outcome] = result.probability_percent
        items["risk_category"] = self.risk_category
        items["confidence"] = self.confidence
        items["missing_fields"] = ";".join(self.missing_fields)
        return Series(items, dtype=object)
