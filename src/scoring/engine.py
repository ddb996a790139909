# src/scoring/engine.py

from dataclasses import dataclass
from functools import lru_cache
import logging
import operator
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Tuple, Union

from pandas import Series
import yaml

from src.scoring.normalizer import normalize
from src.scoring.results import OutcomeResult, RiskFactorContribution
from src.scoring.trace import TraceBuilder, format_value
from src.sysops.names import get_procedure_str

logger = logging.getLogger(__name__)

MODELS_DIR = Path(__file__).resolve().parent / "models"

OPERATORS = {
    "above": operator.gt,
    "at_least": operator.ge,
    "below": operator.lt,
    "at_most": operator.le,
    "is": operator.eq,
}


class _Display(dict):
    def __missing__(self, key):
        return "N/A"


def _display(record: Series) -> _Display:
    return _Display({k: format_value(v) for k, v in record.items()})


@dataclass(frozen=True)
class Condition:
    field: str
    op: str = "flag"
    value: object = None

    @classmethod
    def from_dict(cls, when: dict) -> "Condition":
        ops = [k for k in when if k in OPERATORS]
        if len(ops) > 1:
            raise ValueError(f"Condition on '{when['field']}' has several operators: {ops}")
        if not ops:
            return cls(field=when["field"])
        return cls(field=when["field"], op=ops[0], value=when[ops[0]])

    def __call__(self, record) -> bool:
        actual = record.get(self.field)
        if actual is None:
            return False
        if self.op == "flag":
            return bool(actual)
        try:
            return bool(OPERATORS[self.op](actual, self.value))
        except TypeError:
            # value of the wrong type never satisfies a comparison
            return False


@dataclass(frozen=True)
class Tier:
    condition: Condition
    coefficient: float
    description: str
    value: str = "Yes"
    factor: Optional[str] = None
    sign: int = 1
    offset: Optional[float] = None
    calculation: Optional[str] = None

    @classmethod
    def from_dict(cls, tier: dict) -> "Tier":
        sign = int(tier.get("sign", 1))
        if sign not in (1, -1):
            raise ValueError(f"Tier sign must be 1 or -1, got {sign}")
        return cls(
            condition=Condition.from_dict(tier["when"]),
            coefficient=float(tier["coefficient"]),
            description=tier.get("description", ""),
            value=str(tier.get("value", "Yes")),
            factor=tier.get("factor"),
            sign=sign,
            offset=tier.get("offset"),
            calculation=tier.get("calculation"),
        )

    @property
    def signed_coefficient(self) -> float:
        return self.sign * self.coefficient

    def contribution(self, record) -> Tuple[float, Optional[str]]:
        if self.offset is None:
            return self.signed_coefficient, self.calculation
        x = record.get(self.condition.field)
        contribution = (x - self.offset) * self.signed_coefficient
        calculation = (
            f"({format_value(x)} - {format_value(self.offset)}) × {self.signed_coefficient}"
        )
        return contribution, calculation


@dataclass(frozen=True)
class Rule:
    factor: str
    tiers: Tuple[Tier, ...]

    @classmethod
    def from_dict(cls, rule: dict) -> "Rule":
        return cls(
            factor=rule["factor"],
            tiers=tuple(Tier.from_dict(t) for t in rule["tiers"]),
        )

    def match(self, record) -> Optional[Tier]:
        for tier in self.tiers:
            if tier.condition(record):
                return tier
        return None


@dataclass(frozen=True)
class NotApplicable:
    condition: Condition
    factor: str
    value: str
    description: str


@dataclass(frozen=True)
class OutcomeModel:
    """
    Logistic model of one outcome: a baseline intercept plus an ordered
    list of rules. Each rule contributes through its first matching tier.
    """

    outcome: str
    baseline: float
    precision: int
    rules: Tuple[Rule, ...]
    baseline_description: str = ""
    final_description: str = ""
    favorable: bool = False
    not_applicable: Optional[NotApplicable] = None

    @classmethod
    def from_dict(cls, outcome: str, table: dict) -> "OutcomeModel":
        not_applicable = None
        if "not_applicable" in table:
            na = table["not_applicable"]
            not_applicable = NotApplicable(
                condition=Condition.from_dict(na["when"]),
                factor=na["factor"],
                value=na["value"],
                description=na["description"],
            )
        return cls(
            outcome=outcome,
            baseline=float(table["baseline"]),
            precision=int(table.get("precision", 2)),
            rules=tuple(Rule.from_dict(r) for r in table.get("rules", [])),
            baseline_description=table.get("baseline_description", ""),
            final_description=table.get("final_description", ""),
            favorable=bool(table.get("favorable", False)),
            not_applicable=not_applicable,
        )

    def score(self, record: Series) -> OutcomeResult:
        builder = TraceBuilder(self.outcome, self.precision, self.favorable)
        if self.not_applicable is not None and self.not_applicable.condition(record):
            logger.debug(f"{self.outcome} not applicable: {self.not_applicable.factor}")
            return builder.not_applicable(
                self.not_applicable.factor,
                self.not_applicable.value,
                self.not_applicable.description,
            )

        display = _display(record)
        builder.baseline(self.baseline, self.baseline_description)
        for rule in self.rules:
            tier = rule.match(record)
            if tier is None:
                continue
            contribution, calculation = tier.contribution(record)
            builder.add(
                factor=tier.factor or rule.factor,
                patient_value=tier.value.format_map(display),
                coefficient=tier.signed_coefficient,
                contribution=contribution,
                description=tier.description,
                calculation=calculation,
            )
        return builder.build(self.final_description)


@dataclass(frozen=True)
class DerivedModel:
    """
    Outcome estimated as a fixed multiple of another outcome's percentage,
    capped at 100%.
    """

    outcome: str
    source: str
    multiplier: float
    precision: int = 2

    @classmethod
    def from_dict(cls, outcome: str, table: dict) -> "DerivedModel":
        return cls(
            outcome=outcome,
            source=table["derived_from"],
            multiplier=float(table["multiplier"]),
            precision=int(table.get("precision", 2)),
        )

    def score(self, source: OutcomeResult) -> OutcomeResult:
        source_percent = source.probability_percent
        percent = round(source_percent * self.multiplier, self.precision)
        calculation = f"{source_percent:.{source.precision}f} × {self.multiplier}"
        if percent > 100.0:
            percent = 100.0
            calculation += " (capped at 100%)"
        row = RiskFactorContribution(
            factor=f"DERIVED {self.outcome.replace('_', ' ').upper()}",
            patient_value=f"{source.display} {self.source}",
            coefficient=self.multiplier,
            contribution=percent,
            description=(
                f"Estimated as a fixed multiple of {self.source}, "
                f"not independently modelled"
            ),
            calculation=calculation,
            summary=True,
        )
        return OutcomeResult(
            outcome=self.outcome,
            probability_percent=percent,
            precision=self.precision,
            trace=(row,),
            probability=percent / 100.0,
        )


@dataclass(frozen=True)
class ProcedureModel:
    procedure: str
    fidelity: str
    outcomes: Mapping[str, Union[OutcomeModel, DerivedModel]]

    @classmethod
    def from_dict(cls, table: dict) -> "ProcedureModel":
        outcomes = {}
        for outcome, outcome_table in table["outcomes"].items():
            if "derived_from" in outcome_table:
                outcomes[outcome] = DerivedModel.from_dict(outcome, outcome_table)
            else:
                outcomes[outcome] = OutcomeModel.from_dict(outcome, outcome_table)
        return cls(
            procedure=table["procedure"],
            fidelity=table.get("fidelity", "full"),
            outcomes=MappingProxyType(outcomes),
        )

    def score(self, outcome: str, record: Series) -> OutcomeResult:
        if outcome not in self.outcomes:
            raise ValueError(
                f"Outcome '{outcome}' is not modelled for procedure '{self.procedure}'"
            )
        model = self.outcomes[outcome]
        if isinstance(model, DerivedModel):
            return model.score(self.score(model.source, record))
        return model.score(record)

    def score_all(self, record: Series) -> dict:
        results = {}
        for outcome, model in self.outcomes.items():
            if isinstance(model, DerivedModel) and model.source in results:
                results[outcome] = model.score(results[model.source])
            else:
                results[outcome] = self.score(outcome, record)
        return results


@lru_cache(maxsize=None)
def load_procedure_model(procedure_str: str) -> ProcedureModel:
    """
    Load and parse the coefficient table of one procedure
    (`models/sts_<procedure>.yaml`). Tables are parsed once per process.
    """
    table_file = MODELS_DIR / f"sts_{procedure_str}.yaml"
    if not table_file.exists():
        raise FileNotFoundError(f"Coefficient table not found: {table_file}")
    with open(table_file, "r") as file:
        table = yaml.safe_load(file)
    logger.debug(f"Loaded coefficient table {table_file.name}")
    return ProcedureModel.from_dict(table)


def score(outcome: str, procedure_type: str, record) -> OutcomeResult:
    """
    Score one outcome for a patient record under the model of the given
    procedure (canonical key such as 'cabg' or any known alias).
    """
    procedure_str = get_procedure_str(procedure_type)
    if procedure_str is None:
        raise ValueError(f"Unknown procedure type: {procedure_type}")
    model = load_procedure_model(procedure_str)
    return model.score(outcome, normalize(record))
