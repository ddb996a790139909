# src/scoring/base.py

from abc import ABC, abstractmethod
from datetime import datetime
import logging
from pandas import isna, Series

# strings standing for "absent" and for "no" in extracted records
MISSING_VALUES = {"", "missing", "n/a", "na", "unknown"}
NO_VALUES = {"no", "none", "false", "n", "0"}
YES_VALUES = {"yes", "true", "y", "1"}
ROMAN_NYHA = {"I": 1, "II": 2, "III": 3, "IV": 4}


class RiskScoreFactory:
    _registry = {}

    @classmethod
    def register(cls, key):
        def decorator(subclass):
            cls._registry[key] = subclass
            return subclass

        return decorator

    @classmethod
    def create(cls, key, *args, **kwargs):
        if key not in cls._registry:
            raise ValueError(f"Unknown score type: {key}")
        return cls._registry[key](*args, **kwargs)


def is_missing(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() in MISSING_VALUES
    try:
        return bool(isna(value))
    except (TypeError, ValueError):
        # list-like values
        return False


class SafeParser:
    """
    Lenient coercion of extracted field values. Nothing here raises: values
    that cannot be interpreted are logged and returned as `default`.
    """

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(self.name)

    def safe_float(self, value, default=None, bounds=None):
        if is_missing(value) or isinstance(value, bool):
            return default
        try:
            number = float(value)
        except (TypeError, ValueError):
            self.logger.warning(
                f"[safe_float] Unable to interpret value: '{value}' → returning {default}"
            )
            return default
        if number != number:
            return default
        if bounds is not None:
            lower, upper, upper_inclusive = bounds
            too_high = number > upper if upper_inclusive else number >= upper
            if number <= lower or too_high:
                self.logger.warning(
                    f"[safe_float] Value {value} outside plausible range "
                    f"({lower}, {upper}{']' if upper_inclusive else ')'}"
                    f" → returning {default}"
                )
                return default
        return number

    def safe_nyha(self, value, default=None):
        if is_missing(value) or isinstance(value, bool):
            return default
        text = str(value).strip().upper()
        if text.startswith("CLASS"):
            text = text[len("CLASS"):].strip()
        if text in ROMAN_NYHA:
            return ROMAN_NYHA[text]
        try:
            nyha = int(float(text))
        except (TypeError, ValueError):
            self.logger.warning(
                f"[safe_nyha] Unable to interpret value: '{value}' → returning {default}"
            )
            return default
        if nyha not in ROMAN_NYHA.values():
            self.logger.warning(
                f"[safe_nyha] NYHA class {nyha} not in [1:4] → returning {default}"
            )
            return default
        return nyha

    def safe_bool(self, value, default=False):
        if is_missing(value):
            return default
        if isinstance(value, bool):
            return value
        value_str = str(value).strip().lower()
        if value_str in YES_VALUES:
            return True
        elif value_str in NO_VALUES:
            return False
        else:
            try:
                return bool(float(value))
            except (TypeError, ValueError):
                pass
        self.logger.warning(
            f"[safe_bool] Unable to interpret value: '{value}' → returning {default}"
        )
        return default

    def safe_presence(self, value) -> bool:
        """
        Presence of an enum-valued finding. Any value other than a
        'No'/'None' sentinel (e.g. 'Yes, Insulin', 'Mild') counts as present.
        """
        if is_missing(value):
            return False
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() not in NO_VALUES
        try:
            return bool(float(value))
        except (TypeError, ValueError):
            return True

    def age_from_dates(self, date_of_birth: str, date_of_surgery: str):
        # Calculate age in years and leftover days from date strings
        parsed = []
        for date_str in (date_of_birth, date_of_surgery):
            for date_format in ("%d.%m.%Y", "%Y-%m-%d"):
                try:
                    parsed.append(datetime.strptime(str(date_str).strip(), date_format))
                    break
                except ValueError:
                    continue
        if len(parsed) != 2:
            self.logger.error(
                f"[age_from_dates] Unable to interpret date_of_birth "
                f"({date_of_birth}) or date_of_surgery ({date_of_surgery}). "
                f"Expected format is dd.mm.YYYY or YYYY-mm-dd."
            )
            return None, None
        date1, date2 = parsed

        # Calculate age in years
        incomplete_year = (date2.month, date2.day) < (date1.month, date1.day)
        age_in_years = date2.year - date1.year - incomplete_year

        # Calculate leftover days (days since last birthday)
        year = date2.year if (date2.month, date2.day) >= (date1.month, date1.day) else date2.year - 1
        try:
            last_birthday = date1.replace(year=year)
        except ValueError:
            # born on 29 February
            last_birthday = date1.replace(year=year, day=28)
        delta_days = (date2 - last_birthday).days
        if age_in_years < 0 or age_in_years > 150:
            self.logger.error(
                f"[age_from_dates] Expected age in range [0:150], but got "
                f"{age_in_years} for date of birth = {date1} and "
                f"surgery date = {date2}."
            )
            return None, None
        return age_in_years, delta_days


class RiskScore(SafeParser, ABC):

    @abstractmethod
    def calculate(self, row: Series):
        """Compute the risk score for a given patient row."""
        pass
