"""
Infusion Engine: Dose Converter
===============================
Clinician dose (any supported notation) -> pump rate in ml/hr, and back.

  mcg/kg/min : d * w * 60 / mcg_per_ml
  mcg/min    : d * 60 / mcg_per_ml
  mg/min     : d * 60 / mg_per_ml
  mg/hr      : d / mg_per_ml
  units/hr   : d / units_per_ml
  units/kg/hr: d * w / units_per_ml
"""

import logging
import math
from typing import Optional, Union

from constants import NOTATION_LIBRARY, DoseNotation, NotationProperties
from models import (
    ResolvedConcentration,
    InvalidDoseError,
    MissingConcentrationFieldError,
    UnsupportedNotationError,
    parse_notation,
    require_number,
    require_positive
)

logger = logging.getLogger("infusion-engine.converter")

class DoseConverter:

    @staticmethod
    def _lookup(notation: Union[str, DoseNotation]) -> tuple:
        notation = parse_notation(notation)
        row = NOTATION_LIBRARY.SPECS.get(notation)
        if row is None:
            # Enum member without a table row: refuse rather than guess
            raise UnsupportedNotationError(f"No conversion defined for {notation.value}")
        return notation, row

    @staticmethod
    def _concentration_for(row: NotationProperties, concentration: ResolvedConcentration) -> float:
        value = concentration.get(row.required_field) if concentration is not None else None
        if value is None:
            raise MissingConcentrationFieldError(
                f"{row.label} needs {row.required_field.value}, "
                f"which the prepared solution does not carry"
            )
        return value

    @staticmethod
    def _weight_for(row: NotationProperties, weight_kg: Optional[float]) -> float:
        # Absolute notations ignore weight entirely, even a malformed one
        if not row.weight_based:
            return 1.0
        return require_positive("weight_kg", weight_kg, InvalidDoseError)

    @staticmethod
    def _require_deliverable(name: str, result: float, source: float) -> None:
        # Finite inputs can still overflow to inf, or a non-zero input underflow to 0
        if not math.isfinite(result) or (result == 0 and source > 0):
            raise InvalidDoseError(f"{name} is outside the representable range (got {result}).")

    @staticmethod
    def dose_to_ml_per_hr(dose: float, notation: Union[str, DoseNotation],
                          concentration: ResolvedConcentration,
                          weight_kg: Optional[float] = None) -> float:
        """Pump rate (ml/hr) that delivers `dose` at `concentration`."""
        dose = require_number("dose", dose, InvalidDoseError)
        if dose < 0:
            raise InvalidDoseError(f"dose must be >= 0 (got {dose}).")

        notation, row = DoseConverter._lookup(notation)
        weight = DoseConverter._weight_for(row, weight_kg)
        conc = DoseConverter._concentration_for(row, concentration)

        ml_per_hr = dose * weight * row.per_hour_factor / conc
        DoseConverter._require_deliverable("ml_per_hr", ml_per_hr, dose)
        logger.debug("%s %s -> %.4f ml/hr", dose, row.label, ml_per_hr)
        return ml_per_hr

    @staticmethod
    def ml_per_hr_to_dose(ml_per_hr: float, notation: Union[str, DoseNotation],
                          concentration: ResolvedConcentration,
                          weight_kg: Optional[float] = None) -> float:
        """Inverse: the dose a running pump is actually delivering."""
        ml_per_hr = require_number("ml_per_hr", ml_per_hr, InvalidDoseError)
        if ml_per_hr < 0:
            raise InvalidDoseError(f"ml_per_hr must be >= 0 (got {ml_per_hr}).")

        notation, row = DoseConverter._lookup(notation)
        weight = DoseConverter._weight_for(row, weight_kg)
        conc = DoseConverter._concentration_for(row, concentration)

        dose = ml_per_hr * conc / (weight * row.per_hour_factor)
        DoseConverter._require_deliverable("dose", dose, ml_per_hr)
        return dose
