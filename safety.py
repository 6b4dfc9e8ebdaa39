# safety.py
import logging
from typing import Optional, Union

from constants import SAFETY_THRESHOLDS, NOTATION_LIBRARY, DoseNotation
from models import (
    Drug,
    ValidationVerdict,
    VerdictLevel,
    InvalidDoseError,
    parse_notation,
    require_number
)

logger = logging.getLogger("infusion-engine.safety")

class SafetyValidator:
    """
    Range checks on a requested dose.
    Out-of-range doses come back as verdicts, never exceptions: the clinician
    still needs the computed rate to decide. Only a non-numeric dose raises.
    """
    @staticmethod
    def validate_dose(dose: float, notation: Union[str, DoseNotation], drug: Drug) -> ValidationVerdict:
        dose = require_number("dose", dose, InvalidDoseError)
        notation = parse_notation(notation)

        rng = drug.dose_range
        if rng is None:
            return ValidationVerdict(ok=True, level=VerdictLevel.OK, message="No dose range on file.")

        dose_is_kg_based = NOTATION_LIBRARY.get(notation).weight_based

        if dose_is_kg_based == drug.primary_is_weight_based:
            verdict = SafetyValidator._compare_direct(dose, notation, rng.min, rng.max)
        else:
            # e.g. mg/min requested for a drug ranged in mcg/kg/min
            verdict = SafetyValidator._compare_heuristic(dose, rng.min, rng.max)

        if verdict.level == VerdictLevel.HARD_BLOCK:
            logger.warning(f"HARD BLOCK for {drug.drug_id}: {verdict.message}")
        return verdict

    @staticmethod
    def _compare_direct(dose: float, notation: DoseNotation, low: float, high: float) -> ValidationVerdict:
        if dose < low:
            return ValidationVerdict(
                ok=False, level=VerdictLevel.SOFT_WARNING,
                message=f"Dose {dose:g} {notation.value} is below common minimum ({low:g})."
            )
        if dose > high * SAFETY_THRESHOLDS.BLOCK_FACTOR:
            return ValidationVerdict(
                ok=False, level=VerdictLevel.HARD_BLOCK,
                message=f"Dose {dose:g} {notation.value} exceeds typical maximum ({high:g}). Override required."
            )
        if dose > high * SAFETY_THRESHOLDS.NEAR_MAX_FACTOR:
            return ValidationVerdict(
                ok=True, level=VerdictLevel.SOFT_WARNING,
                message=f"Dose near upper range ({high:g}). Double-check."
            )
        return ValidationVerdict(ok=True, level=VerdictLevel.OK, message="Dose looks reasonable.")

    @staticmethod
    def _compare_heuristic(dose: float, low: float, high: float) -> ValidationVerdict:
        soft_low = low * SAFETY_THRESHOLDS.HEURISTIC_LOW_FACTOR
        soft_high = high * SAFETY_THRESHOLDS.HEURISTIC_HIGH_FACTOR

        if dose < soft_low:
            return ValidationVerdict(
                ok=False, level=VerdictLevel.SOFT_WARNING,
                message="Dose looks unusually low for this drug."
            )
        if dose > soft_high:
            return ValidationVerdict(
                ok=False, level=VerdictLevel.HARD_BLOCK,
                message="Dose looks unusually high for this drug. Override required."
            )
        return ValidationVerdict(
            ok=True, level=VerdictLevel.OK,
            message="Dose outside direct comparators: proceed with care."
        )

def check_max_rate(drug: Drug, dose: float, notation: Union[str, DoseNotation]) -> Optional[str]:
    """
    Ceiling check independent of the range verdict.
    Only mcg-based notations are compared against max_rate_mcg_per_min.
    """
    ceiling = drug.max_rate_mcg_per_min
    if ceiling is None:
        return None
    notation = parse_notation(notation)
    if not NOTATION_LIBRARY.is_mass_micro(notation):
        return None

    dose = require_number("dose", dose, InvalidDoseError)
    if dose > ceiling:
        message = (f"Requested dose {dose:g} {notation.value} exceeds max recommended "
                   f"({ceiling:g} mcg/min).")
        logger.warning(f"Max rate exceeded for {drug.drug_id}: {message}")
        return message
    return None
