# planner.py
import logging
import math
from typing import Optional, Union

from constants import DOSING_CONSTANTS, DoseNotation
from models import (
    Drug,
    Vial,
    PreparationResult,
    ResolvedConcentration,
    InfusionEngineError,
    InvalidInputError,
    MissingPotencyError,
    parse_notation,
    require_positive
)
from concentration import ConcentrationResolver
from dose_converter import DoseConverter
from safety import SafetyValidator, check_max_rate

logger = logging.getLogger("infusion-engine.planner")

def vials_needed(required_amount: float, vial_amount: float) -> int:
    """
    Whole vials to supply `required_amount`. Always rounds UP.
    An exact multiple (within float noise) gives exactly the quotient.
    """
    required_amount = require_positive("required_amount", required_amount)
    vial_amount = require_positive("vial_amount", vial_amount)

    quotient = required_amount / vial_amount
    nearest = round(quotient)
    if abs(quotient - nearest) <= DOSING_CONSTANTS.VIAL_COUNT_TOLERANCE * max(1.0, nearest):
        return int(nearest)
    return math.ceil(quotient)

def format_rate_for_display(ml_per_hr: Optional[float]) -> str:
    if ml_per_hr is None or not isinstance(ml_per_hr, (int, float)) or not math.isfinite(ml_per_hr):
        return "---"
    return f"{ml_per_hr:.2f} mL/hr"


class PreparationPlanner:
    """
    "For this drug, this vial, this dilution and this dose:
     what do I draw up and what do I set the pump to?"
    """

    @staticmethod
    def select_vial(drug: Drug, vial_index: Optional[int] = None) -> Vial:
        if not drug.vials:
            raise MissingPotencyError(f"No vials defined for {drug.drug_id}")
        index = drug.default_vial_index if vial_index is None else vial_index
        if isinstance(index, bool) or not isinstance(index, int) or not (0 <= index < len(drug.vials)):
            raise InvalidInputError(
                f"Vial index {index!r} out of range for {drug.drug_id} ({len(drug.vials)} vials)"
            )
        return drug.vials[index]

    @staticmethod
    def _amount_in_solution(conc: ResolvedConcentration, dilution_ml: float) -> float:
        # Same base as ConcentrationResolver.vial_total_amount (mcg or units)
        if conc.mcg_per_ml is not None:
            return conc.mcg_per_ml * dilution_ml
        return conc.units_per_ml * dilution_ml

    @staticmethod
    def _build_prep_text(vial: Vial, count: int, dilution_ml: float,
                         conc: ResolvedConcentration, ml_per_hr: float,
                         dose: float, notation: DoseNotation) -> str:
        parts = [
            f"Add {count} × {vial.label} to {dilution_ml:g} ml.",
            f"Final concentration: {conc.describe()}.",
            f"Set pump to {ml_per_hr:.2f} mL/hr for requested dose ({dose:g} {notation.value}).",
        ]
        return " ".join(parts)

    @staticmethod
    def suggest_preparation(drug: Drug, dose: float, notation: Union[str, DoseNotation],
                            weight_kg: Optional[float] = None,
                            vial_index: Optional[int] = None,
                            dilution_ml: float = DOSING_CONSTANTS.DEFAULT_DILUTION_ML) -> PreparationResult:
        """
        Resolve -> convert -> count vials -> instruct.
        Resolver failures (bad vial/dilution) propagate. Converter failures
        are folded into the result so the safety notes still reach the caller.
        """
        vial = PreparationPlanner.select_vial(drug, vial_index)
        conc = ConcentrationResolver.resolve(vial, dilution_ml)
        dilution_ml = float(dilution_ml)

        result = PreparationResult(
            drug_id=drug.drug_id,
            chosen_vial=vial,
            dilution_ml=dilution_ml,
            safety_notes=drug.notes or "",
            concentration=conc
        )

        try:
            ml_per_hr = DoseConverter.dose_to_ml_per_hr(dose, notation, conc, weight_kg)
        except InfusionEngineError as e:
            logger.warning(f"Conversion failed for {drug.drug_id}: {e}")
            result.error = str(e)
            result.error_type = type(e).__name__
            return result

        notation = parse_notation(notation)
        count = vials_needed(
            PreparationPlanner._amount_in_solution(conc, dilution_ml),
            ConcentrationResolver.vial_total_amount(vial)
        )

        result.ml_per_hr = ml_per_hr
        result.ampoules_to_add = count
        result.prep_text = PreparationPlanner._build_prep_text(
            vial, count, dilution_ml, conc, ml_per_hr, dose, notation
        )
        result.verdict = SafetyValidator.validate_dose(dose, notation, drug)
        result.max_rate_warning = check_max_rate(drug, dose, notation)

        logger.info(f"{drug.drug_id}: {dose} {notation.value} -> {format_rate_for_display(ml_per_hr)} "
                    f"({count} vial(s) in {dilution_ml:g} ml, verdict={result.verdict.level.value})")
        return result
