"""
Infusion Engine: Concentration Resolver
=======================================
Vial + dilution volume -> drug per ml of the prepared solution.
"""

import logging

from constants import DOSING_CONSTANTS
from models import (
    Vial,
    ResolvedConcentration,
    MassStrength,
    ActivityStrength,
    PremixedConcentration,
    MissingPotencyError,
    InvalidDilutionError,
    require_positive
)

logger = logging.getLogger("infusion-engine.concentration")

class ConcentrationResolver:

    @staticmethod
    def resolve(vial: Vial, dilution_ml: float) -> ResolvedConcentration:
        """
        One vial made up to `dilution_ml`.
        Mass vials (mg) fill mg/ml and mcg/ml, activity vials fill units/ml.
        A premixed vial is already labelled per ml, so the label is the concentration.
        """
        dilution_ml = require_positive("dilution_ml", dilution_ml, InvalidDilutionError)
        potency = getattr(vial, "potency", None)

        if isinstance(potency, MassStrength):
            mg_per_ml = potency.mg / dilution_ml
            conc = ResolvedConcentration(
                mg_per_ml=mg_per_ml,
                mcg_per_ml=mg_per_ml * DOSING_CONSTANTS.MCG_PER_MG
            )
        elif isinstance(potency, ActivityStrength):
            conc = ResolvedConcentration(units_per_ml=potency.units / dilution_ml)
        elif isinstance(potency, PremixedConcentration):
            conc = ResolvedConcentration(
                mg_per_ml=potency.mcg_per_ml / DOSING_CONSTANTS.MCG_PER_MG,
                mcg_per_ml=potency.mcg_per_ml
            )
        else:
            raise MissingPotencyError(f"Vial has no usable potency field: {vial!r}")

        logger.debug("Resolved %s in %.1f ml -> %s", vial.label, dilution_ml, conc.describe())
        return conc

    @staticmethod
    def vial_total_amount(vial: Vial) -> float:
        """
        Drug in one whole vial, in the base the planner counts with:
        mcg for mass and premixed vials, units for activity vials.
        """
        potency = vial.potency
        if isinstance(potency, MassStrength):
            return potency.mg * DOSING_CONSTANTS.MCG_PER_MG
        if isinstance(potency, ActivityStrength):
            return potency.units
        if isinstance(potency, PremixedConcentration):
            volume = vial.ampoule_volume_ml or DOSING_CONSTANTS.DEFAULT_VIAL_VOLUME_ML
            return potency.mcg_per_ml * volume
        raise MissingPotencyError(f"Vial has no usable potency field: {vial!r}")
