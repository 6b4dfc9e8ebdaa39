from enum import Enum
from dataclasses import dataclass
VERSION = "1.0.0"

class DoseNotation(Enum):
    MCG_KG_MIN = "mcg/kg/min"   # Vasoactives (noradrenaline, dopamine)
    MCG_MIN = "mcg/min"         # Nitroglycerin
    MG_MIN = "mg/min"           # Amiodarone, lidocaine
    MG_HR = "mg/hr"             # Midazolam, furosemide
    UNITS_HR = "units/hr"       # Heparin
    UNITS_KG_HR = "units/kg/hr" # Insulin (DKA protocol)

class ConcentrationField(Enum):
    """Base unit a dose notation needs from the prepared solution."""
    MG_PER_ML = "mg_per_ml"
    MCG_PER_ML = "mcg_per_ml"
    UNITS_PER_ML = "units_per_ml"

@dataclass(frozen=True)
class NotationProperties:
    label: str
    required_field: ConcentrationField
    weight_based: bool
    # Multiplier taking the dose's time base to "per hour"
    per_hour_factor: float

class DOSING_CONSTANTS:
    MCG_PER_MG = 1000.0
    MINUTES_PER_HOUR = 60.0

    # Standard syringe-driver preparation
    DEFAULT_DILUTION_ML = 50.0

    # Premixed vials that do not state their ampoule volume
    DEFAULT_VIAL_VOLUME_ML = 1.0

    # Absorbs float noise (e.g. 3/7 * 7) before rounding vial counts up
    VIAL_COUNT_TOLERANCE = 1e-9

class SAFETY_THRESHOLDS:
    # Comparable notations (both per-kg or both absolute)
    NEAR_MAX_FACTOR = 0.9
    BLOCK_FACTOR = 1.2

    # Mismatched notations: wider bounds, numeric comparison is only a heuristic
    HEURISTIC_LOW_FACTOR = 0.5
    HEURISTIC_HIGH_FACTOR = 2.0

class NOTATION_LIBRARY:
    """
    The conversion table. One row per supported notation.
    A new notation needs a new row; nothing is inferred from the label.
    """
    SPECS = {
        DoseNotation.MCG_KG_MIN: NotationProperties(
            label="mcg/kg/min",
            required_field=ConcentrationField.MCG_PER_ML,
            weight_based=True,
            per_hour_factor=DOSING_CONSTANTS.MINUTES_PER_HOUR
        ),
        DoseNotation.MCG_MIN: NotationProperties(
            label="mcg/min",
            required_field=ConcentrationField.MCG_PER_ML,
            weight_based=False,
            per_hour_factor=DOSING_CONSTANTS.MINUTES_PER_HOUR
        ),
        DoseNotation.MG_MIN: NotationProperties(
            label="mg/min",
            required_field=ConcentrationField.MG_PER_ML,
            weight_based=False,
            per_hour_factor=DOSING_CONSTANTS.MINUTES_PER_HOUR
        ),
        DoseNotation.MG_HR: NotationProperties(
            label="mg/hr",
            required_field=ConcentrationField.MG_PER_ML,
            weight_based=False,
            per_hour_factor=1.0
        ),
        DoseNotation.UNITS_HR: NotationProperties(
            label="units/hr",
            required_field=ConcentrationField.UNITS_PER_ML,
            weight_based=False,
            per_hour_factor=1.0
        ),
        DoseNotation.UNITS_KG_HR: NotationProperties(
            label="units/kg/hr",
            required_field=ConcentrationField.UNITS_PER_ML,
            weight_based=True,
            per_hour_factor=1.0
        ),
    }

    @staticmethod
    def get(notation: DoseNotation) -> NotationProperties:
        return NOTATION_LIBRARY.SPECS[notation]

    @staticmethod
    def is_mass_micro(notation: DoseNotation) -> bool:
        return NOTATION_LIBRARY.SPECS[notation].required_field == ConcentrationField.MCG_PER_ML
