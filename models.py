"""
Infusion Engine: Data Dictionary
================================
Defines the records the engine reads (Drug, Vial), the values it derives
(ResolvedConcentration, ValidationVerdict, PreparationResult) and the
error taxonomy shared by every component.

Drug and Vial records are owned by the drug database and are immutable here.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type, Union

from constants import VERSION, ConcentrationField, DoseNotation

# --- 1. ERRORS ---

class InfusionEngineError(ValueError):
    """Base class for malformed engine calls. Safety verdicts are never raised."""
    pass

class InvalidInputError(InfusionEngineError):
    """Dose, weight or dilution is non-numeric, non-finite or physically impossible."""
    pass

class InvalidDoseError(InvalidInputError):
    """Dose (or the weight it is normalised by) cannot be used for conversion."""
    pass

class InvalidDilutionError(InvalidInputError):
    """Dilution volume is not a positive finite number of ml."""
    pass

class MissingPotencyError(InfusionEngineError):
    """Vial carries none of mass strength, activity strength or premixed concentration."""
    pass

class MissingConcentrationFieldError(InfusionEngineError):
    """Notation needs a base unit the resolved concentration does not carry."""
    pass

class UnsupportedNotationError(InfusionEngineError):
    """Dose notation outside the closed set. Never approximated."""
    pass


def require_number(name: str, value: Any,
                   error_cls: Type[InvalidInputError] = InvalidInputError) -> float:
    """Accepts int/float only. Strings and booleans are rejected, not coerced."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise error_cls(f"{name} must be numeric, got {type(value).__name__}")
    try:
        number = float(value)
    except OverflowError:
        raise error_cls(f"{name} is too large to be a real quantity") from None
    if not math.isfinite(number):
        raise error_cls(f"{name} must be finite, got {value}")
    return number

def require_positive(name: str, value: Any,
                     error_cls: Type[InvalidInputError] = InvalidInputError) -> float:
    number = require_number(name, value, error_cls)
    if number <= 0:
        raise error_cls(f"{name} must be > 0 (got {value}).")
    return number

def parse_notation(value: Union[str, DoseNotation]) -> DoseNotation:
    """Maps 'mcg/kg/min' etc. onto DoseNotation."""
    if isinstance(value, DoseNotation):
        return value
    try:
        return DoseNotation(value)
    except ValueError:
        raise UnsupportedNotationError(f"Unsupported dose notation: {value!r}") from None

def is_weight_based_unit(unit: str) -> bool:
    """True for the 'per kilogram' family (mcg/kg/min, units/kg/hr, ...)."""
    return "kg" in (unit or "").split("/")


# --- 2. VIAL POTENCY (closed variants) ---

@dataclass(frozen=True)
class MassStrength:
    """Total drug mass in one vial, in mg."""
    mg: float

    def __post_init__(self):
        require_positive("strength_mg", self.mg)

@dataclass(frozen=True)
class ActivityStrength:
    """Total activity in one vial, in units (heparin, insulin)."""
    units: float

    def __post_init__(self):
        require_positive("strength_units", self.units)

@dataclass(frozen=True)
class PremixedConcentration:
    """Vial is already a solution, labelled in mcg/ml."""
    mcg_per_ml: float

    def __post_init__(self):
        require_positive("mcg_per_ml", self.mcg_per_ml)

VialPotency = Union[MassStrength, ActivityStrength, PremixedConcentration]
POTENCY_TYPES = (MassStrength, ActivityStrength, PremixedConcentration)


@dataclass(frozen=True)
class Vial:
    potency: VialPotency
    ampoule_volume_ml: Optional[float] = None
    note: Optional[str] = None  # Label as printed, e.g. "Nitroglycerin 5 mg/5 ml"

    def __post_init__(self):
        if not isinstance(self.potency, POTENCY_TYPES):
            raise MissingPotencyError(f"Vial has no usable potency (got {self.potency!r})")
        if self.ampoule_volume_ml is not None:
            require_positive("ampoule_volume_ml", self.ampoule_volume_ml)

    @classmethod
    def from_fields(cls, strength_mg: Optional[float] = None,
                    strength_units: Optional[float] = None,
                    mcg_per_ml: Optional[float] = None,
                    ampoule_volume_ml: Optional[float] = None,
                    note: Optional[str] = None) -> "Vial":
        """
        Builds a Vial from label fields.
        Precedence mirrors how vials are labelled: mass > activity > premixed.
        """
        if strength_mg is not None:
            potency = MassStrength(strength_mg)
        elif strength_units is not None:
            potency = ActivityStrength(strength_units)
        elif mcg_per_ml is not None:
            potency = PremixedConcentration(mcg_per_ml)
        else:
            raise MissingPotencyError("Vial defines none of strength_mg, strength_units, mcg_per_ml")
        return cls(potency=potency, ampoule_volume_ml=ampoule_volume_ml, note=note)

    @property
    def label(self) -> str:
        if self.note:
            return self.note
        if isinstance(self.potency, MassStrength):
            return f"{self.potency.mg:g} mg"
        if isinstance(self.potency, ActivityStrength):
            return f"{self.potency.units:g} units"
        return f"{self.potency.mcg_per_ml:g} mcg/ml"


# --- 3. DRUG RECORD ---

@dataclass(frozen=True)
class DoseRange:
    """Common dosing range, expressed in the drug's primary unit."""
    min: float
    max: float

    def __post_init__(self):
        low = require_number("dose_range.min", self.min)
        high = require_number("dose_range.max", self.max)
        if low < 0 or high < low:
            raise InvalidInputError(f"Invalid dose range: {self.min}-{self.max}")

@dataclass(frozen=True)
class Drug:
    drug_id: str
    name: str
    primary_unit: str              # e.g. "mcg/kg/min"
    vials: Tuple[Vial, ...]
    dose_range: Optional[DoseRange] = None
    max_rate_mcg_per_min: Optional[float] = None
    notes: str = ""
    default_vial_index: int = 0

    @property
    def primary_is_weight_based(self) -> bool:
        return is_weight_based_unit(self.primary_unit)


# --- 4. DERIVED VALUES ---

@dataclass(frozen=True)
class ResolvedConcentration:
    """
    Drug per ml after dilution. Unused bases stay None, never 0.
    A mass-based vial fills mg/mcg; an activity vial fills units only.
    """
    mg_per_ml: Optional[float] = None
    mcg_per_ml: Optional[float] = None
    units_per_ml: Optional[float] = None

    def __post_init__(self):
        for name in ("mg_per_ml", "mcg_per_ml", "units_per_ml"):
            value = getattr(self, name)
            if value is not None:
                require_positive(name, value)
        has_mass = self.mg_per_ml is not None or self.mcg_per_ml is not None
        if has_mass and self.units_per_ml is not None:
            raise InvalidInputError("A concentration cannot be both mass-based and activity-based")

    def get(self, base: ConcentrationField) -> Optional[float]:
        return getattr(self, base.value)

    def describe(self) -> str:
        if self.mcg_per_ml is not None:
            return f"{self.mcg_per_ml:.2f} mcg/ml"
        if self.mg_per_ml is not None:
            return f"{self.mg_per_ml:.3f} mg/ml"
        if self.units_per_ml is not None:
            return f"{self.units_per_ml:.3f} units/ml"
        return "N/A"

class VerdictLevel(Enum):
    OK = "ok"
    SOFT_WARNING = "soft-warning"
    HARD_BLOCK = "hard-block"

@dataclass(frozen=True)
class ValidationVerdict:
    ok: bool
    level: VerdictLevel
    message: str = ""

    @property
    def requires_override(self) -> bool:
        return self.level == VerdictLevel.HARD_BLOCK

@dataclass
class PreparationResult:
    """
    What the clinician sees: what to draw up and what to set the pump to.
    On a conversion failure only the identifying fields, safety notes
    and the error are populated.
    """
    drug_id: str
    chosen_vial: Vial
    dilution_ml: float
    safety_notes: str = ""

    ml_per_hr: Optional[float] = None
    concentration: Optional[ResolvedConcentration] = None
    ampoules_to_add: Optional[int] = None
    prep_text: str = ""
    max_rate_warning: Optional[str] = None
    verdict: Optional[ValidationVerdict] = None

    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


# --- 5. AUDIT ---

def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()

@dataclass
class AuditRecord:
    event_type: str
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=_utc_now)
    model_version: str = VERSION

@dataclass
class OverrideRequest:
    """Clinician override of a hard-block. Needs second-nurse verification downstream."""
    reason_text: str
    user_id: str
    verdict_level: Optional[str] = None
    verdict_message: Optional[str] = None
    timestamp: str = field(default_factory=_utc_now)
    model_version: str = VERSION
