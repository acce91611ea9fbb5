from enum import Enum


class Chamber(Enum):
    """Cardiac chambers. Values are the parameter-name prefixes."""
    LV = "lv"
    LA = "la"
    RV = "rv"
    RA = "ra"


class PhaseEvent(Enum):
    """Cardiac-cycle boundaries used as parameter commit points."""
    END_DIASTOLE = "End diastole"
    END_SYSTOLE = "End systole"


class ParameterGroup(Enum):
    """Parameter groups that can be rescaled as a whole."""
    SYSTEMIC_RESISTANCE = "systemic_resistance"
    SYSTEMIC_COMPLIANCE = "systemic_compliance"
    PULMONARY_RESISTANCE = "pulmonary_resistance"
    PULMONARY_COMPLIANCE = "pulmonary_compliance"
