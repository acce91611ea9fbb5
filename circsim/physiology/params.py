import logging
import math
from dataclasses import dataclass, fields, replace
from typing import Dict, Mapping, Optional, Tuple

from circsim.core.enums import Chamber, ParameterGroup
from circsim.core.utils import cycle_period

logger = logging.getLogger(__name__)


class ParameterValidationError(ValueError):
    """Raised when a parameter set would drive the RHS outside its domain."""


@dataclass(frozen=True)
class SimulationParameters:
    """
    Parameters of the 12-compartment circulation model.

    Units: resistances mmHg*ms/mL, compliances mL/mmHg, volumes mL,
    times ms, Ees mmHg/mL, HR bpm.
    """
    # Systemic circulation
    ras: float = 20.0
    rcs: float = 830.0
    rvs: float = 25.0
    ras_prox: float = 30.0
    rda: float = 3.0
    cas: float = 1.83
    cvs: float = 70.0
    cas_prox: float = 0.54
    cda: float = 0.52

    # Pulmonary circulation
    rcp: float = 10.0
    rap: float = 13.0
    rvp: float = 15.0
    rap_prox: float = 15.0
    cap: float = 20.0
    cvp: float = 7.0
    cap_prox: float = 1.0

    # Atrioventricular valves
    rmv: float = 2.5
    rtv: float = 2.5

    # Left ventricle
    lv_ees: float = 2.21
    lv_v0: float = 5.0
    lv_alpha: float = 0.029
    lv_beta: float = 0.34
    lv_tmax: float = 300.0
    lv_tau: float = 25.0
    lv_av_delay: float = 160.0

    # Left atrium
    la_ees: float = 0.48
    la_v0: float = 10.0
    la_alpha: float = 0.058
    la_beta: float = 0.44
    la_tmax: float = 125.0
    la_tau: float = 20.0
    la_av_delay: float = 0.0

    # Right ventricle
    rv_ees: float = 0.74
    rv_v0: float = 5.0
    rv_alpha: float = 0.028
    rv_beta: float = 0.34
    rv_tmax: float = 300.0
    rv_tau: float = 25.0
    rv_av_delay: float = 160.0

    # Right atrium
    ra_ees: float = 0.38
    ra_v0: float = 10.0
    ra_alpha: float = 0.046
    ra_beta: float = 0.44
    ra_tmax: float = 125.0
    ra_tau: float = 20.0
    ra_av_delay: float = 0.0

    hr: float = 60.0

    # Valve leaks: *r = regurgitation (backward), *s = stenosis (forward)
    ravr: float = 100000.0
    ravs: float = 0.0
    rmvr: float = 100000.0
    rmvs: float = 0.0
    rpvr: float = 100000.0
    rpvs: float = 0.0
    rtvr: float = 100000.0
    rtvs: float = 0.0

    def copy(self, **changes) -> "SimulationParameters":
        return replace(self, **changes)

    def as_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class ChamberParams:
    ees: float
    v0: float
    alpha: float
    beta: float
    tmax: float
    tau: float
    av_delay: float


def chamber_params(params: SimulationParameters, chamber: Chamber) -> ChamberParams:
    """Collect the elastance-model parameters of one chamber."""
    prefix = chamber.value
    return ChamberParams(
        ees=getattr(params, f"{prefix}_ees"),
        v0=getattr(params, f"{prefix}_v0"),
        alpha=getattr(params, f"{prefix}_alpha"),
        beta=getattr(params, f"{prefix}_beta"),
        tmax=getattr(params, f"{prefix}_tmax"),
        tau=getattr(params, f"{prefix}_tau"),
        av_delay=getattr(params, f"{prefix}_av_delay"),
    )


PARAMETER_NAMES = tuple(f.name for f in fields(SimulationParameters))

_CHAMBER_PREFIXES = tuple(c.value for c in Chamber)

SEGMENT_RESISTANCES = (
    "ras", "rcs", "rvs", "ras_prox", "rda",
    "rcp", "rap", "rvp", "rap_prox",
    "rmv", "rtv",
)
COMPLIANCES = ("cas", "cvs", "cas_prox", "cda", "cap", "cvp", "cap_prox")
STENOSIS_RESISTANCES = ("ravs", "rmvs", "rpvs", "rtvs")
REGURGITATION_RESISTANCES = ("ravr", "rmvr", "rpvr", "rtvr")

# Committed at end-diastole.
STRUCTURAL_FIELDS: Tuple[str, ...] = (
    ("hr",)
    + SEGMENT_RESISTANCES
    + STENOSIS_RESISTANCES
    + REGURGITATION_RESISTANCES
    + COMPLIANCES
    + tuple(f"{p}_{k}" for p in _CHAMBER_PREFIXES for k in ("ees", "v0"))
)

# Committed at end-systole.
TIMING_FIELDS: Tuple[str, ...] = tuple(
    f"{p}_{k}" for p in _CHAMBER_PREFIXES
    for k in ("alpha", "beta", "tau", "tmax", "av_delay")
)

GROUP_FIELDS: Dict[ParameterGroup, Tuple[str, ...]] = {
    ParameterGroup.SYSTEMIC_RESISTANCE: ("ras", "rcs", "rvs", "ras_prox", "rda"),
    ParameterGroup.SYSTEMIC_COMPLIANCE: ("cas", "cvs", "cas_prox", "cda"),
    ParameterGroup.PULMONARY_RESISTANCE: ("rap", "rvp", "rap_prox", "rcp"),
    ParameterGroup.PULMONARY_COMPLIANCE: ("cap", "cvp", "cap_prox"),
}


def validate_params(params: SimulationParameters) -> SimulationParameters:
    """
    Reject parameter sets the RHS cannot evaluate.

    The valve quadratics need a strictly positive regurgitation coefficient
    (otherwise the reverse branch divides by zero or its discriminant can go
    negative) and a non-negative stenosis coefficient. Everything used as a
    divisor must be strictly positive.

    Returns the parameters unchanged so calls can be chained.
    """
    for name in PARAMETER_NAMES:
        value = getattr(params, name)
        if not math.isfinite(value):
            raise ParameterValidationError(f"{name} must be finite (got {value!r})")

    positive = (("hr",) + SEGMENT_RESISTANCES + COMPLIANCES
                + REGURGITATION_RESISTANCES
                + tuple(f"{p}_{k}" for p in _CHAMBER_PREFIXES for k in ("tmax", "tau")))
    for name in positive:
        value = getattr(params, name)
        if value <= 0.0:
            raise ParameterValidationError(f"{name} must be > 0 (got {value})")

    for name in STENOSIS_RESISTANCES:
        value = getattr(params, name)
        if value < 0.0:
            raise ParameterValidationError(f"{name} must be >= 0 (got {value})")

    problem = cycle_timing_problem(params)
    if problem:
        raise ParameterValidationError(problem)

    return params


def cycle_timing_problem(params: SimulationParameters) -> Optional[str]:
    """
    Describe why the chamber timings do not fit the cardiac cycle, or None.

    The activation baseline exp(-(T - 1.5*Tmax)/tau)/2 is only a small offset
    while the period T is longer than 1.5*Tmax; past that it grows without
    bound and the chamber pressures blow up. HR and Tmax are committed at
    different phase boundaries, so this is also checked on the mix of active
    and live values the synchronizer is about to commit.
    """
    period = cycle_period(params.hr)
    for prefix in _CHAMBER_PREFIXES:
        tmax = getattr(params, f"{prefix}_tmax")
        if period <= 1.5 * tmax:
            return (f"{prefix}_tmax={tmax:g} ms does not fit hr={params.hr:g} "
                    f"(cycle {period:.1f} ms must be longer than 1.5*tmax)")
    return None


def apply_changes(params: SimulationParameters, changes: Mapping[str, float]) -> SimulationParameters:
    """Return a validated copy of params with changes applied."""
    unknown = [name for name in changes if name not in PARAMETER_NAMES]
    if unknown:
        raise ParameterValidationError(f"Unknown parameter(s): {', '.join(sorted(unknown))}")
    candidate = replace(params, **{k: float(v) for k, v in changes.items()})
    return validate_params(candidate)


def group_total(params: SimulationParameters, group: ParameterGroup) -> float:
    return sum(getattr(params, name) for name in GROUP_FIELDS[group])


def scale_group(params: SimulationParameters, group: ParameterGroup, new_total: float) -> SimulationParameters:
    """
    Rescale every member of a group proportionally so the group sums to new_total.

    A group whose current total is exactly zero has no proportions to keep;
    the parameters are returned unchanged.
    """
    current = group_total(params, group)
    if current == 0:
        logger.debug("Skipping rescale of %s: current total is zero", group.value)
        return params
    ratio = new_total / current
    return replace(params, **{name: getattr(params, name) * ratio for name in GROUP_FIELDS[group]})


def commit_fields(active: SimulationParameters, live: SimulationParameters,
                  names: Tuple[str, ...]) -> SimulationParameters:
    """Copy the named fields from live into a new active snapshot."""
    return replace(active, **{name: getattr(live, name) for name in names})
