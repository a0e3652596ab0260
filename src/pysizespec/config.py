"""PySizeSpec configuration.

Centralized default values used by the constructors and the projector.
"""
from dataclasses import dataclass, field
from typing import Dict, List


@dataclass
class GridDefaults:
    """Default size grid configuration."""

    no_w: int = 100
    min_w: float = 0.001      # Egg size for species without w_min
    min_w_pp: float = 1e-10   # Smallest resource size


@dataclass
class SpeciesDefaults:
    """Default species parameter values.

    Values are used by ``complete_species_params`` for any column
    missing from the species table, or for NaN entries in it.
    """

    w_min: float = 0.001
    w_mat_fraction: float = 0.25    # w_mat = w_mat_fraction * w_max
    w_mat25_power: float = 0.1      # w_mat25 = w_mat / 3^w_mat25_power
    alpha: float = 0.6              # Assimilation efficiency
    erepro: float = 1.0             # Reproductive efficiency
    R_max: float = float("inf")     # Maximum recruitment
    n: float = 2 / 3                # Max intake exponent
    q: float = 0.8                  # Search volume exponent
    m: float = 1.0                  # Reproduction allocation exponent
    h: float = 30.0                 # Max intake coefficient
    beta: float = 100.0             # Preferred predator/prey mass ratio
    sigma: float = 2.0              # Width of the predation kernel
    pred_kernel_type: str = "lognormal"
    f0: float = 0.6                 # Expected feeding level
    fc: float = 0.2                 # Critical feeding level
    k: float = 0.0                  # Activity coefficient
    z0pre: float = 0.6              # z0 = z0pre * w_max^(n - 1)
    interaction_resource: float = 1.0


@dataclass
class ResourceDefaults:
    """Default resource spectrum parameters."""

    kappa: float = 1e11
    lambda_: float = 2.05
    r_pp: float = 10.0
    n: float = 2 / 3
    w_pp_cutoff: float = 10.0
    dynamics: str = "resource_semichemostat"


@dataclass
class ProjectionDefaults:
    """Default projection settings."""

    t_max: float = 100.0
    dt: float = 0.1
    t_save: float = 1.0
    scheme: str = "semi_implicit"
    initial_effort: float = 1.0


@dataclass
class LoggingDefaults:
    """Console logging settings for the ``pysizespec`` logger."""

    level: str = "INFO"
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
    datefmt: str = '%Y-%m-%d %H:%M:%S'
    # Set PYSIZESPEC_LOG_LEVEL to override ``level``
    env_var: str = "PYSIZESPEC_LOG_LEVEL"


@dataclass
class ColorScheme:
    """Line colours and types for species in plots.

    Presentation metadata only; the numerical core never reads it.
    """

    palette: List[str] = field(default_factory=lambda: [
        "#815f00", "#6237e2", "#8da600", "#de53ff", "#0e4300",
        "#430079", "#6caa72", "#ee0053", "#007957", "#b42979",
        "#142300", "#a08dfb", "#644500", "#04004c", "#b79955",
        "#0060a8", "#dc8852", "#007ca9", "#ab003c", "#9796d9",
    ])
    linetype: str = "solid"
    extra: Dict[str, str] = field(default_factory=lambda: {
        "Resource": "green",
        "Total": "black",
        "Background": "grey",
        "Fishing": "red",
        "External": "grey",
    })


@dataclass
class Defaults:
    """Bundle of all default settings."""

    grid: GridDefaults = field(default_factory=GridDefaults)
    species: SpeciesDefaults = field(default_factory=SpeciesDefaults)
    resource: ResourceDefaults = field(default_factory=ResourceDefaults)
    projection: ProjectionDefaults = field(default_factory=ProjectionDefaults)
    colors: ColorScheme = field(default_factory=ColorScheme)
    logging: LoggingDefaults = field(default_factory=LoggingDefaults)


DEFAULTS = Defaults()
