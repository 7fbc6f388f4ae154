from annuity_core.io.annuities import load_annuities, save_annuities  # noqa: F401
from annuity_core.io.config import load_monte_carlo_config, load_worker_settings  # noqa: F401
from annuity_core.io.prices import load_price_history  # noqa: F401
from annuity_core.io.results import (  # noqa: F401
    monte_carlo_from_dict,
    monte_carlo_to_dict,
    results_from_dict,
    results_to_dict,
)

__all__ = [
    "load_annuities",
    "save_annuities",
    "load_monte_carlo_config",
    "load_worker_settings",
    "load_price_history",
    "monte_carlo_from_dict",
    "monte_carlo_to_dict",
    "results_from_dict",
    "results_to_dict",
]
