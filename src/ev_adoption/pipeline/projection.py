# ========================
# src/ev_adoption/pipeline/projection.py
# ========================

"""
Saturation Projection Module

Extrapolates the year EV share reaches 100% under a constant growth rate:
share * (1 + r) ** t = 1, so t = log(1 / share) / log(1 + r).
"""

import math
import logging
from statistics import mean
from typing import Any, Dict, Optional, Sequence

from .errors import ProjectionError

logger = logging.getLogger(__name__)


def years_to_saturation(current_share: float, growth_rate: float) -> float:
    """
    Years until the share reaches 1 at a constant growth rate.

    Args:
        current_share (float): Current share, strictly between 0 and 1
        growth_rate (float): Growth per period as a fraction (0.53 = 53%)

    Returns:
        float: Number of periods until saturation

    Raises:
        ProjectionError: When the share is outside (0, 1) or the growth rate
            is not positive (no finite crossing exists)
    """
    context = {'current_share': current_share, 'growth_rate': growth_rate}
    if current_share is None or growth_rate is None:
        raise ProjectionError("Share and growth rate are required", context)
    if math.isnan(current_share) or math.isnan(growth_rate):
        raise ProjectionError("Share and growth rate must be numbers", context)
    if not 0 < current_share < 1:
        raise ProjectionError("Current share must be strictly between 0 and 1", context)
    if growth_rate <= -1:
        raise ProjectionError("Growth rate must be greater than -100%", context)
    if growth_rate <= 0:
        raise ProjectionError("Share never reaches saturation without positive growth", context)
    return math.log(1 / current_share) / math.log(1 + growth_rate)


def _bound(current_share: float, rate_percent: Optional[float], base_year: int) -> Dict[str, Any]:
    bound: Dict[str, Any] = {'growth_rate': rate_percent, 'years': None, 'year': None, 'error': None}
    if rate_percent is None:
        bound['error'] = "No historical growth rates available"
        return bound
    try:
        years = years_to_saturation(current_share, rate_percent / 100)
    except ProjectionError as e:
        logger.warning(f"Saturation undefined: {e}")
        bound['error'] = str(e)
        return bound
    bound['years'] = years
    bound['year'] = base_year + math.ceil(years)
    return bound


def saturation_window(current_share: float,
                      growth_rates_percent: Sequence[float],
                      base_year: int) -> Dict[str, Any]:
    """
    Optimistic and pessimistic saturation years.

    The optimistic bound uses the mean historical growth rate and the
    pessimistic bound the minimum. An undefined bound carries an error
    message instead of a year; the other bound is still computed.

    Args:
        current_share (float): Share in base_year
        growth_rates_percent (sequence): Historical growth rates in percent
        base_year (int): Year the current share was observed

    Returns:
        dict: current_share, base_year, optimistic and pessimistic bounds
    """
    rates = [r for r in growth_rates_percent if r is not None]
    mean_rate = mean(rates) if rates else None
    min_rate = min(rates) if rates else None
    return {
        'current_share': current_share,
        'base_year': base_year,
        'optimistic': _bound(current_share, mean_rate, base_year),
        'pessimistic': _bound(current_share, min_rate, base_year),
    }


def describe_saturation(label: str, window: Dict[str, Any]) -> str:
    """Render a saturation window as one descriptive sentence."""
    share = window.get('current_share')
    share_text = f"{share:.1%}" if isinstance(share, (int, float)) else "an unknown share"
    lead = f"{label}: starting from an EV share of {share_text} in {window.get('base_year')}"

    optimistic, pessimistic = window['optimistic'], window['pessimistic']
    if optimistic['year'] is not None and pessimistic['year'] is not None:
        early, late = sorted((optimistic['year'], pessimistic['year']))
        return (
            f"{lead}, EV share would reach 100% between {early} and {late} "
            f"(mean growth {optimistic['growth_rate']:.1f}%/yr: {optimistic['years']:.1f} years; "
            f"minimum growth {pessimistic['growth_rate']:.1f}%/yr: {pessimistic['years']:.1f} years)."
        )
    if optimistic['year'] is not None:
        return (
            f"{lead}, EV share would reach 100% by {optimistic['year']} at the mean growth rate "
            f"of {optimistic['growth_rate']:.1f}%/yr; the pessimistic bound is undefined "
            f"({pessimistic['error']})."
        )
    return f"{lead}, the saturation year is undefined ({optimistic['error']})."
