"""
Salary Structure Resolver

Turns a monthly gross figure and an ordered set of salary component rules
into absolute monthly amounts for every earning and deduction.

Resolution runs in three passes over the components sorted by ``order``:
1. Basic anchor (other components may be a percentage of it)
2. Every remaining non-balance component
3. The single balance component, which absorbs whatever is left of the gross

The resolver never raises. Structural problems with a component set are
reported by ``validate_component_set``, which configuration editors call
before persisting a set.
"""

import logging
from typing import Dict, List, Optional, Sequence

from app.core.exceptions import ComponentConfigError
from app.schemas.payroll import (
    CalculationType,
    ComponentKind,
    SalaryBreakdownResult,
    SalaryComponent,
)

logger = logging.getLogger(__name__)

BASIC_COMPONENT_NAME = "basic"
DEDUCTION_ORDER_OFFSET = 200


def _sorted(components: Sequence[SalaryComponent]) -> List[SalaryComponent]:
    return sorted(components, key=lambda c: c.order)


def _is_named_basic(component: SalaryComponent) -> bool:
    return component.name.strip().lower() == BASIC_COMPONENT_NAME


def find_basic_anchor(components: Sequence[SalaryComponent]) -> Optional[SalaryComponent]:
    """
    Locate the earning component other components are computed against.

    An explicit ``is_basic_anchor`` flag wins; otherwise the earning
    component named "Basic" (case-insensitive) is used.
    """
    ordered = _sorted(components)
    for comp in ordered:
        if comp.is_basic_anchor and comp.type == ComponentKind.EARNING:
            return comp
    for comp in ordered:
        if _is_named_basic(comp) and comp.type == ComponentKind.EARNING:
            return comp
    return None


def _component_amount(component: SalaryComponent, monthly_gross: float, basic: float) -> float:
    if component.calculation_type == CalculationType.PERCENTAGE_OF_GROSS:
        return monthly_gross * (component.value / 100)
    if component.calculation_type == CalculationType.PERCENTAGE_OF_BASIC:
        return basic * (component.value / 100)
    if component.calculation_type == CalculationType.FIXED_AMOUNT:
        return component.value
    return 0.0


def resolve(monthly_gross: float, components: Sequence[SalaryComponent]) -> SalaryBreakdownResult:
    """
    Calculate a full salary breakdown from a monthly gross and a set of component rules.

    Args:
        monthly_gross: Gross monthly salary to break down
        components: Salary component rules, in any order

    Returns:
        SalaryBreakdownResult with per-component amounts and the gross/deductions/net totals
    """
    ordered = _sorted(components)
    breakdown: Dict[str, float] = {}

    # First pass: the Basic anchor
    basic = 0.0
    anchor = find_basic_anchor(ordered)
    if anchor is not None:
        if anchor.calculation_type in (CalculationType.PERCENTAGE_OF_GROSS, CalculationType.FIXED_AMOUNT):
            basic = _component_amount(anchor, monthly_gross, 0.0)
        breakdown[anchor.name] = basic

    # Second pass: everything that is neither the anchor nor the balance
    for comp in ordered:
        if comp is anchor or comp.calculation_type == CalculationType.BALANCE_COMPONENT:
            continue
        breakdown[comp.name] = _component_amount(comp, monthly_gross, basic)

    # Breakdown entries are classified by the first component carrying the name
    kinds: Dict[str, ComponentKind] = {}
    for comp in ordered:
        kinds.setdefault(comp.name, comp.type)

    # Third pass: the balance component absorbs the remainder, never below zero
    balancing = next(
        (c for c in ordered if c.calculation_type == CalculationType.BALANCE_COMPONENT), None
    )
    if balancing is not None:
        current_earnings = sum(
            value for name, value in breakdown.items() if kinds.get(name) == ComponentKind.EARNING
        )
        breakdown[balancing.name] = max(0.0, monthly_gross - current_earnings)
    else:
        logger.warning("Salary component set has no balance component; earnings will not balance")

    gross = sum(v for name, v in breakdown.items() if kinds.get(name) == ComponentKind.EARNING)
    deductions = sum(v for name, v in breakdown.items() if kinds.get(name) == ComponentKind.DEDUCTION)

    return SalaryBreakdownResult(
        components=breakdown,
        gross=gross,
        deductions=deductions,
        net=gross - deductions,
    )


def component_set_problems(components: Sequence[SalaryComponent]) -> List[str]:
    """Return every structural problem found in a component set (empty when valid)."""
    problems: List[str] = []

    if not components:
        return ["At least one salary component is required."]

    seen_names: Dict[str, str] = {}
    seen_ids = set()
    for comp in components:
        name = comp.name.strip()
        if not name:
            problems.append("All components must have a name.")
            continue
        key = name.lower()
        if key in seen_names:
            problems.append(f"Component name '{name}' is used more than once.")
        seen_names[key] = name
        if comp.id in seen_ids:
            problems.append(f"Component id '{comp.id}' is used more than once.")
        seen_ids.add(comp.id)
        if comp.value < 0:
            problems.append(f"Component '{name}' has a negative value.")

    balances = [c for c in components if c.calculation_type == CalculationType.BALANCE_COMPONENT]
    if len(balances) != 1:
        problems.append(
            f"Exactly one component must be a balance component (found {len(balances)})."
        )
    for comp in balances:
        if comp.type != ComponentKind.EARNING:
            problems.append(f"Balance component '{comp.name}' must be an earning.")

    flagged = [c for c in components if c.is_basic_anchor]
    named = [c for c in components if _is_named_basic(c)]
    if len(flagged) > 1:
        problems.append(f"At most one component may be the Basic anchor (found {len(flagged)}).")
    elif not flagged and len(named) > 1:
        problems.append(f"At most one component may be named Basic (found {len(named)}).")
    for comp in flagged:
        if comp.type != ComponentKind.EARNING:
            problems.append(f"Basic anchor '{comp.name}' must be an earning.")

    return problems


def validate_component_set(components: Sequence[SalaryComponent]) -> None:
    """
    Validate a component set before it is persisted.

    Raises:
        ComponentConfigError: listing every problem found
    """
    problems = component_set_problems(components)
    if problems:
        raise ComponentConfigError(problems)


def normalize_component_order(components: Sequence[SalaryComponent]) -> List[SalaryComponent]:
    """
    Rewrite ``order`` so earnings come first, keeping the current relative order.

    Earnings get ``index + 1`` and deductions ``200 + index + 1``. Balance
    components are always earnings with a zero value.
    """
    normalized = []
    for index, comp in enumerate(_sorted(components)):
        updates = {}
        if comp.calculation_type == CalculationType.BALANCE_COMPONENT:
            updates["type"] = ComponentKind.EARNING
            updates["value"] = 0.0
        kind = updates.get("type", comp.type)
        if kind == ComponentKind.EARNING:
            updates["order"] = index + 1
        else:
            updates["order"] = DEDUCTION_ORDER_OFFSET + index + 1
        normalized.append(comp.model_copy(update=updates))
    return normalized
