"""
Static lookup tables: milk modifiers and the coffee catalog.

Milk slows gastric emptying and binds part of the caffeine:
  effective_mg = base_mg * (1 - caffeine_reduction)
  time_to_peak = 45 min + peak_delay_minutes

Example: Flat White (130 mg) + Whole Milk (12%, +20 min)
  -> 114.4 mg effective, peak after 65 min.

absorption_delay_minutes is carried for display only; the decay model
uses peak_delay_minutes.

Both tables are read-only mappings. Core functions take them as parameters,
these module-level tables are just the defaults.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from kaffa.config import DEFAULT_MILK

log = logging.getLogger("kaffa.engine")


class UnknownDrink(KeyError):
    """Drink name not present in the catalog."""


@dataclass(frozen=True)
class MilkModifier:
    name: str
    display_name: str
    absorption_delay_minutes: float
    caffeine_reduction: float
    peak_delay_minutes: float


@dataclass(frozen=True)
class DrinkType:
    name: str
    volume_ml: float
    caffeine_mg: float
    category: str  # "black" | "milk"
    default_milk: Optional[str] = None


NO_MILK = MilkModifier(DEFAULT_MILK, "No Milk", 0, 0.0, 0)

_MILKS = [
    NO_MILK,
    MilkModifier("Skimmed", "Skimmed", 5, 0.02, 5),
    MilkModifier("Semi-Skimmed", "Semi-Skimmed", 8, 0.05, 10),
    MilkModifier("Whole Milk", "Whole Milk", 12, 0.12, 20),
    MilkModifier("Coconut Milk", "Coconut", 10, 0.08, 15),
    MilkModifier("Oat Milk", "Oat", 6, 0.03, 7),
    MilkModifier("Almond Milk", "Almond", 3, 0.01, 3),
    MilkModifier("Soy Milk", "Soy", 7, 0.04, 8),
]

MILK_MODIFIERS: Mapping[str, MilkModifier] = MappingProxyType({m.name: m for m in _MILKS})

# Average values per serving (USDA, SCA, EFSA)
_DRINKS = [
    DrinkType("Espresso", 30, 75, "black"),
    DrinkType("Double Espresso", 60, 150, "black"),
    DrinkType("Americano", 200, 150, "black"),
    DrinkType("Long Black", 180, 140, "black"),
    DrinkType("Filter Coffee", 250, 120, "black"),
    DrinkType("Cappuccino", 180, 75, "milk", "Semi-Skimmed"),
    DrinkType("Latte", 250, 75, "milk", "Semi-Skimmed"),
    DrinkType("Flat White", 160, 130, "milk", "Whole Milk"),
    DrinkType("Cortado", 120, 75, "milk", "Whole Milk"),
    DrinkType("Macchiato", 60, 75, "milk", "Semi-Skimmed"),
    DrinkType("Mocha", 250, 95, "milk", "Whole Milk"),
    DrinkType("Cold Brew", 250, 200, "black"),
    DrinkType("Iced Coffee", 250, 120, "black"),
    DrinkType("Tea (English Breakfast)", 250, 50, "black"),
    DrinkType("Earl Grey", 250, 45, "black"),
    DrinkType("Green Tea", 250, 35, "black"),
    DrinkType("Energy Drink", 250, 80, "black"),
]

COFFEE_CATALOG: Mapping[str, DrinkType] = MappingProxyType({d.name: d for d in _DRINKS})


def lookup_milk(milk_table: Mapping[str, MilkModifier], name: Optional[str]) -> MilkModifier:
    """
    Resolve a milk modifier by name.
    Unknown or missing names fall back to the zero-effect modifier, so a
    renamed milk type in stored data never breaks level computation.
    """
    if name:
        milk = milk_table.get(name)
        if milk is not None:
            return milk
        log.debug("Unknown milk type %r, using %s", name, DEFAULT_MILK)
    return milk_table.get(DEFAULT_MILK, NO_MILK)


def lookup_drink(catalog: Mapping[str, DrinkType], name: str) -> DrinkType:
    try:
        return catalog[name]
    except KeyError:
        raise UnknownDrink(name) from None


def catalog_as_dicts(
    catalog: Mapping[str, DrinkType] = COFFEE_CATALOG,
    milk_table: Mapping[str, MilkModifier] = MILK_MODIFIERS,
) -> dict:
    """Serializable view of both tables (for the catalog endpoint)."""
    return {
        "drinks": [
            {
                "name": d.name,
                "volume_ml": d.volume_ml,
                "caffeine_mg": d.caffeine_mg,
                "category": d.category,
                "default_milk": d.default_milk,
            }
            for d in catalog.values()
        ],
        "milks": [
            {
                "name": m.name,
                "display_name": m.display_name,
                "absorption_delay_minutes": m.absorption_delay_minutes,
                "caffeine_reduction": m.caffeine_reduction,
                "peak_delay_minutes": m.peak_delay_minutes,
            }
            for m in milk_table.values()
        ],
    }
