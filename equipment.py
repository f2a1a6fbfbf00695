"""Battery and inverter product catalogue.

Provides the products quote lines are built from, based on the
installer's current trade price list.
"""

import logging

from constants import INSTALLATION_COST_FRACTION, INSTALLATION_DESCRIPTION
from exceptions import UnknownProductError
from models import (
    BatteryProduct,
    BatteryProductRef,
    InverterProduct,
    LineItemKind,
    QuoteLineItem,
)

logger = logging.getLogger(__name__)


MANUFACTURERS = {
    "mfr-givenergy": "GivEnergy",
    "mfr-sungrow": "Sungrow",
    "mfr-tesla": "Tesla",
    "mfr-enphase": "Enphase",
    "mfr-fox": "Fox ESS",
}

# Battery products (trade cost and RRP in £)
BATTERY_PRODUCTS = {
    "bat-givenergy-5": {
        "manufacturer_id": "mfr-givenergy",
        "model": "All-in-One 5.2kWh",
        "capacity_kwh": 5.2,
        "power_kw": 3.6,
        "warranty_years": 12,
        "cycle_life": 6000,
        "efficiency": 0.93,
        "dimensions": "600 x 450 x 200 mm",
        "weight": 55,
        "cost_price": 2100,
        "rrp": 3200,
    },
    "bat-givenergy-9": {
        "manufacturer_id": "mfr-givenergy",
        "model": "Giv-Bat 9.5kWh",
        "capacity_kwh": 9.5,
        "power_kw": 3.6,
        "warranty_years": 12,
        "cycle_life": 6000,
        "efficiency": 0.93,
        "dimensions": "690 x 500 x 230 mm",
        "weight": 97,
        "cost_price": 3400,
        "rrp": 4800,
    },
    "bat-sungrow-6": {
        "manufacturer_id": "mfr-sungrow",
        "model": "SBR064 6.4kWh",
        "capacity_kwh": 6.4,
        "power_kw": 5.0,
        "warranty_years": 10,
        "cycle_life": 6000,
        "efficiency": 0.95,
        "dimensions": "625 x 430 x 560 mm",
        "weight": 71,
        "cost_price": 2900,
        "rrp": 4315,
        "includes_inverter": True,
    },
    "bat-sungrow-9": {
        "manufacturer_id": "mfr-sungrow",
        "model": "SBR096 9.6kWh",
        "capacity_kwh": 9.6,
        "power_kw": 5.0,
        "warranty_years": 10,
        "cycle_life": 6000,
        "efficiency": 0.95,
        "dimensions": "625 x 430 x 720 mm",
        "weight": 98,
        "cost_price": 3500,
        "rrp": 5101,
        "includes_inverter": True,
    },
    "bat-sungrow-12": {
        "manufacturer_id": "mfr-sungrow",
        "model": "SBR128 12.8kWh",
        "capacity_kwh": 12.8,
        "power_kw": 5.0,
        "warranty_years": 10,
        "cycle_life": 6000,
        "efficiency": 0.95,
        "dimensions": "625 x 430 x 880 mm",
        "weight": 125,
        "cost_price": 4100,
        "rrp": 5886,
        "includes_inverter": True,
    },
    "bat-tesla-pw3": {
        "manufacturer_id": "mfr-tesla",
        "model": "Powerwall 3",
        "capacity_kwh": 13.5,
        "power_kw": 11.5,
        "warranty_years": 10,
        "cycle_life": 5000,
        "efficiency": 0.90,
        "dimensions": "1099 x 609 x 193 mm",
        "weight": 130,
        "cost_price": 6000,
        "rrp": 8500,
        "includes_inverter": True,
    },
    "bat-enphase-5p": {
        "manufacturer_id": "mfr-enphase",
        "model": "IQ Battery 5P",
        "capacity_kwh": 5.0,
        "power_kw": 3.84,
        "warranty_years": 15,
        "cycle_life": 6000,
        "efficiency": 0.90,
        "dimensions": "658 x 382 x 235 mm",
        "weight": 66,
        "cost_price": 2700,
        "rrp": 3800,
        "includes_inverter": True,
    },
}

INVERTER_PRODUCTS = {
    "inv-givenergy-hybrid-3": {
        "manufacturer_id": "mfr-givenergy",
        "model": "Gen 3 Hybrid 3.6kW",
        "power_kw": 3.6,
        "phases": 1,
        "efficiency": 0.97,
        "warranty_years": 10,
        "cost_price": 650,
        "rrp": 950,
        "features": ["Hybrid", "EPS backup", "Remote monitoring"],
    },
    "inv-givenergy-hybrid-5": {
        "manufacturer_id": "mfr-givenergy",
        "model": "Gen 3 Hybrid 5kW",
        "power_kw": 5.0,
        "phases": 1,
        "efficiency": 0.97,
        "warranty_years": 10,
        "cost_price": 800,
        "rrp": 1150,
        "features": ["Hybrid", "EPS backup", "Remote monitoring"],
    },
    "inv-fox-ac-3": {
        "manufacturer_id": "mfr-fox",
        "model": "AC3000 AC-coupled",
        "power_kw": 3.0,
        "phases": 1,
        "efficiency": 0.96,
        "warranty_years": 10,
        "cost_price": 520,
        "rrp": 800,
        "features": ["AC-coupled retrofit"],
    },
    "inv-sungrow-3p-10": {
        "manufacturer_id": "mfr-sungrow",
        "model": "SH10RT 10kW",
        "power_kw": 10.0,
        "phases": 3,
        "efficiency": 0.98,
        "warranty_years": 10,
        "cost_price": 1500,
        "rrp": 2150,
        "features": ["Hybrid", "Three phase", "Backup"],
    },
}


def _battery_from_options(product_id, data):
    return BatteryProduct(
        id=product_id,
        manufacturer_name=MANUFACTURERS[data["manufacturer_id"]],
        **data
    )


def _inverter_from_options(product_id, data):
    return InverterProduct(
        id=product_id,
        manufacturer_name=MANUFACTURERS[data["manufacturer_id"]],
        **data
    )


class ProductCatalogue:
    """In-memory product lookup by id."""

    def __init__(self, batteries=(), inverters=()):
        self._batteries = {b.id: b for b in batteries}
        self._inverters = {i.id: i for i in inverters}

    def get_battery(self, product_id: str) -> BatteryProduct:
        try:
            return self._batteries[product_id]
        except KeyError:
            raise UnknownProductError("battery", product_id) from None

    def get_inverter(self, product_id: str) -> InverterProduct:
        try:
            return self._inverters[product_id]
        except KeyError:
            raise UnknownProductError("inverter", product_id) from None

    def get_product(self, kind: LineItemKind, product_id: str):
        kind = LineItemKind(kind)
        if kind == LineItemKind.BATTERY:
            return self.get_battery(product_id)
        if kind == LineItemKind.INVERTER:
            return self.get_inverter(product_id)
        raise UnknownProductError(kind.value, product_id)

    def battery_ref(self, product_id: str):
        battery = self._batteries.get(product_id)
        if battery is None:
            return None
        return BatteryProductRef(capacity_kwh=battery.capacity_kwh, power_kw=battery.power_kw)

    def resolve_battery_capacity(self, product_id: str):
        ref = self.battery_ref(product_id)
        return ref.capacity_kwh if ref else None

    def active_batteries(self) -> list:
        return [b for b in self._batteries.values() if b.is_active]

    def active_inverters(self) -> list:
        return [i for i in self._inverters.values() if i.is_active]


def default_catalogue() -> ProductCatalogue:
    """Catalogue built from the current price list."""
    batteries = [_battery_from_options(k, v) for k, v in BATTERY_PRODUCTS.items()]
    inverters = [_inverter_from_options(k, v) for k, v in INVERTER_PRODUCTS.items()]
    logger.debug("Loaded catalogue with %d batteries and %d inverters", len(batteries), len(inverters))
    return ProductCatalogue(batteries=batteries, inverters=inverters)


def line_item_from_product(kind: LineItemKind, product) -> QuoteLineItem:
    """Create a single-quantity quote line priced at the product's RRP."""
    return QuoteLineItem(
        kind=LineItemKind(kind),
        product_id=product.id,
        description=f"{product.manufacturer_name} {product.model}",
        quantity=1,
        unit_price=product.rrp,
        cost_price=product.cost_price,
    )


def installation_line_item(installation_cost: float) -> QuoteLineItem:
    return QuoteLineItem(
        kind=LineItemKind.INSTALLATION,
        description=INSTALLATION_DESCRIPTION,
        quantity=1,
        unit_price=installation_cost,
        cost_price=installation_cost * INSTALLATION_COST_FRACTION,
    )


def with_installation_line(line_items: list, installation_cost: float) -> list:
    """Return the lines with an installation line appended if none is present."""
    final_items = list(line_items)
    if not any(item.kind == LineItemKind.INSTALLATION for item in final_items):
        final_items.append(installation_line_item(installation_cost))
    return final_items


def validate_system(line_items: list, catalogue: ProductCatalogue):
    """Check the selected products make a workable battery system.

    Returns:
        (errors, warnings) lists of human-readable messages
    """
    warnings = []
    errors = []

    battery_lines = [item for item in line_items if item.kind == LineItemKind.BATTERY]
    inverter_lines = [item for item in line_items if item.kind == LineItemKind.INVERTER]

    if not battery_lines:
        errors.append("Please add at least one battery")
        return errors, warnings

    batteries = []
    for item in battery_lines:
        if item.product_id is None:
            continue
        try:
            batteries.append((catalogue.get_battery(item.product_id), item.quantity))
        except UnknownProductError:
            warnings.append(
                f"'{item.description}' is no longer in the catalogue and won't count towards savings"
            )

    inverters = []
    for item in inverter_lines:
        if item.product_id is None:
            continue
        try:
            inverters.append((catalogue.get_inverter(item.product_id), item.quantity))
        except UnknownProductError:
            warnings.append(f"'{item.description}' is no longer in the catalogue")

    has_hybrid = bool(batteries) and all(b.includes_inverter for b, _ in batteries)
    if not inverter_lines and not has_hybrid:
        warnings.append(
            "No inverter selected. Add one unless the battery is AC-coupled to an existing inverter."
        )

    if has_hybrid and inverter_lines:
        warnings.append(
            "The selected battery includes a hybrid inverter. "
            "You may not need a separate inverter."
        )

    battery_power = sum(b.power_kw * qty for b, qty in batteries)
    inverter_power = sum(i.power_kw * qty for i, qty in inverters)
    if inverters and not has_hybrid and inverter_power < battery_power:
        warnings.append(
            f"Inverter power ({inverter_power:.1f} kW) is below battery power "
            f"({battery_power:.1f} kW); discharge will be limited"
        )

    return errors, warnings
