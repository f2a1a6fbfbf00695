import pytest

from equipment import ProductCatalogue, default_catalogue
from models import BatteryProduct, CustomerProfile, InverterProduct, LineItemKind, QuoteLineItem, TariffInfo
from settings import get_settings


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def test_battery():
    return BatteryProduct(
        id="bat-test-10",
        manufacturer_id="mfr-test",
        manufacturer_name="Acme",
        model="Cell 10",
        capacity_kwh=10,
        power_kw=5,
        cost_price=4000,
        rrp=6000,
    )


@pytest.fixture
def test_inverter():
    return InverterProduct(
        id="inv-test-3",
        manufacturer_id="mfr-test",
        manufacturer_name="Acme",
        model="Inverter 3kW",
        power_kw=3.0,
        cost_price=500,
        rrp=800,
    )


@pytest.fixture
def catalogue(test_battery, test_inverter):
    return ProductCatalogue(batteries=[test_battery], inverters=[test_inverter])


@pytest.fixture
def full_catalogue():
    return default_catalogue()


@pytest.fixture
def battery_line():
    return QuoteLineItem(
        kind=LineItemKind.BATTERY,
        product_id="bat-test-10",
        description="Acme Cell 10",
        quantity=1,
        unit_price=6000,
        cost_price=4000,
    )


@pytest.fixture
def flat_tariff():
    return TariffInfo(import_rate=0.28, export_rate=0.15, has_time_of_use=False)


@pytest.fixture
def tou_tariff():
    return TariffInfo(
        import_rate=0.28,
        export_rate=0.15,
        has_time_of_use=True,
        peak_rate=0.35,
        off_peak_rate=0.10,
        peak_hours_start="16:00",
        peak_hours_end="19:00",
    )


@pytest.fixture
def customer():
    return CustomerProfile(
        name="Jane Doe",
        email="jane@example.com",
        address="1 Test Road, Bristol",
        postcode="BS1 4AB",
        annual_consumption_kwh=4000,
    )
