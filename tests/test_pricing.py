"""Tests for quote pricing and savings projections."""

import pytest

import pricing as pricing_engine

from models import LineItemKind, QuoteLineItem, TariffInfo
from pricing import (
    calculate_annual_savings,
    calculate_battery_capacity,
    calculate_ev_savings,
    calculate_line_item_totals,
    calculate_payback_years,
    calculate_roi_projections,
    compute_quote_pricing,
    round_currency,
    round_years,
    validate_tariff,
)


def _line(kind, unit_price, cost_price, quantity=1, product_id=None):
    return QuoteLineItem(
        kind=kind,
        product_id=product_id,
        description=f"{kind.value} line",
        quantity=quantity,
        unit_price=unit_price,
        cost_price=cost_price,
    )


class TestRounding:

    def test_half_rounds_up(self):
        assert round_currency(2.5) == 3
        assert round_currency(408.8) == 409
        assert round_currency(131.04) == 131

    def test_negative_half_rounds_towards_positive(self):
        assert round_currency(-2.5) == -2

    def test_years_to_one_decimal(self):
        assert round_years(17.612) == 17.6
        assert round_years(3.25) == 3.3


class TestLineItemTotals:

    def test_products_and_installation(self, battery_line):
        totals = calculate_line_item_totals([battery_line], 1200)

        assert totals["product_cost"] == 4000
        assert totals["product_price"] == 6000
        assert totals["installation_cost"] == 1200
        assert totals["subtotal"] == 7200

    def test_quantity_multiplies(self):
        totals = calculate_line_item_totals([_line(LineItemKind.OTHER, 50, 20, quantity=3)], 0)
        assert totals["product_price"] == 150
        assert totals["product_cost"] == 60

    def test_installation_lines_are_not_double_counted(self, battery_line):
        install = _line(LineItemKind.INSTALLATION, 1200, 720)
        totals = calculate_line_item_totals([battery_line, install], 1200)
        assert totals["subtotal"] == 7200

    def test_empty(self):
        totals = calculate_line_item_totals([], 0)
        assert totals["subtotal"] == 0


class TestBatteryCapacity:

    def test_sums_quantities(self, catalogue):
        items = [_line(LineItemKind.BATTERY, 6000, 4000, quantity=2, product_id="bat-test-10")]
        assert calculate_battery_capacity(items, catalogue) == 20

    def test_unknown_product_counts_zero(self, catalogue):
        items = [_line(LineItemKind.BATTERY, 6000, 4000, product_id="bat-gone")]
        assert calculate_battery_capacity(items, catalogue) == 0

    def test_ignores_non_battery_lines(self, catalogue):
        items = [_line(LineItemKind.INVERTER, 800, 500, product_id="bat-test-10")]
        assert calculate_battery_capacity(items, catalogue) == 0


class TestAnnualSavings:

    def test_flat_tariff_load_shift(self, flat_tariff, customer):
        savings = calculate_annual_savings(10, flat_tariff, customer)

        assert savings["load_shift_savings"] == pytest.approx(408.8)
        assert savings["export_revenue"] == 0
        assert savings["ev_tax_savings"] == 0
        assert savings["annual_savings"] == pytest.approx(408.8)

    def test_time_of_use_load_shift(self, tou_tariff, customer):
        savings = calculate_annual_savings(10, tou_tariff, customer)
        assert savings["load_shift_savings"] == pytest.approx(657.0)

    def test_time_of_use_missing_rate_uses_flat_formula(self, customer):
        tariff = TariffInfo(import_rate=0.28, export_rate=0.15, has_time_of_use=True, peak_rate=0.35)
        savings = calculate_annual_savings(10, tariff, customer)
        assert savings["load_shift_savings"] == pytest.approx(408.8)

    def test_existing_solar(self, flat_tariff, customer):
        customer = customer.model_copy(update={"existing_solar": True, "solar_capacity_kwp": 4})
        savings = calculate_annual_savings(10, flat_tariff, customer)

        assert savings["export_revenue"] == pytest.approx(131.04)
        assert savings["annual_savings"] == pytest.approx(408.8 + 131.04)

    def test_solar_capped_by_battery_size(self, flat_tariff, customer):
        customer = customer.model_copy(update={"existing_solar": True, "solar_capacity_kwp": 20})
        savings = calculate_annual_savings(1, flat_tariff, customer)
        # min(7200, 365) kWh stored
        assert savings["export_revenue"] == pytest.approx(365 * 0.7 * 0.13)

    def test_solar_without_size_is_ignored(self, flat_tariff, customer):
        customer = customer.model_copy(update={"existing_solar": True})
        savings = calculate_annual_savings(10, flat_tariff, customer)
        assert savings["export_revenue"] == 0

    def test_ev(self, flat_tariff, customer):
        customer = customer.model_copy(update={"has_ev": True, "ev_mileage_per_year": 8000})
        savings = calculate_annual_savings(10, flat_tariff, customer)

        assert savings["ev_tax_savings"] == pytest.approx(528)
        assert savings["annual_savings"] == pytest.approx(408.8 + 528)

    def test_ev_charges_at_off_peak_rate(self, tou_tariff, customer):
        customer = customer.model_copy(update={"has_ev": True, "ev_mileage_per_year": 8000})
        assert calculate_ev_savings(tou_tariff, customer) == pytest.approx(8000 * (0.15 - 0.03))

    def test_no_battery_means_no_savings(self, flat_tariff, customer):
        customer = customer.model_copy(update={"has_ev": True, "ev_mileage_per_year": 8000})
        savings = calculate_annual_savings(0, flat_tariff, customer)
        assert savings == {
            "load_shift_savings": 0.0,
            "export_revenue": 0.0,
            "ev_tax_savings": 0.0,
            "annual_savings": 0.0,
        }


class TestPayback:

    def test_payback(self):
        assert calculate_payback_years(7200, 408.8) == 17.6

    def test_zero_savings(self):
        assert calculate_payback_years(7200, 0) == 0.0


class TestProjections:

    def test_ten_years_by_default(self):
        projections = calculate_roi_projections(408.8, 0, 0)
        assert [p.year for p in projections] == list(range(1, 11))

    def test_first_years(self):
        first, second = calculate_roi_projections(408.8, 0, 0)[:2]

        assert first.savings == 409
        assert first.cumulative_savings == 409
        assert second.savings == 421
        assert second.cumulative_savings == 842

    def test_ev_reported_but_not_summed(self):
        first = calculate_roi_projections(400, 100, 528)[0]

        assert first.savings == 500
        assert first.ev_tax_savings == 528
        assert first.export_revenue == 100
        assert first.load_shift_savings == 400

    def test_custom_horizon(self):
        projections = calculate_roi_projections(100, 0, 0, years=3, inflation=0.0)
        assert [p.cumulative_savings for p in projections] == [100, 200, 300]


class TestComputeQuotePricing:

    def test_flat_tariff_quote(self, battery_line, flat_tariff, customer, catalogue):
        pricing = compute_quote_pricing([battery_line], 1200, flat_tariff, customer, catalogue)

        assert pricing.subtotal == 7200
        assert pricing.vat_amount == 0
        assert pricing.total == 7200
        assert pricing.deposit == 1800
        assert pricing.total_cost == pytest.approx(4720)
        assert pricing.margin == pytest.approx(2480)
        assert pricing.margin_percentage == pytest.approx(2480 / 7200 * 100)
        assert pricing.battery_capacity_kwh == 10
        assert pricing.load_shift_savings == 409
        assert pricing.annual_savings == 409
        assert pricing.payback_years == 17.6
        assert len(pricing.roi_projections) == 10

    def test_time_of_use_beats_flat(self, battery_line, flat_tariff, tou_tariff, customer, catalogue):
        flat = compute_quote_pricing([battery_line], 1200, flat_tariff, customer, catalogue)
        tou = compute_quote_pricing([battery_line], 1200, tou_tariff, customer, catalogue)

        assert tou.load_shift_savings == 657
        assert tou.annual_savings > flat.annual_savings

    def test_all_components_add_up(self, battery_line, flat_tariff, customer, catalogue):
        customer = customer.model_copy(update={
            "existing_solar": True,
            "solar_capacity_kwp": 4,
            "has_ev": True,
            "ev_mileage_per_year": 8000,
        })
        pricing = compute_quote_pricing([battery_line], 1200, flat_tariff, customer, catalogue)

        assert pricing.export_revenue == 131
        assert pricing.ev_tax_savings == 528
        # 408.8 + 131.04 + 528 rounded once
        assert pricing.annual_savings == 1068

    def test_no_battery(self, flat_tariff, customer, catalogue):
        pricing = compute_quote_pricing([], 1200, flat_tariff, customer, catalogue)

        assert pricing.total == 1200
        assert pricing.annual_savings == 0
        assert pricing.payback_years == 0.0
        assert all(p.savings == 0 for p in pricing.roi_projections)

    def test_unresolved_battery_prices_but_saves_nothing(self, flat_tariff, customer, catalogue):
        item = _line(LineItemKind.BATTERY, 5000, 3000, product_id="bat-retired")
        pricing = compute_quote_pricing([item], 1000, flat_tariff, customer, catalogue)

        assert pricing.subtotal == 6000
        assert pricing.battery_capacity_kwh == 0
        assert pricing.annual_savings == 0

    def test_zero_total_margin_percentage(self, flat_tariff, customer, catalogue):
        pricing = compute_quote_pricing([], 0, flat_tariff, customer, catalogue)
        assert pricing.margin_percentage == 0

    def test_inputs_unchanged_and_repeatable(self, battery_line, flat_tariff, customer, catalogue):
        items = [battery_line]
        before = [item.model_dump() for item in items]

        first = compute_quote_pricing(items, 1200, flat_tariff, customer, catalogue)
        second = compute_quote_pricing(items, 1200, flat_tariff, customer, catalogue)

        assert first == second
        assert [item.model_dump() for item in items] == before


    def test_flat_export_ignores_time_of_use_rates(self, battery_line, customer, catalogue):
        customer = customer.model_copy(update={"existing_solar": True, "solar_capacity_kwp": 4})
        cheap = TariffInfo(import_rate=0.28, export_rate=0.15, peak_rate=0.50, off_peak_rate=0.05)
        dear = TariffInfo(import_rate=0.28, export_rate=0.15, peak_rate=0.30, off_peak_rate=0.20)

        first = compute_quote_pricing([battery_line], 1200, cheap, customer, catalogue)
        second = compute_quote_pricing([battery_line], 1200, dear, customer, catalogue)

        assert first.export_revenue == second.export_revenue == 131
        assert first.annual_savings == second.annual_savings

    def test_vat_rate_drives_vat_amount(self, battery_line, flat_tariff, customer, catalogue, monkeypatch):
        monkeypatch.setattr(pricing_engine, "VAT_RATE", 0.2)
        result = compute_quote_pricing([battery_line], 1200, flat_tariff, customer, catalogue)

        assert result.vat_rate == 0.2
        assert result.vat_amount == pytest.approx(7200 * 0.2)
        assert result.total == pytest.approx(result.subtotal + result.vat_amount)


class TestValidateTariff:

    def test_valid_flat(self, flat_tariff):
        assert validate_tariff(flat_tariff) == ([], [])

    def test_valid_time_of_use(self, tou_tariff):
        assert validate_tariff(tou_tariff) == ([], [])

    def test_missing_rate_warns(self):
        tariff = TariffInfo(import_rate=0.28, export_rate=0.15, has_time_of_use=True,
                            off_peak_rate=0.1, peak_hours_start="16:00", peak_hours_end="19:00")
        errors, warnings = validate_tariff(tariff)
        assert errors == []
        assert len(warnings) == 1

    def test_inverted_rates_warn(self, tou_tariff):
        tariff = tou_tariff.model_copy(update={"peak_rate": 0.05})
        errors, warnings = validate_tariff(tariff)
        assert any("below off-peak" in w for w in warnings)

    def test_bad_time_is_an_error(self, tou_tariff):
        tariff = tou_tariff.model_copy(update={"peak_hours_start": "4pm"})
        errors, _ = validate_tariff(tariff)
        assert errors == ["Peak start time '4pm' must be in HH:MM format"]

    def test_export_above_import_warns(self):
        tariff = TariffInfo(import_rate=0.10, export_rate=0.15)
        _, warnings = validate_tariff(tariff)
        assert len(warnings) == 1
