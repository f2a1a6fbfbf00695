"""Constants for battery storage quote pricing and ROI projections."""

DAYS_PER_YEAR = 365

# VAT on residential battery storage is zero-rated in the UK
VAT_RATE = 0.0

# Deposit taken on acceptance, as a fraction of the quote total
DEPOSIT_FRACTION = 0.25

# Share of installation price treated as hard cost when no breakdown is given
INSTALLATION_COST_FRACTION = 0.6

# Time-of-use load shifting
DAILY_CYCLES = 1
USABLE_DEPTH_OF_DISCHARGE = 0.9
ROUND_TRIP_EFFICIENCY = 0.8

# Flat tariff load shifting: 80% usable, displacing half a day's import
FLAT_USABLE_FRACTION = 0.8
FLAT_DISPLACED_FRACTION = 0.5

# Existing solar: UK average specific yield and battery capture of exported energy
UK_SPECIFIC_YIELD_KWH_PER_KWP = 900
STORED_EXPORT_FRACTION = 0.4
SELF_CONSUMED_FRACTION = 0.7

# EV charging vs petrol
EV_EFFICIENCY_KWH_PER_MILE = 0.3
PETROL_COST_PER_MILE = 0.15

# ROI projection
PROJECTION_YEARS = 10
ANNUAL_INFLATION = 0.03

QUOTE_REFERENCE_PREFIX = "QT"

INSTALLATION_DESCRIPTION = "Professional Installation & Commissioning"

PROPERTY_TYPES = {
    "house": "House",
    "flat": "Flat",
    "bungalow": "Bungalow",
    "commercial": "Commercial",
}

QUOTE_STATUS_LABELS = {
    "draft": "Draft",
    "sent": "Sent",
    "viewed": "Viewed",
    "accepted": "Accepted",
    "rejected": "Rejected",
    "expired": "Expired",
}

TERMS_AND_CONDITIONS = [
    "This quotation is valid for {validity_days} days from the date of issue.",
    "A deposit is required to secure your installation date.",
    "Final balance is due upon successful commissioning.",
    "All installations comply with MCS and BS 7671 standards.",
    "Warranty terms as per manufacturer specifications.",
]
