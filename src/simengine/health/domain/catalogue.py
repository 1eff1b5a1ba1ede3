"""
Default Service Catalogue
=========================

Services seeded into a new game, by scenario type.
"""

from typing import List, NamedTuple


class CatalogueEntry(NamedTuple):
    name: str
    type: str
    criticality: int
    description: str


BASE_SERVICES = [
    CatalogueEntry("Authentication Service", "service", 10, "User authentication and authorization"),
    CatalogueEntry("Primary Database", "database", 10, "Main application database"),
    CatalogueEntry("Web Application", "application", 9, "Customer-facing web application"),
    CatalogueEntry("API Gateway", "service", 9, "Central API routing and management"),
    CatalogueEntry("Email Service", "service", 6, "Email notification system"),
    CatalogueEntry("Backup System", "server", 7, "Data backup and recovery"),
    CatalogueEntry("Monitoring Service", "service", 7, "System monitoring and alerting"),
    CatalogueEntry("CDN", "network", 5, "Content delivery network"),
]

SCENARIO_SERVICES = [
    (("healthcare",), [
        CatalogueEntry("Patient Records System", "application", 10, "Electronic health records"),
        CatalogueEntry("Medical Imaging Server", "server", 8, "DICOM imaging storage"),
        CatalogueEntry("Pharmacy System", "application", 8, "Prescription management"),
        CatalogueEntry("Lab Results Service", "service", 8, "Laboratory information system"),
    ]),
    (("finance", "bank"), [
        CatalogueEntry("Transaction Processing", "service", 10, "Core banking transactions"),
        CatalogueEntry("Payment Gateway", "service", 10, "Payment processing system"),
        CatalogueEntry("Fraud Detection", "service", 9, "Real-time fraud monitoring"),
        CatalogueEntry("Customer Portal", "application", 8, "Online banking interface"),
    ]),
    (("retail", "ecommerce"), [
        CatalogueEntry("Inventory System", "application", 9, "Stock management system"),
        CatalogueEntry("Shopping Cart", "service", 9, "E-commerce cart service"),
        CatalogueEntry("Payment Processing", "service", 10, "Order payment handling"),
        CatalogueEntry("Shipping Integration", "service", 7, "Logistics and delivery tracking"),
    ]),
]


def services_for_scenario(scenario_type: str) -> List[CatalogueEntry]:
    """Base catalogue plus the extras of the first matching scenario family."""
    scenario = (scenario_type or "").lower()
    for keywords, extras in SCENARIO_SERVICES:
        if any(k in scenario for k in keywords):
            return BASE_SERVICES + extras
    return list(BASE_SERVICES)
