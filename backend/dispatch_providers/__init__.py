from .geolocation import FixedGeolocationProvider
from .hospitals import LONDON_HOSPITALS, OverpassHospitalDirectory, StaticHospitalDirectory
from .routing import OsrmRoutingProvider
from .scenarios import DEFAULT_CONTACTS, EmergencyContact, EmergencyScenario, ScenarioCatalog

__all__ = [
    "DEFAULT_CONTACTS",
    "LONDON_HOSPITALS",
    "EmergencyContact",
    "EmergencyScenario",
    "FixedGeolocationProvider",
    "OsrmRoutingProvider",
    "OverpassHospitalDirectory",
    "ScenarioCatalog",
    "StaticHospitalDirectory",
]
