"""
Search profiles
---------------
The individual and business duplicate-check screens run the same session
engine; a profile supplies what differs between them: the criteria fields
(in signature order), the lookup endpoint path and the user-facing messages.
"""
from dataclasses import dataclass
from typing import Dict, Tuple

from dupcheck.settings import settings

INDIVIDUAL = "individual"
BUSINESS = "business"

MALFORMED_MESSAGE = "Onverwacht antwoord van de zoekservice."


class UnknownProfileError(ValueError):
    pass


@dataclass(frozen=True)
class SearchProfile:
    name: str
    fields: Tuple[str, ...]
    lookup_path: str
    failure_message: str
    create_label: str


def _profiles() -> Dict[str, SearchProfile]:
    # Paths are read per call so env overrides in tests/deploys apply.
    return {
        INDIVIDUAL: SearchProfile(
            name=INDIVIDUAL,
            fields=("email", "phone", "mobile"),
            lookup_path=settings.INDIVIDUAL_LOOKUP_PATH,
            failure_message="Er is een fout opgetreden bij het zoeken.",
            create_label="Nieuwe klant aanmaken",
        ),
        BUSINESS: SearchProfile(
            name=BUSINESS,
            fields=("companyName", "kvkNumber", "vatNumber", "email", "phone", "mobile"),
            lookup_path=settings.BUSINESS_LOOKUP_PATH,
            failure_message="Er is een fout opgetreden bij het zoeken naar bedrijfsgegevens.",
            create_label="Nieuw bedrijf aanmaken",
        ),
    }


def profile_names() -> Tuple[str, ...]:
    return tuple(_profiles().keys())


def get_profile(name: str) -> SearchProfile:
    profiles = _profiles()
    key = (name or "").strip().lower()
    if key not in profiles:
        raise UnknownProfileError(f"Unknown search profile: {name!r}")
    return profiles[key]
