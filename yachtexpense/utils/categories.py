"""
Expense category vocabulary and the static keyword table.

The vocabulary is shared by the local keyword matcher and the remote vision
prompt. Anything outside VALID_CATEGORIES is rejected wherever it shows up.

Keywords are upper-case and matched as plain substrings of the upper-cased
receipt text, so longer, more specific keywords weigh more than short ones.
"""

from types import MappingProxyType
from typing import Mapping, Tuple


VALID_CATEGORIES: Tuple[str, ...] = (
    "Food",
    "Supermarket",
    "Fuel",
    "Pharmacy",
    "Chandlery",
    "Parking",
    "Tender Fuel",
    "Fly",
    "Crew",
)

# category -> (receipt prompt hint, invoice prompt hint)
CATEGORY_DESCRIPTIONS: Mapping[str, Tuple[str, str]] = MappingProxyType({
    "Food": (
        "Restaurants, bars, pizzerias, cafes, trattorias, bakeries",
        "Food supplies, catering, restaurants",
    ),
    "Supermarket": (
        "Grocery stores (CONAD, COOP, LIDL, ESSELUNGA, etc.)",
        "Grocery supplies",
    ),
    "Fuel": (
        "Gas stations and diesel for the main vessel (ENI, Q8, SHELL, IP, etc.)",
        "Fuel, gas, diesel for main vessel",
    ),
    "Pharmacy": (
        "Pharmacies, drugstores",
        "Medical supplies, pharmacy",
    ),
    "Chandlery": (
        "Marine/nautical supplies, boat equipment",
        "Marine/nautical supplies, boat equipment, hardware",
    ),
    "Parking": (
        "Parking lots, parking meters, garages",
        "Parking fees, garage services",
    ),
    "Tender Fuel": (
        "Fuel specifically for dinghies/tenders",
        "Fuel for dinghies/tenders (small boats)",
    ),
    "Fly": (
        "Airports, airlines, flights",
        "Flights, airline tickets, airport services",
    ),
    "Crew": (
        "Salaries, payroll, crew expenses",
        "Crew services, uniforms, training",
    ),
})

# Flat multi-locale table (IT / FR / DE / ES / EN) loaded once at import.
STATIC_KEYWORDS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "Food": (
        "RISTORANTE", "TRATTORIA", "PIZZERIA", "OSTERIA", "PASTICCERIA",
        "GELATERIA", "PANETTERIA", "PANIFICIO", "ROSTICCERIA", "CAFFETTERIA",
        "COPERTO", "CAPPUCCINO", "ESPRESSO", "PIZZA",
        "RESTAURANT", "BRASSERIE", "BISTROT", "BOULANGERIE", "PATISSERIE",
        "GASTHAUS", "BAECKEREI", "BÄCKEREI", "KONDITOREI", "IMBISS",
        "RESTAURANTE", "CAFETERIA", "TABERNA", "PANADERIA",
        "TAKEAWAY", "BAKERY",
    ),
    "Supermarket": (
        "SUPERMERCATO", "IPERMERCATO", "ALIMENTARI", "SUPERMARCHE",
        "SUPERMARCHÉ", "HYPERMARCHE", "SUPERMARKT", "SUPERMERCADO",
        "SUPERMARKET", "GROCERY",
        "ESSELUNGA", "CONAD", "COOP", "CARREFOUR", "EUROSPIN", "LIDL",
        "DESPAR", "INTERSPAR", "PENNY MARKET", "PAM PANORAMA", "CRAI",
        "MONOPRIX", "FRANPRIX", "INTERMARCHE", "LECLERC", "AUCHAN",
        "EDEKA", "REWE", "MERCADONA",
    ),
    "Fuel": (
        "GASOLIO MARINO", "GASOLIO", "GASOIL", "GAZOLE", "GASOLEO", "DIESEL",
        "CARBURANTE", "CARBURANT", "KRAFTSTOFF", "TANKSTELLE", "GASOLINERA",
        "STAZIONE DI SERVIZIO", "STATION SERVICE", "STATION-SERVICE",
        "DISTRIBUTORE", "RIFORNIMENTO", "BUNKERAGGIO", "BUNKER",
        "AGIP", "ENILIVE", "ENI STATION", "ESSO STATION", "STAZIONE ESSO",
        "SHELL", "TAMOIL", "REPSOL",
        "CEPSA", "GALP", "TOTALENERGIES", "Q8",
        "LITRI", "LITRES", "LITROS",
    ),
    "Pharmacy": (
        "PARAFARMACIA", "FARMACIA", "PARAPHARMACIE", "PHARMACIE", "APOTHEKE",
        "PHARMACY", "CHEMIST", "DROGERIE", "MEDICINALI", "FARMACO",
        "MEDICAMENT", "MEDICAMENTO", "ARZNEIMITTEL", "TICKET SANITARIO",
    ),
    "Chandlery": (
        "SHIP CHANDLER", "SHIPCHANDLER", "CHANDLERY", "ACCASTILLAGE",
        "ARTICOLI NAUTICI", "FORNITURE NAVALI", "EFECTOS NAVALES",
        "BOOTSZUBEHOR", "BOOTSZUBEHÖR", "NAUTICA", "NAUTIQUE", "NAUTICO",
        "FERRAMENTA", "ANTIVEGETATIVA", "ANTIFOULING", "PARABORDI",
        "MOSCHETTONE", "WINCH", "OSCULATI", "PLASTIMO", "LALIZAS",
    ),
    "Parking": (
        "PARCHEGGIO", "AUTORIMESSA", "PARCOMETRO", "PARKING", "PARCMETRE",
        "HORODATEUR", "PARKHAUS", "PARKPLATZ", "PARKSCHEIN", "APARCAMIENTO",
        "ESTACIONAMIENTO", "GARAGE", "SOSTA",
    ),
    "Tender Fuel": (
        "MISCELA", "FUORIBORDO", "OUTBOARD", "HORS-BORD", "AUSSENBORDER",
        "FUERABORDA", "DINGHY", "TENDER", "SENZA PIOMBO", "SANS PLOMB",
        "BLEIFREI", "SIN PLOMO", "UNLEADED", "BENZINA", "PETROL", "SP95",
        "SP98",
    ),
    "Fly": (
        "AEROPORTO", "AEROPORT", "AÉROPORT", "AIRPORT", "FLUGHAFEN",
        "AEROPUERTO", "CARTA D'IMBARCO", "CARTE D'EMBARQUEMENT", "BORDKARTE",
        "TARJETA DE EMBARQUE", "BOARDING PASS", "ITA AIRWAYS", "ALITALIA",
        "RYANAIR", "EASYJET", "VUELING", "LUFTHANSA", "AIR FRANCE",
        "BRITISH AIRWAYS", "VOLOTEA", "WIZZ AIR", "AIRLINES", "AIRWAYS",
        "FLIGHT",
    ),
    "Crew": (
        "BUSTA PAGA", "STIPENDIO", "SALARIO", "EQUIPAGGIO", "PAYROLL",
        "SALARY", "SALAIRE", "GEHALT", "NÓMINA", "UNIFORME",
        "UNIFORMI", "UNIFORM", "CORSO DI FORMAZIONE", "TRAINING",
        "CREW AGENCY",
    ),
})


def is_valid_category(name: object) -> bool:
    """True when name is one of the enumerated categories (exact match)."""
    return isinstance(name, str) and name in VALID_CATEGORIES
