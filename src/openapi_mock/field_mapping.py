"""
Field-name and format mappings for realistic fake data.

``FIELD_NAME_MAPPING`` keys are normalized names (lower-case, with ``_`` and
``-`` removed) so ``first_name``, ``firstName`` and ``first-name`` share an
entry. ``FIELD_SUFFIX_MAPPING`` covers compound names such as ``ownerEmail``
or ``avatarUrl`` by their last word.
"""

from __future__ import annotations

import base64
import re
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from openapi_mock.data_generators import DataGenerator

# Fixed reference point so generated dates depend only on the random state
ANCHOR = datetime(2025, 1, 1, tzinfo=UTC)

Producer = Callable[["DataGenerator"], Any]


def normalize_field_name(name: str) -> str:
    return name.lower().replace("_", "").replace("-", "")


def split_field_name(name: str) -> list[str]:
    """Split camelCase, snake_case and kebab-case names into lower-case words."""
    spaced = re.sub(r"(?<=[a-z0-9])([A-Z])", r" \1", name)
    return [w.lower() for w in re.split(r"[\s_\-]+", spaced) if w]


# =============================================================================
# Date helpers
# =============================================================================


def _iso(dt: datetime) -> str:
    return dt.isoformat(timespec="seconds").replace("+00:00", "Z")


def recent_datetime(g: DataGenerator) -> datetime:
    return ANCHOR - timedelta(seconds=g.rng.randint(60, 30 * 86400))


def past_datetime(g: DataGenerator) -> datetime:
    return ANCHOR - timedelta(seconds=g.rng.randint(86400, 730 * 86400))


def future_datetime(g: DataGenerator) -> datetime:
    return ANCHOR + timedelta(seconds=g.rng.randint(86400, 365 * 86400))


def birth_date(g: DataGenerator) -> str:
    return (ANCHOR - timedelta(days=g.rng.randint(18 * 365, 80 * 365))).date().isoformat()


# =============================================================================
# Format synthesizers
# =============================================================================


TYPE_FORMAT_MAPPING: dict[str, Producer] = {
    "email": lambda g: g.faker.email(),
    "idn-email": lambda g: g.faker.email(),
    "uuid": lambda g: g.faker.uuid4(),
    "date": lambda g: recent_datetime(g).date().isoformat(),
    "date-time": lambda g: _iso(recent_datetime(g)),
    "time": lambda g: recent_datetime(g).strftime("%H:%M:%S"),
    "duration": lambda g: f"PT{g.rng.randint(1, 59)}M",
    "uri": lambda g: g.faker.url(),
    "url": lambda g: g.faker.url(),
    "iri": lambda g: g.faker.url(),
    "uri-reference": lambda g: "/" + g.faker.uri_path(),
    "hostname": lambda g: g.faker.hostname(),
    "idn-hostname": lambda g: g.faker.hostname(),
    "ipv4": lambda g: g.faker.ipv4(),
    "ipv6": lambda g: g.faker.ipv6(),
    "password": lambda g: g.faker.password(length=12),
    "byte": lambda g: base64.b64encode(" ".join(g.faker.words(3)).encode()).decode(),
    "binary": lambda g: g.faker.sha1(),
    "phone": lambda g: g.faker.phone_number(),
}


# =============================================================================
# Field names
# =============================================================================


def _price(g: DataGenerator) -> float:
    return round(g.rng.uniform(1, 1000), 2)


def _quantity(g: DataGenerator) -> int:
    return g.rng.randint(1, 100)


_FIELD_GROUPS: list[tuple[tuple[str, ...], Producer]] = [
    # Personal information
    (("name", "fullname"), lambda g: g.faker.name()),
    (("firstname", "givenname"), lambda g: g.faker.first_name()),
    (("lastname", "surname", "familyname"), lambda g: g.faker.last_name()),
    (("middlename",), lambda g: g.faker.first_name()),
    (("email", "emailaddress"), lambda g: g.faker.email()),
    (("phone", "phonenumber", "mobile"), lambda g: g.faker.phone_number()),
    (("username", "login"), lambda g: g.faker.user_name()),
    (("avatar", "avatarurl"), lambda g: g.faker.image_url()),
    (("bio", "biography"), lambda g: g.faker.paragraph()),
    # Location
    (("address", "streetaddress"), lambda g: g.faker.street_address()),
    (("street",), lambda g: g.faker.street_name()),
    (("city",), lambda g: g.faker.city()),
    (("state",), lambda g: g.faker.state()),
    (("country",), lambda g: g.faker.country()),
    (("countrycode",), lambda g: g.faker.country_code()),
    (("zip", "zipcode", "postalcode", "postcode"), lambda g: g.faker.postcode()),
    (("latitude", "lat"), lambda g: float(g.faker.latitude())),
    (("longitude", "lng", "lon"), lambda g: float(g.faker.longitude())),
    # Content
    (("title", "headline", "comment", "message", "note"), lambda g: g.faker.sentence()),
    (("description", "summary", "text", "notes"), lambda g: g.faker.paragraph()),
    (("content", "body"), lambda g: "\n\n".join(g.faker.paragraphs(nb=3))),
    # Media & links
    (
        ("image", "imageurl", "photo", "photourl", "picture", "thumbnail", "thumbnailurl"),
        lambda g: g.faker.image_url(),
    ),
    (("cover", "coverimage"), lambda g: g.faker.image_url()),
    (("url", "website", "websiteurl", "link", "href", "homepage"), lambda g: g.faker.url()),
    # Commerce
    (("price", "amount", "cost", "total", "subtotal"), _price),
    (("quantity", "qty", "count"), _quantity),
    (("product", "productname"), lambda g: g.faker.catch_phrase()),
    (("category", "department"), lambda g: g.faker.word().capitalize()),
    (("sku",), lambda g: g.faker.bothify("????####").upper()),
    (("barcode", "isbn"), lambda g: g.faker.isbn13()),
    # Dates and times
    (("date",), lambda g: recent_datetime(g).date().isoformat()),
    (("datetime", "timestamp"), lambda g: _iso(recent_datetime(g))),
    (("createdat", "createddate", "publishedat"), lambda g: _iso(past_datetime(g))),
    (
        ("updatedat", "updateddate", "modifiedat", "deletedat"),
        lambda g: _iso(recent_datetime(g)),
    ),
    (("expiresat", "expiry"), lambda g: _iso(future_datetime(g))),
    (("startdate",), lambda g: past_datetime(g).date().isoformat()),
    (("enddate",), lambda g: future_datetime(g).date().isoformat()),
    (("birthdate", "birthday", "dob", "dateofbirth"), birth_date),
    # Identifiers
    (("id",), lambda g: g.faker.uuid4()),
    (("uuid", "guid"), lambda g: g.faker.uuid4()),
    (("slug",), lambda g: g.faker.slug()),
    (("token", "secret"), lambda g: g.faker.pystr(min_chars=32, max_chars=32)),
    (("code",), lambda g: g.faker.bothify("??##??").upper()),
    (("key", "apikey"), lambda g: g.faker.pystr(min_chars=16, max_chars=16)),
    (("hash", "checksum"), lambda g: g.faker.sha1()),
    (("password",), lambda g: g.faker.password(length=12)),
    # Network
    (("ip", "ipaddress", "ipv4"), lambda g: g.faker.ipv4()),
    (("ipv6",), lambda g: g.faker.ipv6()),
    (("mac", "macaddress"), lambda g: g.faker.mac_address()),
    (("hostname", "domain", "domainname"), lambda g: g.faker.domain_name()),
    (("port",), lambda g: g.faker.port_number()),
    (("useragent",), lambda g: g.faker.user_agent()),
    # Company
    (("company", "companyname", "organization", "organisation"), lambda g: g.faker.company()),
    (("jobtitle", "job", "position"), lambda g: g.faker.job()),
    # Misc
    (("color", "colour"), lambda g: g.faker.color_name()),
    (("hexcolor",), lambda g: g.faker.hex_color()),
    (("version",), lambda g: f"{g.rng.randint(0, 9)}.{g.rng.randint(0, 20)}.{g.rng.randint(0, 50)}"),
    (("language", "lang"), lambda g: g.rng.choice(["en", "es", "fr", "de", "it", "pt", "ja"])),
    (("locale",), lambda g: g.rng.choice(["en-US", "en-GB", "es-ES", "fr-FR", "de-DE"])),
    (("currency", "currencycode"), lambda g: g.faker.currency_code()),
    (("rating",), lambda g: round(g.rng.uniform(0, 5), 1)),
    (("score", "percentage", "percent"), lambda g: g.rng.randint(0, 100)),
    (("age",), lambda g: g.rng.randint(18, 80)),
    (("priority",), lambda g: g.rng.randint(0, 5)),
    (("rank", "order", "index", "position"), lambda g: g.rng.randint(1, 100)),
    (("status",), lambda g: g.rng.choice(["active", "inactive", "pending", "completed"])),
    (("active", "enabled", "visible", "published", "verified", "confirmed"), lambda g: True),
    (("disabled", "hidden", "deleted", "archived"), lambda g: False),
]

FIELD_NAME_MAPPING: dict[str, Producer] = {
    name: producer for names, producer in _FIELD_GROUPS for name in names
}

FIELD_SUFFIX_MAPPING: dict[str, Producer] = {
    "email": FIELD_NAME_MAPPING["email"],
    "url": FIELD_NAME_MAPPING["url"],
    "uri": FIELD_NAME_MAPPING["url"],
    "id": lambda g: g.faker.uuid4(),
    "uuid": FIELD_NAME_MAPPING["uuid"],
    "price": _price,
    "amount": _price,
    "total": _price,
    "count": _quantity,
    "phone": FIELD_NAME_MAPPING["phone"],
    "date": FIELD_NAME_MAPPING["date"],
    "city": FIELD_NAME_MAPPING["city"],
    "country": FIELD_NAME_MAPPING["country"],
    "username": FIELD_NAME_MAPPING["username"],
}


def find_field_producer(field_name: str) -> Producer | None:
    """Look up a producer for a field name.

    Exact (normalized) matches win; otherwise the last word of a compound
    name is tried against the suffix table. A bare ``id`` only matches
    exactly, never as a suffix.
    """
    producer = FIELD_NAME_MAPPING.get(normalize_field_name(field_name))
    if producer is not None:
        return producer
    words = split_field_name(field_name)
    if len(words) > 1:
        return FIELD_SUFFIX_MAPPING.get(words[-1])
    return None
