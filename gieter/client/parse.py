"""
Listing page parser - turns a Gîtes de France listing page into a Listing.

Extraction is pattern based: the page exposes its key facts through stable
CSS class names, a JSON-LD block and a data layer script.
"""
import html as html_lib
import json
import logging
import re
from typing import Optional

from pydantic import ValidationError

from ..errors import ListingParseError
from ..models.listing import (
    AggregateRating,
    Capacity,
    Equipment,
    Host,
    Listing,
    Location,
    OwnerReply,
    Price,
    Review,
    ReviewCriteria,
)


logger = logging.getLogger(__name__)

SITE_URL = "https://www.gites-de-france.com"

FLAGS = re.IGNORECASE | re.DOTALL

RATING_RE = re.compile(r"([\d.]+)\s*/\s*5")
REVIEW_START_RE = re.compile(r'<(?:div|article|li)[^>]*class="g2f-accommodationReview(?:\s[^"]*)?"', FLAGS)


def strip_tags(fragment: str) -> str:
    """Plain text of an HTML fragment, keeping <br> as newlines."""
    text = re.sub(r"<br\s*/?>", "\n", fragment, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    text = html_lib.unescape(text)
    text = re.sub(r"[ \t\r\f\v]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def _block(doc: str, css_class: str, tag: str = r"\w+") -> str:
    """Inner HTML of the first element carrying ``css_class`` (non-nested match)."""
    pattern = (
        rf'<({tag})[^>]*class="[^"]*\b{re.escape(css_class)}\b[^"]*"[^>]*>(.*?)</\1>'
    )
    match = re.search(pattern, doc, FLAGS)
    return match.group(2) if match else ""


def _segment(doc: str, css_class: str, length: int = 20000) -> str:
    """Raw HTML from the first element carrying ``css_class`` onwards."""
    match = re.search(rf'class="[^"]*\b{re.escape(css_class)}\b', doc, FLAGS)
    return doc[match.start():match.start() + length] if match else ""


def _ld_json(doc: str) -> str:
    match = re.search(r'<script[^>]*type="application/ld\+json"[^>]*>(.*?)</script>', doc, FLAGS)
    return match.group(1) if match else ""


def _float(value: Optional[str]) -> Optional[float]:
    try:
        return float(value) if value else None
    except ValueError:
        return None


def _int(value: Optional[str]) -> int:
    match = re.search(r"\d+", value or "")
    return int(match.group(0)) if match else 0


def parse_ref(doc: str) -> str:
    match = re.search(r"Ref\s*:\s*(\S+)", strip_tags(_block(doc, "g2f-accommodationHeader-detail")))
    return match.group(1) if match else ""


def parse_quality(doc: str) -> int:
    """Number of épis, one <li> each."""
    return len(re.findall(r"<li\b", _block(doc, "g2f-levelEpis", tag="ul|div"), FLAGS))


def _ellipsis_text(fragment: str) -> str:
    match = re.search(r"<p[^>]*>(.*?)</p>", fragment, FLAGS)
    return strip_tags(match.group(1)) if match else ""


def parse_summary(doc: str) -> str:
    return _ellipsis_text(_segment(doc, "g2f-js-ellipsis-container", length=10000))


def parse_description(doc: str) -> str:
    intro = _segment(doc, "g2f-accommodationProperty-fiscalIntro", length=40000)
    if not intro:
        return ""
    return _ellipsis_text(_segment(intro[1:], "g2f-js-ellipsis-container", length=20000))


def parse_url(doc: str) -> str:
    match = re.search(r'<link[^>]*rel="canonical"[^>]*href="([^"]+)"', doc, FLAGS)
    return html_lib.unescape(match.group(1)) if match else ""


def parse_photos(doc: str) -> list[str]:
    """Gallery photo URLs, preferring the largest srcset entry."""
    urls: list[str] = []
    for item in re.findall(r'class="[^"]*g2f-gallery-photos-img[^"]*"[^>]*>(.*?)</li>', doc, FLAGS):
        img = re.search(r"<img[^>]*>", item, FLAGS)
        if not img:
            continue
        srcset = re.search(r'srcset="([^"]*)"', img.group(0))
        src = re.search(r'\ssrc="([^"]*)"', img.group(0))
        url = ""
        if srcset and srcset.group(1).strip():
            url = srcset.group(1).split(",")[-1].strip().split()[0]
        elif src:
            url = src.group(1)
        if url.startswith("/"):
            url = SITE_URL + url
        if url and url not in urls:
            urls.append(url)
    return urls


def parse_location(doc: str) -> Location:
    # Detail line: "Ref : X | in CITY - Department"; split on the last " - "
    detail = re.sub(r"\s+", " ", strip_tags(_block(doc, "g2f-accommodationHeader-detail")))
    in_match = re.search(r"\bin\s+(.+)", detail)
    after_in = in_match.group(1) if in_match else ""
    city, _, department = after_in.rpartition(" - ")
    if not city:
        city, department = after_in, ""

    region = ""
    region_match = re.search(r'"lodgeRegion"\s*:\s*("(?:[^"\\]|\\.)*")', doc)
    if region_match:
        try:
            region = json.loads(region_match.group(1))
        except json.JSONDecodeError:
            logger.debug(f"Unreadable lodgeRegion: {region_match.group(1)[:40]}")

    map_tag = re.search(r'<[^>]*id="map-accommodation"[^>]*>', doc, FLAGS)
    lat = lng = None
    if map_tag:
        lat = _float(_attr(map_tag.group(0), "data-lat"))
        lng = _float(_attr(map_tag.group(0), "data-lng"))

    return Location(
        city=city.strip(),
        department=department.strip(),
        region=region,
        latitude=lat,
        longitude=lng,
    )


def _attr(tag: str, name: str) -> Optional[str]:
    match = re.search(rf'\b{re.escape(name)}="([^"]*)"', tag)
    return match.group(1) if match else None


def parse_capacity(doc: str) -> Capacity:
    items = _segment(doc, "g2f-accommodationHeader-capacity", length=8000)

    def value_of(css_class: str) -> str:
        li = re.search(
            rf'<li[^>]*class="[^"]*\b{css_class}\b[^"]*"[^>]*>(.*?)</li>', items, FLAGS
        )
        if not li:
            return ""
        return strip_tags(_block(li.group(1), "capacity-value"))

    surface = value_of("surface")
    category = value_of("house")
    return Capacity(
        people=_int(value_of("people")),
        bedrooms=_int(value_of("room")),
        surface_m2=float(_int(surface)) if surface and _int(surface) else None,
        wifi=bool(re.search(r'<svg[^>]*class="[^"]*\bwifi\b', items, FLAGS)),
        pets_accepted=not re.search(r'class="[^"]*\bno-pets\b', items, FLAGS),
        category=category or None,
    )


def parse_equipment(doc: str) -> Equipment:
    sections = re.split(
        r'(?=<[^>]*class="(?:[^"]*\s)?g2f-accommodationServices[\s"])',
        _segment(doc, "g2f-accommodationServices", length=60000),
    )
    found: dict[str, list[str]] = {"indoor": [], "outdoor": [], "services": []}

    for section in sections:
        heading_match = re.search(r"<h3[^>]*>(.*?)</h3>", section, FLAGS)
        if not heading_match:
            continue
        heading = strip_tags(heading_match.group(1)).lower()
        items = [
            strip_tags(s)
            for s in re.findall(r"<li[^>]*>\s*(?:<[^>]+>\s*)*?<span[^>]*>(.*?)</span>", section, FLAGS)
        ]
        for name in found:
            if name in heading and not found[name]:
                found[name] = [i for i in items if i]

    return Equipment(**found)


def parse_price_includes(doc: str) -> list[str]:
    line = _block(doc, "g2f-contactCard-line")
    if not line:
        return []
    text = strip_tags(re.sub(r"<strong[^>]*>.*?</strong>", "", line, flags=FLAGS))

    # Bullet-style lines, otherwise comma separated
    if "\n" in text or text.startswith("- "):
        parts = [re.sub(r"^\s*-\s*", "", s) for s in text.split("\n")]
    else:
        parts = text.split(",")
    return [p.strip() for p in parts if p.strip()]


def parse_price(doc: str, listing_type: str) -> Price:
    """
    Nightly base rate from the JSON-LD block.
    Pages using the booking widget quote a weekly price; divide by its night count.
    """
    ld = _ld_json(doc)
    price_match = re.search(r'"price"\s*:\s*"?([\d.]+)"?', ld)
    currency_match = re.search(r'"priceCurrency"\s*:\s*"([^"]+)"', ld)
    amount = _float(price_match.group(1) if price_match else None)
    currency = currency_match.group(1) if currency_match else "EUR"

    is_guest_house = "guest house" in listing_type.lower()
    is_widget = "g2f-accommodationSticky-details-widget" in doc
    if amount is not None and not is_guest_house and is_widget:
        nights = _int(_attr(doc, "data-nbj"))
        if nights > 0:
            amount = round(amount / nights, 2)

    return Price(amount=amount or None, currency=currency)


def parse_aggregate_rating(doc: str) -> AggregateRating:
    ld = _ld_json(doc)
    value_match = re.search(r'"ratingValue"\s*:\s*"?([\d.]+)"?', ld)
    count_match = re.search(r'"ratingCount"\s*:\s*"?(\d+)"?', ld)
    return AggregateRating(
        value=_float(value_match.group(1) if value_match else None) or 0,
        count=int(count_match.group(1)) if count_match else 0,
    )


def _criteria_rating(fragment: str, label: str) -> Optional[float]:
    for item in re.findall(r"<li[^>]*>(.*?)</li>", _block(fragment, "g2f-accommodationCom-criteria-list", tag="ul"), FLAGS):
        if label in strip_tags(_block(item, "criteria")).lower():
            match = RATING_RE.search(strip_tags(item))
            if match:
                return _float(match.group(1))
    return None


def parse_review(fragment: str) -> Review:
    times = [strip_tags(t) for t in re.findall(r"<time[^>]*>(.*?)</time>", fragment, FLAGS)]

    author = re.search(r"<figcaption[^>]*>.*?<strong[^>]*>(.*?)</strong>", fragment, FLAGS)
    title = re.search(r"<h3[^>]*>\s*<strong[^>]*>(.*?)</strong>", fragment, FLAGS)
    rating_match = RATING_RE.search(strip_tags(_block(fragment, "criteria-wrap")))
    rating = _float(rating_match.group(1)) if rating_match else None

    content = _segment(fragment, "g2f-accommodationReview-content", length=len(fragment))
    body_parts = [strip_tags(p) for p in re.findall(r"<p[^>]*>(.*?)</p>", content, FLAGS)]
    body = "\n".join(
        p for p in body_parts
        if p and not p.startswith("Stay from") and not p.startswith("Posted on")
    )

    posted = strip_tags(_block(fragment, "g2f-accommodationReview-date")) or strip_tags(
        _block(fragment, "g2f-accommodationCom-date")
    )

    owner_reply = None
    bubble = _segment(fragment, "g2f-accommodationCom-bubble", length=len(fragment))
    if bubble:
        reply_text = re.search(r"<p[^>]*>(.*?)</p>", bubble, FLAGS)
        reply_author = re.search(
            r'g2f-accommodationCom-bubble-author[^>]*>.*?<strong[^>]*>(.*?)</strong>', bubble, FLAGS
        )
        owner_reply = OwnerReply(
            text=strip_tags(reply_text.group(1)) if reply_text else "",
            author=strip_tags(reply_author.group(1)) if reply_author else "",
        )
        body = body.replace(owner_reply.text, "").strip()

    return Review(
        author=strip_tags(author.group(1)) if author else "",
        stay_from=times[0] if times else "",
        stay_to=times[1] if len(times) > 1 else "",
        title=strip_tags(title.group(1)) if title else "",
        rating=min(5.0, rating) if rating is not None else 0,
        body=body,
        posted_on=re.sub(r"Posted on\s*", "", posted, flags=re.IGNORECASE).strip(),
        criteria=ReviewCriteria(
            cleanliness=_criteria_rating(fragment, "cleanliness"),
            comfort=_criteria_rating(fragment, "comfort"),
            welcome=_criteria_rating(fragment, "welcome"),
            value=_criteria_rating(fragment, "value"),
        ),
        owner_reply=owner_reply,
    )


def parse_reviews(doc: str) -> list[Review]:
    starts = [m.start() for m in REVIEW_START_RE.finditer(doc)]
    bounds = zip(starts, [*starts[1:], len(doc)])
    return [parse_review(doc[start:end]) for start, end in bounds]


def parse_host(doc: str) -> Host:
    section = _segment(doc, "g2f-accommodationHost", length=10000)
    name = strip_tags(_block(section, "g2f-accommodationHost-hostname"))

    languages_text = strip_tags(_block(section, "g2f-contactCard-profil-language"))
    languages_text = re.sub(r"Spoken languages\s*:\s*", "", languages_text, flags=re.IGNORECASE)
    languages = [l.strip() for l in re.split(r"[,;]", languages_text) if l.strip()]

    since = re.search(r"since\s+(\d{4})", strip_tags(section), re.IGNORECASE)
    return Host(
        name=name,
        spoken_languages=languages,
        approved_since=int(since.group(1)) if since else None,
    )


def parse_advert_type(doc: str) -> Optional[str]:
    for em in re.findall(r"<section[^>]*>\s*<div[^>]*>\s*<p[^>]*>\s*<em[^>]*>(.*?)</em>", doc, FLAGS):
        text = strip_tags(em).lower()
        if "individual" in text:
            return "individual"
        if "professional" in text:
            return "professional"
    return None


def parse_listing(doc: str) -> Listing:
    """
    Parse a listing page.

    Raises:
        ListingParseError: If the page lacks a reference or title, or the
            extracted fields don't form a valid Listing
    """
    ref = parse_ref(doc)
    title = strip_tags(_block(doc, "g2f-accommodationHeader-title", tag="h1"))
    if not ref or not title:
        raise ListingParseError(f"missing {'ref' if not ref else 'title'}")

    listing_type = strip_tags(_block(doc, "g2f-accommodationHeader-type", tag="h3"))
    summary = parse_summary(doc) or None
    description = parse_description(doc)

    try:
        return Listing(
            ref=ref,
            title=title,
            type=listing_type,
            quality=min(parse_quality(doc), 5),
            summary=summary,
            # Single-container pages repeat the summary as description
            description=description if description and description != summary else None,
            url=parse_url(doc),
            photos=parse_photos(doc),
            location=parse_location(doc),
            capacity=parse_capacity(doc),
            equipment=parse_equipment(doc),
            price_includes=parse_price_includes(doc),
            price=parse_price(doc, listing_type),
            all_inclusive="g2f-cartouche-all-inclusive" in doc,
            aggregate_rating=parse_aggregate_rating(doc),
            reviews=parse_reviews(doc),
            host=parse_host(doc),
            advert_type=parse_advert_type(doc),
        )
    except ValidationError as e:
        raise ListingParseError(f"{ref}: {e.error_count()} invalid fields") from e
    except ValueError as e:
        raise ListingParseError(f"{ref}: {e}") from e
