"""
Shared fixtures: listing builders and a minimal listing page.
"""
import pytest

from gieter.models.listing import (
    AggregateRating,
    Capacity,
    Equipment,
    Listing,
    Location,
    Price,
)
from gieter.models.scoring import (
    AlgorithmicScores,
    JudgedListing,
    Judgment,
    RatingComponent,
)


def listing_page(
    ref: str = "H24G012345",
    title: str = "Le Moulin",
    price: str = "140",
    lat: str = "44.89",
    lng: str = "1.21",
    rating: str = "4.8",
    count: str = "5",
    head_extra: str = "",
) -> str:
    """A trimmed-down listing page carrying every field the parser reads."""
    ld_json = (
        '{"@type":"Product",'
        f'"offers":{{"price":"{price}","priceCurrency":"EUR"}},'
        f'"aggregateRating":{{"ratingValue":"{rating}","ratingCount":"{count}"}}}}'
    )
    return f"""<html><head>
<link rel="canonical" href="https://www.gites-de-france.com/en/dordogne/le-moulin-{ref.lower()}">
<script type="application/ld+json">{ld_json}</script>
<script>var dataLayer = [{{"lodgeRegion": "Nouvelle-Aquitaine"}}];</script>
{head_extra}
</head><body>
<ul class="g2f-gallery-photos"><li class="g2f-gallery-photos-img"><img src="/photos/1.jpg" srcset=""></li></ul>
<h1 class="g2f-accommodationHeader-title">{title}</h1>
<h3 class="g2f-accommodationHeader-type">Gîte</h3>
<div class="g2f-accommodationHeader-detail">Ref : {ref} | in Sarlat - Dordogne</div>
<ul class="g2f-levelEpis"><li></li><li></li><li></li></ul>
<ul class="g2f-accommodationHeader-capacity">
<li class="people"><span class="capacity-value">8 people</span></li>
<li class="room"><span class="capacity-value">4 bedrooms</span></li>
<li class="surface"><span class="capacity-value">160 m²</span></li>
<li class="connection"><svg class="icon wifi"></svg><span class="capacity-value">Wifi</span></li>
</ul>
<div class="g2f-js-ellipsis-container"><p>Restored mill on the river.</p></div>
<div class="g2f-contactCard-line"><strong>Price includes:</strong> Bed linen, Cleaning, Heating</div>
<div class="g2f-accommodationHost"><div class="g2f-accommodationHost-hostname">Marie Dupont</div>
<div class="g2f-contactCard-profil-language">Spoken languages: French, English</div>
<span>Approved since 2012</span></div>
<section><div><p><em>Individual advert</em></p></div></section>
<div class="g2f-accommodationReview">
<figcaption><strong>Anna</strong></figcaption>
<span>Stay from <time>01/07/2025</time> to <time>08/07/2025</time></span>
<h3><strong>Perfect week</strong></h3>
<div class="criteria-wrap">4.8/5</div>
<ul class="g2f-accommodationCom-criteria-list"><li><span class="criteria">Cleanliness</span> 5/5</li><li><span class="criteria">Comfort</span> 4.5/5</li></ul>
<div class="g2f-accommodationReview-content"><p>Lovely quiet garden.</p></div>
<div class="g2f-accommodationReview-date">Posted on 10/07/2025</div>
</div>
<div class="g2f-accommodationServices"><h3>Indoor equipment</h3><ul><li><span>Dishwasher</span></li><li><span>Washing machine</span></li></ul></div>
<div class="g2f-accommodationServices"><h3>Outdoor equipment</h3><ul><li><span>Barbecue</span></li><li><span>Garden</span></li><li><span>Terrace</span></li></ul></div>
<div class="g2f-accommodationServices"><h3>Services</h3><ul><li><span>Bed linen</span></li></ul></div>
<div id="map-accommodation" data-lat="{lat}" data-lng="{lng}"></div>
</body></html>"""


@pytest.fixture
def page():
    """Factory for listing pages."""
    return listing_page


@pytest.fixture
def make_listing():
    """Factory for listings with sensible defaults."""
    def _make(
        ref: str = "H24G000001",
        quality: int = 3,
        price: float = 800.0,
        rating: float = 0.0,
        review_count: int = 0,
        **kwargs,
    ) -> Listing:
        fields = {
            "ref": ref,
            "title": f"Gîte {ref}",
            "quality": quality,
            "price": Price(amount=price),
            "aggregate_rating": AggregateRating(value=rating, count=review_count),
            "location": Location(city="Sarlat", latitude=44.89, longitude=1.21),
            "capacity": Capacity(people=8, bedrooms=4),
            "equipment": Equipment(),
        }
        fields.update(kwargs)
        return Listing(**fields)
    return _make


@pytest.fixture
def component():
    """Factory for rating components."""
    def _make(score: float, reason: str = "test") -> RatingComponent:
        return RatingComponent(score=score, reason=reason)
    return _make


@pytest.fixture
def make_judgment(component):
    """Factory for judgments with every component at the same score."""
    def _make(score: float = 8.0) -> Judgment:
        return Judgment(
            outdoor_chill_potential=component(score),
            group_comfort=component(score),
            location_vibe=component(score),
            miscellaneous=component(score),
        )
    return _make


@pytest.fixture
def make_judged(make_listing, make_judgment, component):
    """Factory for judged listings with uniform component scores."""
    def _make(score: float = 8.0, price_score: float = 5.0, **listing_kwargs) -> JudgedListing:
        return JudgedListing(
            listing=make_listing(**listing_kwargs),
            algorithmic=AlgorithmicScores(
                price=component(price_score),
                social_proof=component(score),
                practical_amenities=component(score),
            ),
            judgment=make_judgment(score),
        )
    return _make
