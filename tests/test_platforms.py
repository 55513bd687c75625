import pytest

from crawlers.core.exceptions import ExtractionError
from crawlers.platforms.amazon import AmazonScraper
from crawlers.platforms.flipkart import FlipkartScraper
from crawlers.platforms.myntra import MyntraScraper
from crawlers.platforms.nykaa import NykaaScraper
from crawlers.platforms.one_mg import create_scraper
from crawlers.platforms.swiggy_instamart import SwiggyInstamartScraper


AMAZON_PRODUCT = """
<html><body>
  <span id="productTitle"> boAt Airdopes 141 </span>
  <a id="bylineInfo">Visit the boAt Store</a>
  <span class="a-price"><span class="a-price-whole">1,299.</span></span>
  <span class="a-price a-text-price"><span class="a-offscreen">₹4,490.00</span></span>
  <div id="availability"><span class="a-size-medium">In stock</span></div>
  <img id="landingImage" src="https://m.media-amazon.com/images/I/main.jpg">
  <span id="acrPopover"><span class="a-icon-alt">4.1 out of 5 stars</span></span>
  <span id="acrCustomerReviewText">3,27,512 ratings</span>
</body></html>
"""

AMAZON_SEARCH = """
<div class="s-result-item" data-asin="B0CXYZ">
  <h2><a href="/dp/B0CXYZ"><span>Noise Buds VS104</span></a></h2>
  <span class="a-price"><span class="a-offscreen">₹999</span></span>
  <img class="s-image" src="https://m.media-amazon.com/images/I/noise.jpg">
</div>
<div class="s-result-item" data-asin="">
  <div class="sponsored-banner">Sponsored</div>
</div>
"""


def test_amazon_product_page():
    record = AmazonScraper().scrape_product(AMAZON_PRODUCT)

    assert record.product_name == "boAt Airdopes 141"
    assert float(record.selling_price) == 1299
    assert float(record.actual_price) == 4490
    assert record.discount == 71.07
    assert record.brand == "boAt"
    assert record.availability == "In stock"
    assert record.rating == 4.1
    assert record.review_count == 327512
    assert record.confidence_score == 1.0


def test_amazon_blocked_page_raises():
    with pytest.raises(ExtractionError):
        AmazonScraper().scrape_product("<html><title>Robot Check</title></html>")


def test_amazon_search_results():
    result = AmazonScraper().scrape_category(AMAZON_SEARCH)

    assert result["totalProducts"] == 1
    product = result["products"][0]
    assert product["productName"] == "Noise Buds VS104"
    assert product["sellingPrice"] == 999.0
    assert product["url"] == "https://www.amazon.in/dp/B0CXYZ"


def test_flipkart_product_page():
    record = FlipkartScraper().scrape_product("""
        <span class="VU-ZEz">Apple iPhone 15 (Black, 128 GB)</span>
        <div class="Nx9bqj">₹65,999</div>
        <div class="yRaY8j">₹69,900</div>
        <div class="UkUFwK"><span>5% off</span></div>
    """)

    data = record.to_dict()
    assert data["productName"] == "Apple iPhone 15 (Black, 128 GB)"
    assert data["sellingPrice"] == 65999.0
    assert data["actualPrice"] == 69900.0
    assert data["discount"] == 5.0
    assert data["availability"] == "In Stock"
    assert data["highlights"] == []


def test_flipkart_falls_back_to_structured_data():
    record = FlipkartScraper().scrape_product("""
        <script type="application/ld+json">
        {"@context": "https://schema.org", "@type": "Product", "name": "Puma Sneakers",
         "brand": {"@type": "Brand", "name": "Puma"},
         "offers": {"@type": "Offer", "price": "2499", "availability": "https://schema.org/InStock"}}
        </script>
    """)

    assert record.product_name == "Puma Sneakers"
    assert record.brand == "Puma"
    assert float(record.selling_price) == 2499
    assert record.availability == "InStock"


def test_myntra_product_page():
    record = MyntraScraper().scrape_product("""
        <h1 class="pdp-title">Roadster</h1>
        <h1 class="pdp-name">Men Slim Fit Casual Shirt</h1>
        <p class="pdp-price"><strong>₹719</strong></p>
        <span class="pdp-mrp"><s>₹1,799</s></span>
        <span class="pdp-discount">(60% OFF)</span>
        <div class="image-grid-image" style='background-image: url("https://assets.myntassets.com/shirt.jpg")'></div>
        <button class="size-buttons-size-button">S</button>
        <button class="size-buttons-size-button">M</button>
        <button class="size-buttons-size-button">L</button>
    """)

    data = record.to_dict()
    assert data["productName"] == "Roadster Men Slim Fit Casual Shirt"
    assert data["brand"] == "Roadster"
    assert data["sellingPrice"] == 719.0
    assert data["actualPrice"] == 1799.0
    assert data["discount"] == 60.0
    assert data["mainImage"] == "https://assets.myntassets.com/shirt.jpg"
    assert data["sizes"] == ["S", "M", "L"]


def test_nykaa_prefers_structured_data():
    record = NykaaScraper().scrape_product("""
        <h1>Ignored heading</h1>
        <script type="application/ld+json">
        {"@type": "Product", "name": "Lakme 9 to 5 Lipstick",
         "image": ["https://images-static.nykaa.com/a.jpg", "https://images-static.nykaa.com/b.jpg"],
         "offers": {"price": 450},
         "aggregateRating": {"ratingValue": "4.3", "reviewCount": "1,204"}}
        </script>
    """)

    assert record.product_name == "Lakme 9 to 5 Lipstick"
    assert record.main_image == "https://images-static.nykaa.com/a.jpg"
    assert record.additional_images == ["https://images-static.nykaa.com/b.jpg"]
    assert record.rating == 4.3
    assert record.review_count == 1204


def test_one_mg_factory_product_page():
    record = create_scraper().scrape_product("""
        <h1 class="DrugHeader__title-content___2ZaPo">Dolo 650 Tablet</h1>
        <div class="DrugPriceBox__best-price___32JXw">₹30.91</div>
        <span class="DrugPriceBox__slashed-price___2UGqd">MRP ₹33.60</span>
    """)

    assert record.product_name == "Dolo 650 Tablet"
    assert float(record.selling_price) == 30.91
    assert float(record.actual_price) == 33.60
    assert record.discount == 8.01


async def test_swiggy_instamart_out_of_stock():
    record = await SwiggyInstamartScraper().scrape_product(
        '<div data-testid="item-name">Amul Taaza Milk</div>'
        '<div data-testid="item-weight">500 ml</div>'
    )

    data = record.to_dict()
    assert data["availability"] == "Out of Stock"
    assert data["sellingPrice"] is None
    assert data["weight"] == "500 ml"
