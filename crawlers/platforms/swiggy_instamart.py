"""
Swiggy Instamart scraper adapter (seller id ``swiggy-instamart``).

Extraction is exposed as a coroutine; the registry awaits it.
"""

from crawlers.core.base_crawler import BaseScraper, ProductRecord
from crawlers.core.exceptions import ExtractionError


class SwiggyInstamartScraper(BaseScraper):
    """스위기 인스타마트 전용 스크래퍼"""

    seller = "swiggy-instamart"

    selectors = {
        'product_name': ['[data-testid="item-name"]', '.product-title', '.product-name', 'h1'],
        'selling_price': ['[data-testid="item-offer-price"]', '[data-testid="item-price"]'],
        'actual_price': ['[data-testid="item-mrp-price"]'],
        'discount': ['[data-testid="item-offer-label-discount-text"]'],
        'weight': ['[data-testid="item-weight"]', '.weight', '[class*="weight"]'],
        'main_image': ['[data-testid="image-card-div"] img', 'img'],
        'description': ['[data-testid="product-description"]', '.description', '[class*="description"]']
    }

    async def scrape_product(self, page_content: str) -> ProductRecord:
        """인스타마트 상품 데이터 추출"""
        soup = self._soup(page_content)

        product_name = self._extract_text_by_selectors(soup, self.selectors['product_name'])
        if not product_name:
            raise ExtractionError("Item name not found on Instamart page", {"seller": self.seller})

        selling_price = self._extract_price(
            self._extract_text_by_selectors(soup, self.selectors['selling_price'])
        )
        actual_price = self._extract_price(
            self._extract_text_by_selectors(soup, self.selectors['actual_price'])
        )

        record = ProductRecord(
            product_name=product_name,
            selling_price=selling_price,
            actual_price=actual_price,
            discount=self._extract_discount_rate(
                self._extract_text_by_selectors(soup, self.selectors['discount'])
            ) or self._compute_discount(selling_price, actual_price),
            availability="In Stock" if selling_price is not None else "Out of Stock",
            main_image=self._extract_attr_by_selectors(soup, self.selectors['main_image'], 'src'),
            description=self._extract_text_by_selectors(soup, self.selectors['description']),
            extra={"weight": self._extract_text_by_selectors(soup, self.selectors['weight'])}
        )
        record.confidence_score = self._calculate_confidence_score(record)
        return record


scraper = SwiggyInstamartScraper
