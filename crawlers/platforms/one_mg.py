"""
Tata 1mg scraper adapter (seller id ``1mg``).

The seller id starts with a digit, so the module is registered under an
alias and exposes a factory function instead of a class.
"""

from crawlers.core.base_crawler import BaseScraper, ProductRecord
from crawlers.core.exceptions import ExtractionError


class OneMgScraper(BaseScraper):
    """1mg 전용 스크래퍼"""

    seller = "1mg"

    selectors = {
        'product_name': ['h1[class*="DrugHeader__title"]', 'h1[class*="ProductTitle"]', 'h1'],
        'selling_price': [
            '[class*="DrugPriceBox__best-price"]',
            '[class*="PriceDetails__discount-div"]',
            '[class*="discounted-price"]',
            '[class*="price"]'
        ],
        'actual_price': ['[class*="DrugPriceBox__slashed-price"]', '[class*="PriceDetails__mrp"]', '[class*="mrp"]'],
        'discount': ['[class*="DrugPriceBox__slashed-percent"]', '[class*="discount-percent"]'],
        'manufacturer': ['[class*="DrugHeader__meta-value"] a', '[class*="manufacturer"]'],
        'pack_size': ['[class*="DrugPriceBox__quantity"]', '[class*="pack-size"]'],
        'main_image': ['[class*="ProductImage"] img', 'img[class*="image"]'],
        'description': ['[class*="DrugOverview__content"]', '.product-description', '[class*="description"]'],
        'rating': ['[class*="RatingDisplay"]', '[class*="rating"]']
    }

    def scrape_product(self, page_content: str) -> ProductRecord:
        """1mg 상품 데이터 추출"""
        soup = self._soup(page_content)

        product_name = self._extract_text_by_selectors(soup, self.selectors['product_name'])
        if not product_name:
            raise ExtractionError("Medicine name not found on 1mg page", {"seller": self.seller})

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
            brand=self._extract_text_by_selectors(soup, self.selectors['manufacturer']),
            main_image=self._extract_attr_by_selectors(soup, self.selectors['main_image'], 'src'),
            rating=self._extract_rating(self._extract_text_by_selectors(soup, self.selectors['rating'])),
            description=self._extract_text_by_selectors(soup, self.selectors['description']),
            extra={"packSize": self._extract_text_by_selectors(soup, self.selectors['pack_size'])}
        )
        record.confidence_score = self._calculate_confidence_score(record)
        return record


def create_scraper() -> OneMgScraper:
    """1mg 스크래퍼 생성 팩토리"""
    return OneMgScraper()
