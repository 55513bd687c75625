"""
Nykaa scraper adapter.
"""

from crawlers.core.base_crawler import BaseScraper, ProductRecord
from crawlers.core.exceptions import ExtractionError


class NykaaScraper(BaseScraper):
    """나이카 전용 스크래퍼"""

    seller = "nykaa"

    selectors = {
        'product_name': ['h1.css-1gc4x7i', 'h1'],
        'selling_price': ['.css-1jczs19', 'span.css-1jczs19'],
        'actual_price': ['.css-u05rr span', 'span.css-17x46n5 span'],
        'discount': ['.css-bhhehx', '.css-1jfmtih'],
        'rating': ['.css-m6n3ou', '.css-1hvvm95'],
        'review_count': ['.css-1hvvm95', '.css-1jfmtih'],
        'main_image': ['.css-43m2vm img', '.css-5n0nl4 img', 'img[alt]'],
        'description': ['.css-1rp2t75', '.product-description', '.description']
    }

    def scrape_product(self, page_content: str) -> ProductRecord:
        """나이카 상품 데이터 추출"""
        soup = self._soup(page_content)

        # 나이카는 대부분 JSON-LD를 제공한다
        structured = self._extract_structured_data(soup)
        if structured and structured.get('name'):
            return self._record_from_structured_data(structured)

        product_name = self._extract_text_by_selectors(soup, self.selectors['product_name'])
        if not product_name:
            raise ExtractionError("Product name not found on Nykaa page", {"seller": self.seller})

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
            main_image=self._extract_attr_by_selectors(soup, self.selectors['main_image'], 'src'),
            rating=self._extract_rating(self._extract_text_by_selectors(soup, self.selectors['rating'])),
            description=self._extract_text_by_selectors(soup, self.selectors['description'])
        )
        record.confidence_score = self._calculate_confidence_score(record)
        return record


scraper = NykaaScraper
