"""
Flipkart scraper adapter.

Flipkart rotates its obfuscated class names often, so each field carries a
list of known class names followed by looser attribute selectors.
"""

from typing import Dict, List

from crawlers.core.base_crawler import BaseScraper, CategoryScraperMixin, ProductRecord
from crawlers.core.exceptions import ExtractionError


class FlipkartScraper(CategoryScraperMixin, BaseScraper):
    """플립카트 전용 스크래퍼"""

    seller = "flipkart"
    base_url = "https://www.flipkart.com"

    # 카테고리 상품 카드
    item_selectors = ['div[data-id]']
    name_selectors = ['.wjcEIp', '.KzDlHZ', '.slAVV4 a[title]', 'a[title]']
    price_selectors = ['.Nx9bqj', '._30jeq3']
    link_selectors = ['a.wjcEIp[href]', 'a.CGtC98[href]', 'a[href]']
    image_selectors = ['img.DByuf4', 'img']

    def get_selectors(self) -> Dict[str, List[str]]:
        """플립카트 상품 페이지 CSS 셀렉터"""
        return {
            'product_name': ['.VU-ZEz', '.B_NuCI', 'h1 span', 'h1'],
            'selling_price': ['.Nx9bqj', '._30jeq3', '._16Jk6d'],
            'actual_price': ['.yRaY8j', '._3I9_wc'],
            'discount': ['.UkUFwK', '._3Ay6Sb'],
            'rating': ['.XQDdHH', '._3LWZlK'],
            'review_count': ['.Wphh3N span', '._2_R_DZ span'],
            'main_image': ['img.DByuf4', 'img._396cs4', 'img._2r_T1I'],
            'availability': ['.Z8JjpR', '._16FRp0'],
            'brand': ['.mEh187', '.G6XhRU'],
            'highlights': ['._7eSDEz', '._21Ahn- li']
        }

    def scrape_product(self, page_content: str) -> ProductRecord:
        """플립카트 상품 데이터 추출"""
        soup = self._soup(page_content)
        selectors = self.get_selectors()

        product_name = self._extract_text_by_selectors(soup, selectors['product_name'])
        if not product_name:
            structured = self._extract_structured_data(soup)
            if structured:
                return self._record_from_structured_data(structured)
            raise ExtractionError("Product title not found on Flipkart page", {"seller": self.seller})

        selling_price = self._extract_price(
            self._extract_text_by_selectors(soup, selectors['selling_price'])
        )
        actual_price = self._extract_price(
            self._extract_text_by_selectors(soup, selectors['actual_price'])
        )
        discount = self._extract_discount_rate(
            self._extract_text_by_selectors(soup, selectors['discount'])
        )
        if discount is None:
            discount = self._compute_discount(selling_price, actual_price)

        highlights = [el.get_text(" ", strip=True) for el in soup.select(", ".join(selectors['highlights']))]

        availability = self._extract_text_by_selectors(soup, selectors['availability'])
        if availability is None:
            availability = "In Stock" if selling_price is not None else None

        record = ProductRecord(
            product_name=product_name,
            selling_price=selling_price,
            actual_price=actual_price,
            discount=discount,
            brand=self._extract_text_by_selectors(soup, selectors['brand']),
            availability=availability,
            main_image=self._extract_attr_by_selectors(soup, selectors['main_image'], 'src'),
            rating=self._extract_rating(self._extract_text_by_selectors(soup, selectors['rating'])),
            review_count=self._extract_count(
                self._extract_text_by_selectors(soup, selectors['review_count'])
            ),
            extra={"highlights": highlights}
        )
        record.confidence_score = self._calculate_confidence_score(record)
        return record


scraper = FlipkartScraper
