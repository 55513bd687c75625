"""
Myntra scraper adapter.

Exposed as a ready-made module-level instance rather than a class.
"""

from crawlers.core.base_crawler import BaseScraper, ProductRecord
from crawlers.core.exceptions import ExtractionError


class MyntraScraper(BaseScraper):
    """민트라 전용 스크래퍼"""

    seller = "myntra"

    selectors = {
        'brand': ['.pdp-title', '.brand-name', '.pdp-brand'],
        'product_name': ['.pdp-name', 'h1.pdp-name', '.product-title'],
        'selling_price': ['.pdp-price strong', '.pdp-price', '.selling-price'],
        'actual_price': ['.pdp-mrp s', '.pdp-original-price', '.original-price'],
        'discount': ['.pdp-discount', '.discount'],
        'rating': ['.index-overallRating div', '.pdp-rating'],
        'review_count': ['.index-ratingsCount', '.pdp-reviews'],
        'main_image': ['.image-grid-image', '.pdp-image img'],
        'description': ['.pdp-product-description-content', '.pdp-description'],
        'sizes': ['.size-buttons-size-button', '.size-selector button']
    }

    def scrape_product(self, page_content: str) -> ProductRecord:
        """민트라 상품 데이터 추출"""
        soup = self._soup(page_content)

        name = self._extract_text_by_selectors(soup, self.selectors['product_name'])
        brand = self._extract_text_by_selectors(soup, self.selectors['brand'])

        if not name:
            structured = self._extract_structured_data(soup)
            if structured:
                return self._record_from_structured_data(structured)
            raise ExtractionError("Product name not found on Myntra page", {"seller": self.seller})

        selling_price = self._extract_price(
            self._extract_text_by_selectors(soup, self.selectors['selling_price'])
        )
        actual_price = self._extract_price(
            self._extract_text_by_selectors(soup, self.selectors['actual_price'])
        )

        # 이미지는 background-image 스타일에 들어있는 경우가 많다
        main_image = None
        image_el = soup.select_one(self.selectors['main_image'][0])
        if image_el and 'url(' in (image_el.get('style') or ''):
            main_image = image_el['style'].split('url(', 1)[1].split(')', 1)[0].strip('"\'')
        if main_image is None:
            main_image = self._extract_attr_by_selectors(soup, self.selectors['main_image'][1:], 'src')

        sizes = []
        for selector in self.selectors['sizes']:
            sizes = [el.get_text(strip=True) for el in soup.select(selector) if el.get_text(strip=True)]
            if sizes:
                break

        record = ProductRecord(
            product_name=f"{brand} {name}" if brand else name,
            selling_price=selling_price,
            actual_price=actual_price,
            discount=self._extract_discount_rate(
                self._extract_text_by_selectors(soup, self.selectors['discount'])
            ) or self._compute_discount(selling_price, actual_price),
            brand=brand,
            main_image=main_image,
            rating=self._extract_rating(self._extract_text_by_selectors(soup, self.selectors['rating'])),
            review_count=self._extract_count(
                self._extract_text_by_selectors(soup, self.selectors['review_count'])
            ),
            description=self._extract_text_by_selectors(soup, self.selectors['description']),
            extra={"sizes": sizes}
        )
        record.confidence_score = self._calculate_confidence_score(record)
        return record


# 이미 생성된 단일 인스턴스로 노출
scraper = MyntraScraper()
