"""
Amazon (amazon.in) scraper adapter.

Handles both single product pages and search/category result pages.
"""

from typing import Dict, List

from crawlers.core.base_crawler import BaseScraper, CategoryScraperMixin, ProductRecord
from crawlers.core.exceptions import ExtractionError


class AmazonScraper(CategoryScraperMixin, BaseScraper):
    """아마존 전용 스크래퍼"""

    seller = "amazon"
    base_url = "https://www.amazon.in"

    # 검색 결과 카드
    item_selectors = ['div.s-result-item[data-asin]']
    name_selectors = ['h2 a span', 'h2 span', '.a-size-base-plus a span']
    price_selectors = ['.a-price .a-offscreen', '.a-price-whole']
    link_selectors = ['h2 a[href]', 'a.a-link-normal[href]']
    image_selectors = ['img.s-image', 'img']

    def get_selectors(self) -> Dict[str, List[str]]:
        """아마존 상품 페이지 CSS 셀렉터"""
        return {
            'product_name': [
                '#productTitle',
                'h1.a-size-large',
                'h1.a-size-base-plus'
            ],
            'selling_price': [
                '.a-price-whole',
                '.a-price .a-offscreen',
                '#priceblock_ourprice'
            ],
            'actual_price': [
                '.a-price.a-text-price .a-offscreen',
                '.a-text-strike .a-offscreen',
                '.a-price.a-text-price .a-price-whole'
            ],
            'availability': [
                '#availability .a-size-medium',
                '#availability .a-color-success',
                '#availability .a-color-state'
            ],
            'main_image': ['#landingImage', '#imgBlkFront', '.a-dynamic-image'],
            'additional_images': ['.a-button-thumbnail img', '.a-thumbnail img'],
            'brand': ['#bylineInfo'],
            'rating': ['#acrPopover .a-icon-alt', '.a-icon-star .a-icon-alt'],
            'review_count': ['#acrCustomerReviewText'],
            'description': ['#feature-bullets ul li', '#productDescription p']
        }

    def scrape_product(self, page_content: str) -> ProductRecord:
        """아마존 상품 데이터 추출"""
        soup = self._soup(page_content)
        selectors = self.get_selectors()

        product_name = self._extract_text_by_selectors(soup, selectors['product_name'])
        if not product_name:
            raise ExtractionError(
                "Product information not found. The page might be protected or unavailable.",
                {"seller": self.seller}
            )

        selling_price = self._extract_price(
            self._extract_text_by_selectors(soup, selectors['selling_price'])
        )
        actual_price = self._extract_price(
            self._extract_text_by_selectors(soup, selectors['actual_price'])
        )
        main_image = self._extract_attr_by_selectors(soup, selectors['main_image'], 'src')

        brand = self._extract_text_by_selectors(soup, selectors['brand'])
        if brand:
            brand = brand.replace("Visit the", "").replace("Store", "").replace("Brand:", "").strip()

        specifications = {}
        for row in soup.select('#productDetails_techSpec_section_1 tr, .a-section table tr'):
            key = row.find('th')
            value = row.find('td')
            if key and value:
                specifications[key.get_text(strip=True)] = value.get_text(" ", strip=True)

        bullets = [li.get_text(" ", strip=True) for li in soup.select(selectors['description'][0])]

        record = ProductRecord(
            product_name=product_name,
            selling_price=selling_price,
            actual_price=actual_price,
            discount=self._compute_discount(selling_price, actual_price),
            brand=brand or None,
            availability=self._extract_text_by_selectors(soup, selectors['availability']),
            main_image=main_image,
            additional_images=self._extract_all_attrs(
                soup, selectors['additional_images'], 'src', exclude=main_image
            ),
            rating=self._extract_rating(self._extract_text_by_selectors(soup, selectors['rating'])),
            review_count=self._extract_count(
                self._extract_text_by_selectors(soup, selectors['review_count'])
            ),
            description=" ".join(bullets) or self._extract_text_by_selectors(soup, selectors['description'][1:]),
            specifications=specifications
        )
        record.confidence_score = self._calculate_confidence_score(record)
        return record


# 레지스트리는 클래스를 받아 작업마다 새 인스턴스를 만든다
scraper = AmazonScraper
