"""
Base scraper class for all seller-specific scraper adapters.

This module provides the abstract base class that seller adapters inherit
from. Adapters receive already-fetched page content and turn it into a
ProductRecord; page acquisition is handled by the fetch layer.
"""

import json
import re
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from models.base import isoformat, utc_now
from utils.logging import get_logger


class ProductRecord:
    """추출된 상품 정보를 담는 데이터 클래스"""

    def __init__(
        self,
        product_name: Optional[str] = None,
        selling_price: Optional[Decimal] = None,
        actual_price: Optional[Decimal] = None,
        discount: Optional[float] = None,
        brand: Optional[str] = None,
        availability: Optional[str] = None,
        main_image: Optional[str] = None,
        additional_images: Optional[List[str]] = None,
        rating: Optional[float] = None,
        review_count: Optional[int] = None,
        description: Optional[str] = None,
        specifications: Optional[Dict[str, str]] = None,
        url: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
        confidence_score: float = 0.0
    ):
        self.product_name = product_name
        self.selling_price = selling_price
        self.actual_price = actual_price
        self.discount = discount
        self.brand = brand
        self.availability = availability
        self.main_image = main_image
        self.additional_images = additional_images or []
        self.rating = rating
        self.review_count = review_count
        self.description = description
        self.specifications = specifications or {}
        self.url = url
        self.extra = extra or {}
        self.confidence_score = confidence_score
        self.scraped_at = utc_now()

    def to_dict(self) -> Dict[str, Any]:
        """결과를 딕셔너리로 변환"""
        data = {
            "productName": self.product_name,
            "sellingPrice": float(self.selling_price) if self.selling_price is not None else None,
            "actualPrice": float(self.actual_price) if self.actual_price is not None else None,
            "discount": self.discount,
            "brand": self.brand,
            "availability": self.availability,
            "mainImage": self.main_image,
            "additionalImages": self.additional_images,
            "rating": self.rating,
            "reviewCount": self.review_count,
            "description": self.description,
            "specifications": self.specifications,
            "url": self.url,
            "confidenceScore": self.confidence_score,
            "scrapedAt": isoformat(self.scraped_at)
        }
        data.update(self.extra)
        return data


class BaseScraper(ABC):
    """모든 판매처 스크래퍼의 기본 클래스"""

    seller: str = "generic"

    def __init__(self):
        self.logger = get_logger(f"scraper.{self.seller}")

    @abstractmethod
    def scrape_product(self, page_content: str) -> ProductRecord:
        """
        판매처별 상품 데이터 추출 메서드

        각 판매처 스크래퍼에서 구현해야 함
        """
        pass

    def close(self) -> None:
        """스크래퍼 리소스 정리 (기본은 없음)"""
        return None

    # 파싱 헬퍼

    def _soup(self, page_content: str) -> BeautifulSoup:
        return BeautifulSoup(page_content or "", "html.parser")

    def _extract_text_by_selectors(self, soup, selectors: List[str]) -> Optional[str]:
        """여러 셀렉터를 시도해서 텍스트 추출"""
        for selector in selectors:
            element = soup.select_one(selector)
            if element:
                text = element.get_text(" ", strip=True)
                if text:
                    return text
        return None

    def _extract_attr_by_selectors(self, soup, selectors: List[str], attr: str) -> Optional[str]:
        """여러 셀렉터를 시도해서 속성 추출"""
        for selector in selectors:
            element = soup.select_one(selector)
            if element and element.get(attr):
                return element.get(attr).strip()
        return None

    def _extract_all_attrs(self, soup, selectors: List[str], attr: str,
                           exclude: Optional[str] = None, limit: int = 10) -> List[str]:
        """셀렉터에 해당하는 모든 속성값 (중복 제거)"""
        values: List[str] = []
        for selector in selectors:
            for element in soup.select(selector):
                value = element.get(attr)
                if value and value != exclude and value not in values:
                    values.append(value)
                if len(values) >= limit:
                    return values
        return values

    def _extract_structured_data(self, soup) -> Optional[dict]:
        """구조화된 데이터 추출 (JSON-LD Product)"""
        for script in soup.find_all('script', type='application/ld+json'):
            try:
                data = json.loads(script.string or "")
            except (json.JSONDecodeError, TypeError):
                continue

            candidates = data if isinstance(data, list) else [data]
            if isinstance(data, dict) and isinstance(data.get('@graph'), list):
                candidates = data['@graph']

            for item in candidates:
                if isinstance(item, dict) and item.get('@type') == 'Product':
                    return item
        return None

    def _record_from_structured_data(self, data: dict, url: Optional[str] = None) -> ProductRecord:
        """JSON-LD Product를 ProductRecord로 변환"""
        offers = data.get('offers', {})
        if isinstance(offers, list):
            offers = offers[0] if offers else {}

        image = data.get('image')
        images = image if isinstance(image, list) else ([image] if image else [])

        brand_info = data.get('brand')
        brand = brand_info.get('name') if isinstance(brand_info, dict) else brand_info

        rating_info = data.get('aggregateRating') or {}

        availability = offers.get('availability')
        if isinstance(availability, str):
            availability = availability.rsplit('/', 1)[-1]

        record = ProductRecord(
            product_name=data.get('name'),
            selling_price=self._extract_price(str(offers.get('price', ''))),
            brand=brand,
            availability=availability,
            main_image=images[0] if images else None,
            additional_images=images[1:],
            rating=self._extract_rating(str(rating_info.get('ratingValue', ''))),
            review_count=self._extract_count(str(rating_info.get('reviewCount', ''))),
            description=data.get('description'),
            url=url or data.get('url')
        )
        record.confidence_score = self._calculate_confidence_score(record)
        return record

    def _extract_price(self, price_text: Optional[str]) -> Optional[Decimal]:
        """가격 텍스트에서 첫 번째 숫자 추출"""
        if not price_text:
            return None
        match = re.search(r'(\d[\d,]*(?:\.\d+)?)', price_text)
        if not match:
            return None
        try:
            return Decimal(match.group(1).replace(',', ''))
        except InvalidOperation:
            return None

    def _extract_discount_rate(self, discount_text: Optional[str]) -> Optional[float]:
        """할인율 추출"""
        if not discount_text:
            return None
        rate_match = re.search(r'(\d+(?:\.\d+)?)\s*%', discount_text)
        if rate_match:
            return float(rate_match.group(1))
        return None

    def _extract_rating(self, rating_text: Optional[str]) -> Optional[float]:
        """평점 추출 (0-5)"""
        if not rating_text:
            return None
        rating_match = re.search(r'(\d+(?:\.\d+)?)', rating_text)
        if rating_match:
            rating = float(rating_match.group(1))
            if 0 <= rating <= 5:
                return rating
        return None

    def _extract_count(self, count_text: Optional[str]) -> Optional[int]:
        """리뷰 수 등 정수 추출"""
        if not count_text:
            return None
        match = re.search(r'(\d[\d,]*)', count_text)
        if match:
            return int(match.group(1).replace(',', ''))
        return None

    def _compute_discount(self, selling: Optional[Decimal], actual: Optional[Decimal]) -> Optional[float]:
        """판매가와 정가로 할인율 계산"""
        if selling is None or actual is None or actual <= 0 or selling >= actual:
            return None
        return round(float((actual - selling) / actual * 100), 2)

    def _calculate_confidence_score(self, record: ProductRecord) -> float:
        """데이터 품질에 따른 신뢰도 점수 계산"""
        score = 0.0

        # 상품명 존재 여부 (30%)
        if record.product_name:
            score += 0.3

        # 가격 정보 존재 여부 (30%)
        if record.selling_price is not None:
            score += 0.3

        # 이미지 URL 존재 여부 (20%)
        if record.main_image:
            score += 0.2

        # 추가 정보 존재 여부 (20%)
        additional_info = sum([
            bool(record.brand),
            bool(record.rating),
            bool(record.availability)
        ])
        score += (additional_info / 3) * 0.2

        return round(score, 2)


class CategoryScraperMixin:
    """카테고리 페이지 추출 공통 로직"""

    # 상품 카드 셀렉터
    item_selectors: List[str] = []
    name_selectors: List[str] = []
    price_selectors: List[str] = []
    link_selectors: List[str] = ['a[href]']
    image_selectors: List[str] = ['img']
    base_url: str = ""

    def scrape_category(self, page_content: str) -> Dict[str, Any]:
        """카테고리 페이지에서 상품 목록 추출"""
        soup = self._soup(page_content)
        products = []

        for selector in self.item_selectors:
            for card in soup.select(selector):
                name = self._extract_text_by_selectors(card, self.name_selectors)
                if not name:
                    continue

                link = self._extract_attr_by_selectors(card, self.link_selectors, 'href')
                record = ProductRecord(
                    product_name=name,
                    selling_price=self._extract_price(
                        self._extract_text_by_selectors(card, self.price_selectors)
                    ),
                    main_image=self._extract_attr_by_selectors(card, self.image_selectors, 'src'),
                    url=urljoin(self.base_url, link) if link else None
                )
                record.confidence_score = self._calculate_confidence_score(record)
                products.append(record.to_dict())

            if products:
                break

        return {
            "products": products,
            "totalProducts": len(products),
            "scrapedAt": isoformat(utc_now())
        }
