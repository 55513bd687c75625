"""FastAPI dependencies."""

from fastapi import Request

from crawlers.core.service import ScrapingService


def get_service(request: Request) -> ScrapingService:
    """앱 상태에 등록된 서비스 컨테이너"""
    return request.app.state.service
