"""
External JSON result files for completed scraping operations.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

from config.settings import settings
from crawlers.core.exceptions import NotFoundError, PersistenceError
from models.base import isoformat, utc_now

logger = logging.getLogger(__name__)


def result_filename(seller: str, op_type: str, timestamp: Optional[datetime] = None) -> str:
    """{seller}-{type}-{ISO 타임스탬프(':'/'.' → '-')}.json"""
    stamp = isoformat(timestamp or utc_now()).replace(":", "-").replace(".", "-")
    return f"{seller}-{op_type}-{stamp}.json"


class ResultFileStore:
    """결과 파일 저장소"""

    def __init__(self, results_dir: Optional[Union[str, Path]] = None):
        self.results_dir = Path(results_dir or settings.storage.results_dir)

    def write(self, seller: str, op_type: str, data: Any,
              timestamp: Optional[datetime] = None) -> str:
        """결과를 JSON 파일로 저장하고 경로 반환"""
        filename = result_filename(seller, op_type, timestamp)
        path = self.results_dir / filename
        try:
            self.results_dir.mkdir(parents=True, exist_ok=True)

            # 같은 밀리초의 결과 파일은 -N 접미사로 구분
            suffix = 1
            while path.exists():
                path = self.results_dir / f"{filename[:-len('.json')]}-{suffix}.json"
                suffix += 1

            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2, default=str)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to write result file {path}: {e}") from e

        logger.info(f"Result file written: {path}")
        return str(path)

    def read(self, path: str) -> Any:
        """결과 파일 읽기"""
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError as e:
            raise NotFoundError(f"Result file not found: {path}", {"dataFile": path}) from e
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Failed to read result file {path}: {e}") from e

    def delete(self, path: Optional[str]) -> bool:
        """결과 파일 삭제 (없는 파일은 무시, 그 외 오류는 로그만 남김)"""
        if not path:
            return False
        try:
            Path(path).unlink()
            logger.info(f"Result file deleted: {path}")
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Failed to delete result file {path}: {e}")
            return False
