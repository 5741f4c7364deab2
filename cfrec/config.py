import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

logger = logging.getLogger(__name__)

# Load .env file if exists
env_path = BASE_DIR / ".env"
if env_path.exists():
    load_dotenv(dotenv_path=env_path)
    logger.info(f"Loaded .env file from {env_path}")

RECOMMENDERS = ("user_based", "slope_one")
SIMILARITIES = ("pearson", "euclidean", "spearman", "tanimoto")


def _get_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _get_optional_float(name: str) -> Optional[float]:
    value = os.getenv(name, "").strip()
    return float(value) if value else None


class Settings:
    """
    Config của engine + API, đọc từ environment (và .env nếu có).

    Đọc trong __init__ nên mỗi Settings() phản ánh environment hiện tại.
    """

    def __init__(self):
        # Ratings CSV: cột user_id, item_id, rating
        self.ratings_path: Path = Path(
            os.getenv("CFREC_RATINGS_PATH", str(BASE_DIR / "data" / "ratings.csv"))
        )

        # Recommender: "user_based" hoặc "slope_one"
        self.recommender: str = os.getenv("CFREC_RECOMMENDER", "user_based").strip().lower()

        # User-based
        self.similarity: str = os.getenv("CFREC_SIMILARITY", "pearson").strip().lower()
        self.weighted: bool = _get_bool("CFREC_WEIGHTED", "false")
        self.neighborhood_size: int = int(os.getenv("CFREC_NEIGHBORHOOD_SIZE", "10"))
        # Nếu set: dùng ThresholdUserNeighborhood thay cho nearest-N
        self.neighborhood_threshold: Optional[float] = _get_optional_float(
            "CFREC_NEIGHBORHOOD_THRESHOLD"
        )

        # Slope one
        self.diff_max_entries: int = int(os.getenv("CFREC_DIFF_MAX_ENTRIES", "10000000"))
        self.stddev_weighted: bool = _get_bool("CFREC_STDDEV_WEIGHTED", "false")

        # API
        self.top_n: int = int(os.getenv("CFREC_TOP_N", "10"))
        self.log_level: str = os.getenv("CFREC_LOG_LEVEL", "INFO").strip().upper()
        self.host: str = os.getenv("HOST", "127.0.0.1")
        self.port: int = int(os.getenv("PORT", "8000"))
        self.environment: str = os.getenv("ENVIRONMENT", "development").strip().lower()

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def validate(self) -> "Settings":
        """
        Kiểm tra giá trị config.

        Returns:
            self (để chain)

        Raises:
            ValueError: Nếu có giá trị không hợp lệ
        """
        if self.recommender not in RECOMMENDERS:
            raise ValueError(
                f"CFREC_RECOMMENDER must be one of {RECOMMENDERS}, got {self.recommender!r}"
            )
        if self.similarity not in SIMILARITIES:
            raise ValueError(
                f"CFREC_SIMILARITY must be one of {SIMILARITIES}, got {self.similarity!r}"
            )
        if self.neighborhood_size < 1:
            raise ValueError(f"CFREC_NEIGHBORHOOD_SIZE must be >= 1, got {self.neighborhood_size}")
        if self.diff_max_entries < 1:
            raise ValueError(f"CFREC_DIFF_MAX_ENTRIES must be >= 1, got {self.diff_max_entries}")
        if self.stddev_weighted and not self.weighted:
            raise ValueError("CFREC_STDDEV_WEIGHTED requires CFREC_WEIGHTED")
        if self.top_n < 1:
            raise ValueError(f"CFREC_TOP_N must be >= 1, got {self.top_n}")
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"CFREC_LOG_LEVEL is invalid: {self.log_level!r}")
        return self


settings = Settings()
