"""Configuration management for schoollib.

Loads configuration from environment variables and provides defaults.
Loan rules are exposed as an immutable LoanPolicy so that the policy
functions receive every limit explicitly.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .db.schemas import PersonCategory, ResourceCondition

# Load .env file if present
load_dotenv()


@dataclass(frozen=True)
class CategoryLimits:
    """Borrowing limits for one person category."""

    max_active_loans: int
    max_quantity_per_loan: int
    loan_period_days: int


@dataclass(frozen=True)
class LoanPolicy:
    """Rules applied by the eligibility, availability and lifecycle code."""

    student: CategoryLimits = CategoryLimits(3, 3, 15)
    teacher: CategoryLimits = CategoryLimits(10, 10, 30)
    max_renewals: int = 2  # 0 means unlimited
    low_stock_threshold: int = 2
    loanable_conditions: frozenset = field(
        default_factory=lambda: frozenset(
            {ResourceCondition.GOOD.value, ResourceCondition.DETERIORATED.value}
        )
    )

    def limits_for(self, category: str) -> CategoryLimits:
        """Return the limits for a person category (students by default)."""
        if category == PersonCategory.TEACHER.value:
            return self.teacher
        return self.student

    def max_active_loans(self, category: str) -> int:
        return self.limits_for(category).max_active_loans

    def max_quantity_per_loan(self, category: str) -> int:
        return self.limits_for(category).max_quantity_per_loan

    def loan_period_days(self, category: str) -> int:
        return self.limits_for(category).loan_period_days

    @property
    def renewals_capped(self) -> bool:
        return self.max_renewals > 0


@dataclass
class Config:
    """Application configuration."""

    # Database
    db_path: Path

    # Logging
    log_level: str

    # Loan rules
    loan_policy: LoanPolicy

    # Pagination
    page_size: int
    max_page_size: int

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get(
            "SCHOOLLIB_DB_PATH",
            str(Path.home() / ".schoollib" / "library.db"),
        )
        db_path = Path(db_path_str).expanduser()

        conditions = os.environ.get("SCHOOLLIB_LOANABLE_CONDITIONS", "good,deteriorated")

        policy = LoanPolicy(
            student=CategoryLimits(
                max_active_loans=int(os.environ.get("SCHOOLLIB_STUDENT_MAX_LOANS", "3")),
                max_quantity_per_loan=int(
                    os.environ.get("SCHOOLLIB_STUDENT_MAX_QUANTITY", "3")
                ),
                loan_period_days=int(os.environ.get("SCHOOLLIB_STUDENT_LOAN_DAYS", "15")),
            ),
            teacher=CategoryLimits(
                max_active_loans=int(os.environ.get("SCHOOLLIB_TEACHER_MAX_LOANS", "10")),
                max_quantity_per_loan=int(
                    os.environ.get("SCHOOLLIB_TEACHER_MAX_QUANTITY", "10")
                ),
                loan_period_days=int(os.environ.get("SCHOOLLIB_TEACHER_LOAN_DAYS", "30")),
            ),
            max_renewals=int(os.environ.get("SCHOOLLIB_MAX_RENEWALS", "2")),
            low_stock_threshold=int(os.environ.get("SCHOOLLIB_LOW_STOCK_THRESHOLD", "2")),
            loanable_conditions=frozenset(
                c.strip().lower() for c in conditions.split(",") if c.strip()
            ),
        )

        return cls(
            db_path=db_path,
            log_level=os.environ.get("SCHOOLLIB_LOG_LEVEL", "INFO").upper(),
            loan_policy=policy,
            page_size=int(os.environ.get("SCHOOLLIB_PAGE_SIZE", "20")),
            max_page_size=int(os.environ.get("SCHOOLLIB_MAX_PAGE_SIZE", "100")),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        # Check database directory is writable
        if not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        for name in ("student", "teacher"):
            limits: CategoryLimits = getattr(self.loan_policy, name)
            if limits.loan_period_days < 1:
                errors.append(f"{name} loan period must be at least 1 day")
            if limits.max_active_loans < 1:
                errors.append(f"{name} max active loans must be at least 1")
            if limits.max_quantity_per_loan < 1:
                errors.append(f"{name} max quantity per loan must be at least 1")

        known = {c.value for c in ResourceCondition}
        unknown = sorted(self.loan_policy.loanable_conditions - known)
        if unknown:
            errors.append(f"Unknown loanable conditions: {', '.join(unknown)}")

        if self.page_size < 1 or self.max_page_size < self.page_size:
            errors.append("Page size must be between 1 and the max page size")

        return errors


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for CLI and HTTP entry points."""
    logging.basicConfig(
        level=(level or get_config().log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
