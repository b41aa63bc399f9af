"""HTTP API for circulation, built with Flask.

Endpoints:
- POST /api/loans                      create a loan
- POST /api/loans/validate             dry-run validation
- GET  /api/loans/can-borrow/<id>      borrowing capacity for a person
- POST /api/returns                    process a return
- PUT  /api/loans/<id>/renew           renew a loan
- PUT  /api/loans/<id>/mark-lost       declare a loan lost
- GET  /api/loans/overdue              paginated overdue loans
- GET  /api/loans/due-soon?days=N      paginated loans due soon
- GET  /api/loans                      paginated, filtered loan list
- GET  /api/loans/<id>                 one loan
- GET  /api/stats                      circulation statistics
- GET  /api/stats/monthly?year=Y       loans started per month of a year
- GET  /api/people/<id>                one person
- GET  /api/resources/<id>             one resource with its stock
"""

import logging
from datetime import date
from typing import Optional

from flask import Flask, jsonify, request
from pydantic import ValidationError as PydanticValidationError

from .catalog.schemas import ResourceResponse
from .config import get_config
from .errors import (
    ConflictError,
    DependencyError,
    InvalidStateError,
    LibraryError,
    NotFoundError,
    ValidationError,
)
from .loans.manager import CirculationManager
from .loans.schemas import (
    LoanCreate,
    LoanFilters,
    MarkLostRequest,
    RenewLoanRequest,
    ReturnLoanRequest,
)
from .people.schemas import PersonResponse
from .stats.analytics import LoanStatistics

logger = logging.getLogger(__name__)

STATUS_CODES = {
    ValidationError: 422,
    InvalidStateError: 409,
    ConflictError: 409,
    NotFoundError: 404,
    DependencyError: 503,
}


def _pagination() -> tuple[int, int]:
    """Read page/limit query parameters, capping the page size."""
    config = get_config()
    page = request.args.get("page", 1, type=int)
    limit = request.args.get("limit", config.page_size, type=int)
    return max(1, page), max(1, min(limit, config.max_page_size))


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def create_app(
    manager: Optional[CirculationManager] = None,
    statistics: Optional[LoanStatistics] = None,
) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    circulation = manager or CirculationManager()
    stats = statistics or LoanStatistics(circulation.db)

    @app.errorhandler(LibraryError)
    def handle_library_error(error: LibraryError):
        """Map the engine's error kinds to HTTP responses."""
        status = STATUS_CODES.get(type(error), 500)
        payload = {"error": error.code, "message": str(error)}
        if isinstance(error, ValidationError):
            payload["errors"] = error.errors
            payload["warnings"] = error.warnings
        if isinstance(error, DependencyError):
            logger.exception("dependency failure on %s %s", request.method, request.path)
        elif isinstance(error, ConflictError):
            logger.warning("conflict on %s %s: %s", request.method, request.path, error)
        return jsonify(payload), status

    @app.errorhandler(PydanticValidationError)
    def handle_bad_request(error: PydanticValidationError):
        """Malformed request bodies."""
        details = [
            f"{'.'.join(str(p) for p in e['loc']) or 'body'}: {e['msg']}"
            for e in error.errors()
        ]
        return jsonify({"error": "bad_request", "errors": details}), 400

    @app.errorhandler(ValueError)
    def handle_value_error(error: ValueError):
        return jsonify({"error": "bad_request", "errors": [str(error)]}), 400

    @app.route("/api/loans", methods=["POST"])
    def create_loan():
        """Validate and create a loan."""
        data = LoanCreate.model_validate(_json_body())
        loan = circulation.create_loan(data)
        return jsonify(loan.model_dump(mode="json")), 201

    @app.route("/api/loans/validate", methods=["POST"])
    def validate_loan():
        """Dry-run validation of a loan request."""
        data = LoanCreate.model_validate(_json_body())
        result = circulation.validate_loan(data)
        return jsonify(result.model_dump(mode="json"))

    @app.route("/api/loans/can-borrow/<person_id>")
    def can_borrow(person_id: str):
        """Borrowing capacity for a person."""
        capacity = circulation.can_person_borrow(person_id)
        return jsonify(capacity.model_dump(mode="json"))

    @app.route("/api/returns", methods=["POST"])
    def return_loan():
        """Process a return."""
        data = ReturnLoanRequest.model_validate(_json_body())
        outcome = circulation.return_loan(data)
        return jsonify(outcome.model_dump(mode="json"))

    @app.route("/api/loans/<loan_id>/renew", methods=["PUT"])
    def renew_loan(loan_id: str):
        """Renew an active loan."""
        data = RenewLoanRequest.model_validate(_json_body())
        loan = circulation.renew_loan(loan_id, data)
        return jsonify(loan.model_dump(mode="json"))

    @app.route("/api/loans/<loan_id>/mark-lost", methods=["PUT"])
    def mark_lost(loan_id: str):
        """Declare an active loan lost."""
        data = MarkLostRequest.model_validate(_json_body())
        loan = circulation.mark_lost(loan_id, data)
        return jsonify(loan.model_dump(mode="json"))

    @app.route("/api/loans/overdue")
    def overdue_loans():
        """Paginated overdue loans."""
        page, limit = _pagination()
        result = circulation.get_overdue_loans(page=page, limit=limit)
        return jsonify(result.model_dump(mode="json"))

    @app.route("/api/loans/due-soon")
    def loans_due_soon():
        """Paginated loans due within `days` days (default 3)."""
        page, limit = _pagination()
        days = request.args.get("days", 3, type=int)
        result = circulation.get_loans_due_soon(days=days, page=page, limit=limit)
        return jsonify(result.model_dump(mode="json"))

    @app.route("/api/loans")
    def list_loans():
        """Paginated loan list with optional filters."""
        page, limit = _pagination()
        filters = LoanFilters.model_validate(
            {
                **{k: v for k, v in request.args.items() if k not in ("page", "limit")},
                "page": page,
                "limit": limit,
            }
        )
        result = circulation.list_loans(filters)
        return jsonify(result.model_dump(mode="json"))

    @app.route("/api/loans/<loan_id>")
    def get_loan(loan_id: str):
        """Get one loan."""
        return jsonify(circulation.get_loan(loan_id).model_dump(mode="json"))

    @app.route("/api/stats")
    def get_stats():
        """Circulation statistics."""
        return jsonify(stats.get_stats().to_dict())

    @app.route("/api/stats/monthly")
    def loans_per_month():
        """Loans started in each month of `year` (default: this year)."""
        year = request.args.get("year", date.today().year, type=int)
        if year < 1:
            raise ValueError("year must be a positive integer")
        months = [
            {"month": month, "loans": count}
            for month, count in stats.loans_per_month(year).items()
        ]
        return jsonify({"year": year, "months": months})

    @app.route("/api/people/<person_id>")
    def get_person(person_id: str):
        """Get one person."""
        person = circulation.directory.get_person(person_id)
        return jsonify(PersonResponse.model_validate(person).model_dump(mode="json"))

    @app.route("/api/resources/<resource_id>")
    def get_resource(resource_id: str):
        """Get one resource with its stock counters."""
        resource = circulation.catalog.get_resource(resource_id)
        return jsonify(ResourceResponse.model_validate(resource).model_dump(mode="json"))

    return app
