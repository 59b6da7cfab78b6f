"""
Review Service

Guest feedback logged against duty slips.
"""

from typing import Any, Dict, List
import logging

from sqlalchemy import func

from errors import NotFoundError, PayloadError, ValidationError
from forms import ReviewForm
from models import db, DutySlip, Review
from .audit_service import AuditService
from .transaction_helper import TransactionHelper

logger = logging.getLogger(__name__)


class ReviewService:
    """Service class for guest reviews"""

    def __init__(self):
        self.audit_service = AuditService()

    @TransactionHelper.with_transaction
    def log_review(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(payload, dict):
            raise PayloadError("Request body must be a JSON object.")
        ReviewForm.from_payload(payload).validate_or_raise()

        max_id = db.session.query(func.max(Review.review_id)).scalar()
        review = Review()
        review.review_id = (max_id or 0) + 1
        review.follow_up_sent = 'No'
        review.apply_record(payload)
        db.session.add(review)
        db.session.flush()

        self.audit_service.log_action(
            action='review_logged',
            entity_type='review',
            entity_id=review.review_id,
            details={'ds_no': review.ds_no, 'rating': review.rating},
            actor_role='client',
        )
        logger.info(f"Review {review.review_id} logged for DS {review.ds_no} ({review.rating}/5)")
        return review.to_record()

    def list_reviews(self) -> List[Dict[str, Any]]:
        reviews = Review.query.order_by(Review.created_at.desc(), Review.review_id.desc()).all()
        return [review.to_record() for review in reviews]

    def get_review(self, review_id: Any) -> Review:
        try:
            number = int(str(review_id).strip())
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid review id: {review_id}", fields={'id': 'Must be a number'})
        review = Review.query.filter_by(review_id=number).first()
        if not review:
            raise NotFoundError(f"Review {number} not found.")
        return review

    def get_feedback_details(self, review_id: Any) -> Dict[str, Any]:
        """The review together with the duty slip it is about, if that slip still exists"""
        review = self.get_review(review_id)
        slip = None
        if review.ds_no and review.ds_no.isdigit():
            slip = DutySlip.query.filter_by(ds_no=int(review.ds_no)).first()
        return {
            'review': review.to_record(),
            'slip': slip.to_record() if slip else None,
        }
