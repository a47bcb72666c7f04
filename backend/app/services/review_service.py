# Overview: Service-layer operations for product reviews; keeps product ratings in step.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func

from ..extensions import db
from ..models import Review, Product, User
from ..errors import ForbiddenError, ReviewNotFoundError, ProductNotFoundError, UserNotFoundError


def _refresh_product_rating(product_id: int) -> None:
    """Product.rating is the mean review rating to one decimal (None with no reviews)."""
    avg = db.session.query(func.avg(Review.rating)).filter(Review.product_id == product_id).scalar()
    product = db.session.get(Product, product_id)
    if product is None:
        return
    if avg is None:
        product.rating = None
    else:
        product.rating = Decimal(str(avg)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


def _check_author(review: Review, user: User) -> None:
    if review.user_id != user.id and not user.is_admin:
        raise ForbiddenError("You can only modify your own reviews")


def list_reviews() -> list[Review]:
    return db.session.query(Review).order_by(Review.created_at.desc(), Review.id.desc()).all()


def get_review(review_id: int) -> Review:
    review = db.session.get(Review, review_id)
    if not review:
        raise ReviewNotFoundError()
    return review


def list_product_reviews(product_id: int) -> list[Review]:
    """Raises ProductNotFoundError."""
    if not db.session.get(Product, product_id):
        raise ProductNotFoundError()
    return (
        db.session.query(Review)
        .filter_by(product_id=product_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )


def list_user_reviews(user_id: int) -> list[Review]:
    if not db.session.get(User, user_id):
        raise UserNotFoundError()
    return (
        db.session.query(Review)
        .filter_by(user_id=user_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )


def create_review(user: User, product_id: int, patch: dict) -> Review:
    """
    Create a review from a validated patch (validation.REVIEW_POLICY).

    The author's display name is snapshotted onto the review.
    """
    if not db.session.get(Product, product_id):
        raise ProductNotFoundError()

    review = Review(
        user_id=user.id,
        product_id=product_id,
        user_name=user.name,
        rating=patch["rating"],
        comment=patch["comment"],
    )
    db.session.add(review)
    db.session.flush()
    _refresh_product_rating(product_id)
    db.session.commit()
    return review


def update_review(user: User, review_id: int, patch: dict) -> Review:
    """Author or admin only. Raises ReviewNotFoundError, ForbiddenError."""
    review = get_review(review_id)
    _check_author(review, user)

    for key in ("rating", "comment"):
        if key in patch:
            setattr(review, key, patch[key])
    db.session.flush()
    _refresh_product_rating(review.product_id)
    db.session.commit()
    return review


def delete_review(user: User, review_id: int) -> None:
    """Author or admin only. Raises ReviewNotFoundError, ForbiddenError."""
    review = get_review(review_id)
    _check_author(review, user)

    product_id = review.product_id
    db.session.delete(review)
    db.session.flush()
    _refresh_product_rating(product_id)
    db.session.commit()
