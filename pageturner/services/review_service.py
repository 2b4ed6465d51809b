"""Review service with business logic."""

import logging
from typing import Optional
from uuid import UUID, uuid4

from pageturner.core.constants import MESSAGES
from pageturner.core.errors import BookError
from pageturner.domain.entities import Book, HistoryEntry, Review
from pageturner.domain.repositories import IBookRepository, IHistoryRepository, IReviewRepository

logger = logging.getLogger(__name__)


def add_to_average(average: float, count: int, rating: int) -> float:
    return (average * count + rating) / (count + 1)


def replace_in_average(average: float, count: int, old: int, new: int) -> float:
    if count <= 0:
        return float(new)
    return (average * count - old + new) / count


def remove_from_average(average: float, count: int, rating: int) -> float:
    if count <= 1:
        return 0.0
    return max(average * count - rating, 0.0) / (count - 1)


class ReviewService:
    """Handles review CRUD and keeps each book's rating a running average."""

    def __init__(
        self,
        review_repository: IReviewRepository,
        book_repository: IBookRepository,
        history_repository: Optional[IHistoryRepository] = None,
    ):
        self.review_repository = review_repository
        self.book_repository = book_repository
        self.history_repository = history_repository

    async def _get_book(self, book_id: str) -> Book:
        book = await self.book_repository.get_by_id(book_id)
        if not book:
            raise BookError(MESSAGES["book_not_found"], code="book/not-found")
        return book

    async def create_review(self, user_id: UUID, book_id: str, rating: int, text: str) -> Review:
        """Create a review; one per user and book."""
        book = await self._get_book(book_id)

        existing = await self.review_repository.get_by_user_and_book(user_id, book_id)
        if existing:
            raise ValueError(MESSAGES["review_exists"])

        created = await self.review_repository.create(
            Review(id=uuid4(), user_id=user_id, book_id=book_id, rating=rating, text=text)
        )
        await self.book_repository.update_rating(
            book_id,
            add_to_average(book.rating, book.review_count, rating),
            book.review_count + 1,
        )
        if self.history_repository:
            await self.history_repository.record(
                HistoryEntry(id=uuid4(), user_id=user_id, action="review", book_id=book_id)
            )
        logger.info("Review created: %s for book %s", created.id, book_id)
        return created

    async def list_reviews(self, book_id: str, limit: int = 10) -> list[Review]:
        await self._get_book(book_id)
        return await self.review_repository.get_by_book(book_id, limit)

    async def _get_own_review(self, user_id: UUID, review_id: UUID) -> Review:
        review = await self.review_repository.get_by_id(review_id)
        if review is None:
            raise LookupError("Review not found")
        if review.user_id != user_id:
            raise PermissionError("You can only change your own reviews")
        return review

    async def update_review(
        self,
        user_id: UUID,
        review_id: UUID,
        *,
        rating: Optional[int] = None,
        text: Optional[str] = None,
    ) -> Review:
        review = await self._get_own_review(user_id, review_id)
        old_rating = review.rating
        if rating is not None:
            review.rating = rating
        if text is not None:
            review.text = text
        updated = await self.review_repository.update(review)

        if updated.rating != old_rating:
            book = await self.book_repository.get_by_id(review.book_id)
            if book:
                await self.book_repository.update_rating(
                    book.id,
                    replace_in_average(book.rating, book.review_count, old_rating, updated.rating),
                    book.review_count,
                )
        return updated

    async def delete_review(self, user_id: UUID, review_id: UUID) -> None:
        review = await self._get_own_review(user_id, review_id)
        book = await self.book_repository.get_by_id(review.book_id)
        if book:
            await self.book_repository.update_rating(
                book.id,
                remove_from_average(book.rating, book.review_count, review.rating),
                max(book.review_count - 1, 0),
            )
        await self.review_repository.delete(review_id)
        logger.info("Review deleted: %s for book %s", review_id, review.book_id)
