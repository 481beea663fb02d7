"""
api/routes/v1/books.py -- Book catalogue CRUD.

Routes:
  GET    /books        -- list books
  POST   /books        -- create a book
  GET    /books/{id}   -- one book
  PUT    /books/{id}   -- update the fields sent in the body
  DELETE /books/{id}   -- delete

The catalogue is public: none of these routes require a token.
"""

from fastapi import APIRouter, Request

from api.models import BookCreate, BookResponse, BookUpdate, MessageResponse
from auth.errors import NotFound, ValidationFailed
from books.store import BookStore

router = APIRouter()


@router.get("/books", response_model=list[BookResponse])
def list_books(request: Request) -> list[BookResponse]:
    store: BookStore = request.app.state.book_store
    return [BookResponse.from_book(b) for b in store.list_books()]


@router.post("/books", response_model=BookResponse, status_code=201)
def create_book(request: Request, body: BookCreate) -> BookResponse:
    store: BookStore = request.app.state.book_store
    book_id = store.create_book(body.to_book())
    return BookResponse.from_book(store.get_book(book_id))


@router.get("/books/{book_id}", response_model=BookResponse)
def get_book(request: Request, book_id: int) -> BookResponse:
    store: BookStore = request.app.state.book_store
    book = store.get_book(book_id)
    if book is None:
        raise NotFound("Book not found.")
    return BookResponse.from_book(book)


@router.put("/books/{book_id}", response_model=BookResponse)
def update_book(request: Request, book_id: int, body: BookUpdate) -> BookResponse:
    store: BookStore = request.app.state.book_store
    updates = body.model_dump(exclude_unset=True)
    if "title" in updates and updates["title"] is None:
        raise ValidationFailed("title cannot be null.")
    if updates.get("published_date") is not None:
        updates["published_date"] = updates["published_date"].isoformat()
    book = store.update_book(book_id, **updates)
    if book is None:
        raise NotFound("Book not found.")
    return BookResponse.from_book(book)


@router.delete("/books/{book_id}", response_model=MessageResponse)
def delete_book(request: Request, book_id: int) -> MessageResponse:
    store: BookStore = request.app.state.book_store
    if not store.delete_book(book_id):
        raise NotFound("Book not found.")
    return MessageResponse(message="Book deleted successfully.")
