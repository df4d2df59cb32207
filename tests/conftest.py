"""Pytest fixtures for testing"""

import pytest
from typing import Dict, Generator, List, Optional
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from rt_finance.api.dependencies import get_breakdown_cache, get_image_store, get_notifier, get_ocr
from rt_finance.api.main import create_app
from rt_finance.domain.exceptions import ImageStoreError, OCRError
from rt_finance.infrastructure.database.models import Base, Resident
from rt_finance.infrastructure.database.session import get_db
from rt_finance.services.reconciler import MonthlyFeeReconciler
from rt_finance.utils.date_utils import parse_period


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class InMemoryImageStore:
    """Receipt storage double; URLs resolve back to the uploaded bytes"""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}

    def put(self, url: str, content: bytes) -> str:
        self.objects[url] = content
        return url

    def upload(self, content: bytes, filename: str = "receipt.jpg") -> str:
        return self.put(f"https://img.test/monthly-fee/{len(self.objects) + 1}-{filename}", content)

    def fetch(self, url: str) -> bytes:
        if url not in self.objects:
            raise ImageStoreError("Image download error: 404")
        return self.objects[url]


class TextOCR:
    """OCR double: the "image" bytes are the receipt text itself"""

    def recognize(self, image_bytes: bytes) -> str:
        if image_bytes.startswith(b"\x00"):
            raise OCRError("Uploaded file is not a readable image")
        return image_bytes.decode("utf-8")


class RecordingNotifier:
    def __init__(self):
        self.approval_requests: List[dict] = []
        self.manual_input_requests: List[dict] = []
        self.callback_answers: List[tuple] = []
        self.caption_edits: List[tuple] = []
        self.messages: List[tuple] = []

    def send_approval_request(self, payment: dict) -> None:
        self.approval_requests.append(payment)

    def send_manual_input_request(self, payment: dict) -> None:
        self.manual_input_requests.append(payment)

    def answer_callback_query(self, callback_query_id: str, text: str) -> None:
        self.callback_answers.append((callback_query_id, text))

    def edit_message_caption(self, chat_id, message_id: int, caption: str) -> None:
        self.caption_edits.append((chat_id, message_id, caption))

    def send_message(self, chat_id, text: str, reply_to_message_id: Optional[int] = None) -> None:
        self.messages.append((chat_id, text, reply_to_message_id))


class DictCache:
    """Breakdown cache double with the same period-keyed interface"""

    def __init__(self):
        self.store: Dict[str, object] = {}
        self.invalidated: List[str] = []

    @staticmethod
    def _key(period: str) -> str:
        year, month = parse_period(period)
        return f"breakdown:{year:04d}:{month:02d}"

    def get(self, period: str) -> Optional[object]:
        return self.store.get(self._key(period))

    def set(self, period: str, value: object, today=None) -> None:
        self.store[self._key(period)] = value

    def invalidate(self, period: str) -> None:
        self.invalidated.append(period)
        self.store.pop(self._key(period), None)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def image_store() -> InMemoryImageStore:
    return InMemoryImageStore()


@pytest.fixture
def ocr() -> TextOCR:
    return TextOCR()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def cache() -> DictCache:
    return DictCache()


@pytest.fixture
def reconciler(db, image_store, ocr, notifier, cache) -> MonthlyFeeReconciler:
    """Reconciler that runs its side effects inline"""
    return MonthlyFeeReconciler(db, image_store=image_store, ocr=ocr, notifier=notifier, cache=cache)


@pytest.fixture
def residents(db: Session) -> List[Resident]:
    """Three registered households in block B1"""
    rows = [
        Resident(block="B1", house_number="10", full_name="Budi Santoso"),
        Resident(block="B1", house_number="11", full_name="Siti Aminah"),
        Resident(block="B1", house_number="12", full_name="Agus Wijaya"),
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.fixture
def client(db: Session, image_store, ocr, notifier, cache) -> TestClient:
    """Create FastAPI test client with test database and in-memory collaborators"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_image_store] = lambda: image_store
    app.dependency_overrides[get_ocr] = lambda: ocr
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_breakdown_cache] = lambda: cache
    return TestClient(app)
