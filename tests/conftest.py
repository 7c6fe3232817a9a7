import os

# Settings are read at import time; keep tests offline and off the on-disk database
os.environ["OPENAI_API_KEY"] = ""
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from sqlalchemy.orm import sessionmaker

import cardmatch.models  # noqa: F401  (registers the tables on Base)
from cardmatch.db.db import Base, create_db_engine
from cardmatch.engine.models import ClassificationSource
from cardmatch.services.catalog_repository import load_catalog_file, seed_catalog
from cardmatch.services.categorization_service import CategorizationService, Tier
from cardmatch.services.merchant_matcher import KeywordMatcher
from cardmatch.services.result_cache import ResultCache
from tests.factories import make_result, mock_classifier


@pytest.fixture
def llm_classifier():
    return mock_classifier(return_value=make_result("Other", 0.7, "llm"))


@pytest.fixture
def keyword_only_service(llm_classifier):
    """Real keyword tier followed by a mocked LLM tier."""
    tiers = [
        Tier(ClassificationSource.KEYWORD, KeywordMatcher(), 0.8),
        Tier(ClassificationSource.LLM, llm_classifier, 0.0, 1.0),
    ]
    return CategorizationService(tiers, ResultCache())


@pytest.fixture
def sample_catalog():
    return load_catalog_file()


@pytest.fixture
def db_session(sample_catalog):
    """In-memory SQLite session seeded with the packaged sample catalog."""
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db = TestingSession()
    seed_catalog(db, sample_catalog)
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
