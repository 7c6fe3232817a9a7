"""
HTTP tests for the categorization, recommendation and portfolio endpoints.
"""

import unittest

from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from cardmatch.db.db import Base, create_db_engine
from cardmatch.dependencies.db import get_db
from cardmatch.dependencies.services import get_categorization_service
from cardmatch.engine.models import ClassificationSource
from cardmatch.errors import ProviderUnavailableError
from cardmatch.main import app
from cardmatch.services.catalog_repository import load_catalog_file, seed_catalog
from cardmatch.services.categorization_service import CategorizationService, Tier
from cardmatch.services.merchant_matcher import KeywordMatcher
from cardmatch.services.result_cache import ResultCache
from tests.factories import make_result, mock_classifier


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        engine = create_db_engine("sqlite:///:memory:")
        Base.metadata.create_all(bind=engine)
        self.Session = sessionmaker(bind=engine)

        with self.Session() as db:
            seed_catalog(db, load_catalog_file())

        def override_get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        self.llm = mock_classifier(return_value=make_result("Other", 0.7, "llm"))
        self.categorizer = CategorizationService(
            [
                Tier(ClassificationSource.KEYWORD, KeywordMatcher(), 0.8),
                Tier(ClassificationSource.LLM, self.llm, 0.0, 1.0),
            ],
            ResultCache(),
        )

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_categorization_service] = lambda: self.categorizer
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()

    def assertErrorCode(self, resp, status_code, code):
        self.assertEqual(resp.status_code, status_code)
        self.assertEqual(resp.json()["error"]["code"], code)


class CategorizeApiTests(ApiTestCase):
    def test_keyword_match(self):
        resp = self.client.post("/api/v1/categorize", json={"description": "STARBUCKS #1234 SEATTLE"})

        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["category"], "Dining")
        self.assertEqual(data["source"], "keyword")
        self.assertGreaterEqual(data["confidence"], 0.8)

    def test_repeat_is_served_from_cache(self):
        self.client.post("/api/v1/categorize", json={"description": "SHELL OIL 57442"})
        resp = self.client.post("/api/v1/categorize", json={"description": "shell oil 57442"})

        self.assertEqual(resp.json()["source"], "cache")
        self.assertEqual(resp.json()["category"], "Gas")

    def test_blank_description_returns_400(self):
        resp = self.client.post("/api/v1/categorize", json={"description": "   "})
        self.assertErrorCode(resp, 400, "VALIDATION_ERROR")

    def test_missing_description_returns_400(self):
        resp = self.client.post("/api/v1/categorize", json={})
        self.assertErrorCode(resp, 400, "VALIDATION_ERROR")

    def test_invalid_force_tier_returns_400(self):
        resp = self.client.post("/api/v1/categorize", json={"description": "coffee", "force_tier": "oracle"})
        self.assertErrorCode(resp, 400, "VALIDATION_ERROR")

    def test_all_tiers_failed_returns_503(self):
        self.llm.classify.side_effect = ProviderUnavailableError("llm down")

        resp = self.client.post("/api/v1/categorize", json={"description": "weekend at a lakeside cabin"})

        self.assertErrorCode(resp, 503, "CLASSIFICATION_UNAVAILABLE")

    def test_force_llm(self):
        resp = self.client.post(
            "/api/v1/categorize", json={"description": "STARBUCKS #1234", "force_tier": "llm"}
        )

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["source"], "llm")
        self.llm.classify.assert_awaited_once()

    def test_cache_stats_and_clear(self):
        self.client.post("/api/v1/categorize", json={"description": "STARBUCKS #1234"})

        stats = self.client.get("/api/v1/categorize/cache").json()
        self.assertEqual(stats["size"], 1)
        self.assertEqual(stats["entries"], ["starbucks #1234"])

        cleared = self.client.delete("/api/v1/categorize/cache").json()
        self.assertEqual(cleared, {"cleared": 1})
        self.assertEqual(self.client.get("/api/v1/categorize/cache").json()["size"], 0)


class RecommendationApiTests(ApiTestCase):
    def test_recommends_from_users_cards(self):
        resp = self.client.post(
            "/api/v1/recommendation",
            json={"description": "STARBUCKS #1234 SEATTLE", "amount": 50, "date": "2025-02-10", "user_id": 1},
        )

        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["classification"]["category"], "Dining")
        self.assertEqual(data["recommended"]["card_id"], 1)
        self.assertEqual(data["recommended"]["effective_rate"], 3.0)
        # 3x on $50 => $1.50
        self.assertEqual(data["recommended"]["reward_value"], 1.5)
        self.assertEqual([alt["card_name"] for alt in data["alternatives"]], ["Double Cash"])

    def test_whole_catalog_without_user(self):
        resp = self.client.post(
            "/api/v1/recommendation",
            json={"description": "STARBUCKS #1234 SEATTLE", "amount": 50, "date": "2025-02-10"},
        )

        data = resp.json()
        self.assertEqual(data["recommended"]["card_name"], "Freedom Flex")
        self.assertEqual(data["alternatives"][0]["card_name"], "Savor")

    def test_prior_spend_reports_cap(self):
        resp = self.client.post(
            "/api/v1/recommendation",
            json={
                "description": "WHOLE FOODS MARKET",
                "amount": 20,
                "date": "2025-02-10",
                "user_id": 2,
                "prior_spend": {"3": 5990},
            },
        )

        data = resp.json()
        ranked = [data["recommended"]] + data["alternatives"]
        blue_cash = next(rec for rec in ranked if rec["card_id"] == 3)
        # $10 left at 6x, $10 at base => 3.5x
        self.assertEqual(blue_cash["effective_rate"], 3.5)
        self.assertTrue(blue_cash["cap_status"]["exceeded"])
        self.assertEqual(blue_cash["cap_status"]["remaining"], 0.0)
        self.assertTrue(any("blended rate is" in line for line in blue_cash["reasoning"]))

    def test_portal_only_is_flagged(self):
        resp = self.client.post(
            "/api/v1/recommendation",
            json={"description": "MARRIOTT NYC", "amount": 400, "date": "2025-02-10", "user_id": 2},
        )

        data = resp.json()
        venture = next(rec for rec in [data["recommended"]] + data["alternatives"] if rec["card_id"] == 8)
        self.assertTrue(venture["portal_only"])
        self.assertEqual(venture["score_breakdown"]["simplicity"], 0.7)

    def test_user_without_cards(self):
        resp = self.client.post(
            "/api/v1/recommendation", json={"description": "STARBUCKS", "date": "2025-02-10", "user_id": 999}
        )

        self.assertEqual(resp.status_code, 200)
        self.assertIsNone(resp.json()["recommended"])

    def test_invalid_payloads_return_400(self):
        payloads = [
            {"description": "STARBUCKS", "amount": -5},
            {"description": "STARBUCKS", "date": "10/02/2025"},
            {"description": "STARBUCKS", "prior_spend": {"3": -1}},
        ]
        for payload in payloads:
            with self.subTest(payload=payload):
                resp = self.client.post("/api/v1/recommendation", json=payload)
                self.assertErrorCode(resp, 400, "VALIDATION_ERROR")


class PortfolioApiTests(ApiTestCase):
    def test_auto_mode(self):
        resp = self.client.post("/api/v1/portfolio/analyze", json={"mode": "auto"}, headers={"x-user-id": "1"})

        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["user_card_count"], 2)
        self.assertEqual(data["gaps"][0]["category"], "Travel")
        self.assertEqual(data["gaps"][0]["priority"], "high")
        self.assertEqual(data["gaps"][0]["market_leaders"][0]["card_name"], "Venture X")
        self.assertEqual(data["summary"]["total_gaps"], len(data["gaps"]))
        self.assertIsNone(data["gaps"][0]["has_good_coverage"])
        self.assertEqual(data["gaps"][0]["user_best_cards"], [])

    def test_category_mode_with_prefixed_user_id(self):
        resp = self.client.post(
            "/api/v1/portfolio/analyze",
            json={"mode": "category", "category": "grocery"},
            headers={"x-user-id": "u_1"},
        )

        self.assertEqual(resp.status_code, 200)
        gaps = resp.json()["gaps"]
        self.assertEqual(len(gaps), 1)
        self.assertEqual(gaps[0]["category"], "Grocery")
        self.assertEqual(gaps[0]["improvement"], 4.0)
        self.assertFalse(gaps[0]["has_good_coverage"])
        self.assertEqual([owned["card_name"] for owned in gaps[0]["user_best_cards"]], ["Double Cash"])
        self.assertEqual(
            [leader["card_name"] for leader in gaps[0]["market_leaders"]],
            ["Blue Cash Preferred", "Gold Card", "Savor"],
        )

    def test_missing_header_returns_401(self):
        resp = self.client.post("/api/v1/portfolio/analyze", json={"mode": "auto"})
        self.assertErrorCode(resp, 401, "UNAUTHORIZED")

    def test_malformed_header_returns_400(self):
        resp = self.client.post("/api/v1/portfolio/analyze", json={"mode": "auto"}, headers={"x-user-id": "abc"})
        self.assertErrorCode(resp, 400, "VALIDATION_ERROR")

    def test_category_mode_requires_category(self):
        resp = self.client.post("/api/v1/portfolio/analyze", json={"mode": "category"}, headers={"x-user-id": "1"})
        self.assertErrorCode(resp, 400, "VALIDATION_ERROR")

    def test_unknown_mode_returns_400(self):
        resp = self.client.post("/api/v1/portfolio/analyze", json={"mode": "weekly"}, headers={"x-user-id": "1"})
        self.assertErrorCode(resp, 400, "VALIDATION_ERROR")


if __name__ == "__main__":
    unittest.main()
