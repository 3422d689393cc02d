from datetime import timedelta
from uuid import UUID

from tests.base import API, TourBookingApiBase
from app.models.common import utcnow
from app.models.review import Review
from app.models.tour import Tour


class ToursListTests(TourBookingApiBase):
    def setUp(self):
        super().setUp()
        self.forest = self.create_tour("The Forest Hiker", duration=5, price=397, ratings_average=4.7, created_offset_minutes=-3)
        self.sea = self.create_tour("The Sea Explorer", duration=7, difficulty="medium", price=497, ratings_average=4.8, created_offset_minutes=-2)
        self.snow = self.create_tour("The Snow Adventurer", duration=4, difficulty="difficult", price=997, ratings_average=4.5, created_offset_minutes=-1)
        self.hidden = self.create_tour("The Secret Cave Tour", duration=6, secret_tour=True)

    def _names(self, response):
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertEqual(body["status"], "success")
        self.assertEqual(body["results"], len(body["data"]["data"]))
        return [doc.get("name") for doc in body["data"]["data"]]

    def test_default_listing_is_newest_first_and_hides_secret_tours(self):
        names = self._names(self.client.get(f"{API}/tours"))
        self.assertEqual(names, ["The Snow Adventurer", "The Sea Explorer", "The Forest Hiker"])

    def test_documents_are_camel_cased_without_version(self):
        doc = self.client.get(f"{API}/tours").json()["data"]["data"][0]
        self.assertIn("maxGroupSize", doc)
        self.assertIn("ratingsAverage", doc)
        self.assertNotIn("versionId", doc)
        self.assertNotIn("max_group_size", doc)

    def test_filter_with_operators(self):
        names = self._names(self.client.get(f"{API}/tours?duration[gte]=5&price[lt]=1000&sort=price"))
        self.assertEqual(names, ["The Forest Hiker", "The Sea Explorer"])

    def test_filter_by_equality_and_whitelisted_repeats(self):
        self.assertEqual(self._names(self.client.get(f"{API}/tours?difficulty=easy")), ["The Forest Hiker"])
        names = self._names(self.client.get(f"{API}/tours?difficulty=easy&difficulty=medium&sort=name"))
        self.assertEqual(names, ["The Forest Hiker", "The Sea Explorer"])

    def test_secret_tour_cannot_be_filtered_back_in(self):
        self.assertEqual(self._names(self.client.get(f"{API}/tours?secretTour=true")), [])

    def test_projection_and_pagination(self):
        response = self.client.get(f"{API}/tours?sort=price&fields=name,price&page=2&limit=1")
        docs = response.json()["data"]["data"]
        self.assertEqual(len(docs), 1)
        self.assertEqual(set(docs[0]), {"id", "name", "price"})
        self.assertEqual(docs[0]["name"], "The Sea Explorer")

    def test_huge_page_or_limit_is_not_an_error(self):
        response = self.client.get(f"{API}/tours?page=100000000000000000000")
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["results"], 0)

        names = self._names(self.client.get(f"{API}/tours?limit=100000000000000000000"))
        self.assertEqual(len(names), 3)

    def test_same_timestamp_is_ordered_by_ascending_id(self):
        stamp = utcnow() + timedelta(hours=1)
        ids = [str(self.create_tour(f"Same Moment Tour {idx}", created_at=stamp)) for idx in range(5)]
        expected = sorted(ids, key=UUID)
        for _ in range(2):
            docs = self.client.get(f"{API}/tours?limit=5").json()["data"]["data"]
            self.assertEqual([doc["id"] for doc in docs], expected)

    def test_invalid_filter_value_is_400(self):
        response = self.client.get(f"{API}/tours?duration[gte]=long")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"status": "fail", "message": "Invalid duration: long."})

    def test_unknown_filter_field_returns_no_results(self):
        self.assertEqual(self._names(self.client.get(f"{API}/tours?colour=red")), [])

    def test_top_five_cheap_alias(self):
        for idx in range(4):
            self.create_tour(f"Extra Tour Number {idx}", price=100 + idx, ratings_average=4.9)
        body = self.client.get(f"{API}/tours/top-5-cheap").json()
        docs = body["data"]["data"]
        self.assertEqual(body["results"], 5)
        self.assertEqual([doc["name"] for doc in docs[:4]], [f"Extra Tour Number {idx}" for idx in range(4)])
        self.assertEqual(docs[4]["name"], "The Sea Explorer")
        self.assertEqual(set(docs[0]), {"id", "name", "price", "ratingsAverage", "summary", "difficulty"})

    def test_tour_stats_groups_by_difficulty(self):
        stats = self.client.get(f"{API}/tours/tour-stats").json()["data"]["stats"]
        self.assertEqual([item["_id"] for item in stats], ["EASY", "MEDIUM", "DIFFICULT"])
        self.assertEqual(stats[0]["numTours"], 1)
        self.assertEqual(stats[2]["avgPrice"], 997.0)


class TourDetailTests(TourBookingApiBase):
    def test_get_one_populates_guides_and_reviews(self):
        guide_id = self.create_user(name="Guide", email="guide@example.com", role="guide")
        author_id = self.create_user(name="Author", email="author@example.com")
        tour_id = self.create_tour(guides=[str(guide_id)])
        with self.SessionLocal() as db:
            db.add(Review(review="Great!", rating=5, tour_id=tour_id, user_id=author_id))
            db.commit()

        response = self.client.get(f"{API}/tours/{tour_id}")
        self.assertEqual(response.status_code, 200, response.text)
        doc = response.json()["data"]["data"]
        self.assertEqual(doc["slug"], "the-forest-hiker")
        self.assertAlmostEqual(doc["durationWeeks"], 5 / 7)
        self.assertEqual([g["name"] for g in doc["guides"]], ["Guide"])
        self.assertNotIn("passwordHash", doc["guides"][0])
        self.assertEqual(doc["reviews"][0]["review"], "Great!")
        self.assertEqual(doc["reviews"][0]["user"]["name"], "Author")

    def test_secret_tour_is_not_found(self):
        tour_id = self.create_tour(secret_tour=True)
        response = self.client.get(f"{API}/tours/{tour_id}")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "No document found with that ID")

    def test_malformed_id_is_400(self):
        response = self.client.get(f"{API}/tours/not-an-id")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Invalid id: not-an-id.")


class TourWriteTests(TourBookingApiBase):
    payload = {
        "name": "The Park Camper",
        "duration": 10,
        "maxGroupSize": 15,
        "difficulty": "medium",
        "price": 1497,
        "summary": "Breathtaking hike through the Canadian Banff National Park",
        "imageCover": "tour-5-cover.jpg",
        "startDates": ["2026-08-05T09:00:00Z"],
    }

    def test_anonymous_create_is_401(self):
        response = self.client.post(f"{API}/tours", json=self.payload)
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], "You are not logged in! Please log in to get access.")

    def test_regular_user_create_is_403(self):
        _, headers = self.login_as("user")
        response = self.client.post(f"{API}/tours", json=self.payload, headers=headers)
        self.assertEqual(response.status_code, 403)

    def test_lead_guide_creates_tour_with_slug(self):
        _, headers = self.login_as("lead-guide")
        response = self.client.post(f"{API}/tours", json=self.payload, headers=headers)
        self.assertEqual(response.status_code, 201, response.text)
        doc = response.json()["data"]["data"]
        self.assertEqual(doc["slug"], "the-park-camper")
        self.assertEqual(doc["ratingsAverage"], 4.5)
        self.assertEqual(doc["ratingsQuantity"], 0)

    def test_validation_errors_are_400(self):
        _, headers = self.login_as("admin")
        response = self.client.post(f"{API}/tours", json={**self.payload, "name": "Short"}, headers=headers)
        self.assertEqual(response.status_code, 400)
        self.assertTrue(response.json()["message"].startswith("Invalid input data."))

        response = self.client.post(f"{API}/tours", json={**self.payload, "priceDiscount": 2000}, headers=headers)
        self.assertEqual(response.status_code, 400)

    def test_duplicate_name_is_400(self):
        self.create_tour("The Park Camper")
        _, headers = self.login_as("admin")
        response = self.client.post(f"{API}/tours", json=self.payload, headers=headers)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Duplicate field value. Please use another value.")

    def test_update_and_delete(self):
        tour_id = self.create_tour()
        _, headers = self.login_as("admin")
        response = self.client.patch(f"{API}/tours/{tour_id}", json={"price": 450, "name": "The Forest Walker"}, headers=headers)
        self.assertEqual(response.status_code, 200, response.text)
        doc = response.json()["data"]["data"]
        self.assertEqual(doc["price"], 450.0)
        self.assertEqual(doc["slug"], "the-forest-walker")

        response = self.client.delete(f"{API}/tours/{tour_id}", headers=headers)
        self.assertEqual(response.status_code, 204)
        self.assertIsNone(self.load(Tour, tour_id))


class TourInsightTests(TourBookingApiBase):
    def setUp(self):
        super().setUp()
        # Los Angeles and San Francisco are about 347 mi apart.
        self.la = self.create_tour(
            "The Los Angeles Tour",
            start_location={"type": "Point", "coordinates": [-118.2437, 34.0522]},
            start_dates=["2026-06-01T09:00:00+00:00", "2026-07-01T09:00:00+00:00"],
        )
        self.sf = self.create_tour(
            "The San Francisco Tour",
            start_location={"type": "Point", "coordinates": [-122.4194, 37.7749]},
            start_dates=["2026-06-15T09:00:00+00:00", "2025-06-15T09:00:00+00:00"],
        )

    def test_tours_within_radius(self):
        url = f"{API}/tours/tours-within/100/center/34.05,-118.24/unit/mi"
        names = [doc["name"] for doc in self.client.get(url).json()["data"]["data"]]
        self.assertEqual(names, ["The Los Angeles Tour"])

        url = f"{API}/tours/tours-within/400/center/34.05,-118.24/unit/mi"
        self.assertEqual(self.client.get(url).json()["results"], 2)

    def test_distances_are_sorted_and_converted(self):
        data = self.client.get(f"{API}/tours/distances/34.0522,-118.2437/unit/km").json()["data"]["data"]
        self.assertEqual([item["name"] for item in data], ["The Los Angeles Tour", "The San Francisco Tour"])
        self.assertAlmostEqual(data[0]["distance"], 0.0, places=3)
        self.assertGreater(data[1]["distance"], 540)
        self.assertLess(data[1]["distance"], 570)

    def test_bad_center_or_unit_is_400(self):
        self.assertEqual(self.client.get(f"{API}/tours/distances/34.05/unit/km").status_code, 400)
        self.assertEqual(self.client.get(f"{API}/tours/distances/34.05,-118.2/unit/ft").status_code, 400)

    def test_monthly_plan_requires_staff_role(self):
        self.assertEqual(self.client.get(f"{API}/tours/monthly-plan/2026").status_code, 401)
        _, headers = self.login_as("user")
        self.assertEqual(self.client.get(f"{API}/tours/monthly-plan/2026", headers=headers).status_code, 403)

    def test_monthly_plan_counts_starts_per_month(self):
        _, headers = self.login_as("guide")
        plan = self.client.get(f"{API}/tours/monthly-plan/2026", headers=headers).json()["data"]["plan"]
        self.assertEqual(plan[0], {"month": 6, "numTourStarts": 2, "tours": ["The Los Angeles Tour", "The San Francisco Tour"]})
        self.assertEqual(plan[1]["month"], 7)
        self.assertEqual(len(plan), 2)
