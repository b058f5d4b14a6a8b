import unittest
from datetime import timedelta

from _support import add_job, add_user, make_session_factory

from locallabor.db.models import Application, utcnow
from locallabor.query.compiler import compile_predicate, compile_predicates
from locallabor.query.paging import PageRequest
from locallabor.query.predicates import Proximity, build_job_query
from locallabor.query.projection import applicant_counts, project_page
from locallabor.query.strategies import (
    PlainFilterStrategy,
    ProximityStrategy,
    select_strategy,
)


def _ids(session, params, page=None):
    query = build_job_query(params)
    strategy = select_strategy(query)
    ranked = strategy.fetch(session, compile_predicates(query.predicates), page or PageRequest(1, 100))
    return [job.id for job in ranked.jobs], ranked


class CompiledFilterTests(unittest.TestCase):
    def setUp(self):
        self.SessionLocal = make_session_factory()
        self.session = self.SessionLocal()
        self.employer = add_user(self.session, "acme")
        self.other = add_user(self.session, "bolt")
        now = utcnow()
        self.lawn = add_job(
            self.session,
            self.employer,
            title="Lawn care",
            description="Mow the back field",
            city="Springfield",
            pay=(10, 50),
            skills=["Mowing", "Landscaping"],
            posted_at=now - timedelta(hours=2),
        )
        self.fence = add_job(
            self.session,
            self.employer,
            title="Fence repair",
            description="Replace two panels",
            city="Shelbyville",
            job_type="Contract",
            pay=(60, 80),
            skills=["Carpentry"],
            posted_at=now - timedelta(days=5),
        )
        self.paint = add_job(
            self.session,
            self.other,
            title="Paint garage",
            description="Exterior, 100% latex",
            city="North Springfield",
            job_type="Temporary",
            pay=(15, 20),
            status="Filled",
            posted_at=now - timedelta(days=20),
        )

    def tearDown(self):
        self.session.close()

    def test_pay_range_overlap(self):
        self.assertEqual(_ids(self.session, {"minPay": "40"})[0], [self.lawn.id, self.fence.id])
        self.assertEqual(_ids(self.session, {"maxPay": "5"})[0], [])
        self.assertEqual(_ids(self.session, {"minPay": "18", "maxPay": "55"})[0], [self.lawn.id, self.paint.id])

    def test_city_is_case_insensitive_substring(self):
        ids, _ = _ids(self.session, {"city": "SPRING"})
        self.assertEqual(ids, [self.lawn.id, self.paint.id])

    def test_city_wildcards_are_literal(self):
        self.assertEqual(_ids(self.session, {"city": "%"})[0], [])

    def test_job_type_any_of(self):
        ids, _ = _ids(self.session, {"jobType": "contract,temporary"})
        self.assertEqual(ids, [self.fence.id, self.paint.id])

    def test_skills_any_of_case_insensitive(self):
        ids, _ = _ids(self.session, {"skills": "carpentry,MOWING"})
        self.assertEqual(ids, [self.lawn.id, self.fence.id])

    def test_date_windows(self):
        self.assertEqual(_ids(self.session, {"datePosted": "24h"})[0], [self.lawn.id])
        self.assertEqual(_ids(self.session, {"datePosted": "7d"})[0], [self.lawn.id, self.fence.id])
        self.assertEqual(len(_ids(self.session, {"datePosted": "30d"})[0]), 3)

    def test_status_and_employer(self):
        self.assertEqual(_ids(self.session, {"status": "Filled"})[0], [self.paint.id])
        ids, _ = _ids(self.session, {"employerId": str(self.employer.id)})
        self.assertEqual(ids, [self.lawn.id, self.fence.id])

    def test_invalid_employer_matches_nothing(self):
        ids, ranked = _ids(self.session, {"employerId": "abc"})
        self.assertEqual((ids, ranked.total), ([], 0))

    def test_text_search_spans_fields_and_escapes_wildcards(self):
        self.assertEqual(_ids(self.session, {"q": "panels"})[0], [self.fence.id])
        self.assertEqual(_ids(self.session, {"q": "shelby"})[0], [self.fence.id])
        self.assertEqual(_ids(self.session, {"q": "100%"})[0], [self.paint.id])

    def test_unknown_clause_type_is_rejected(self):
        with self.assertRaises(TypeError):
            compile_predicate(object())


class RankingStrategyTests(unittest.TestCase):
    def setUp(self):
        self.SessionLocal = make_session_factory()
        self.session = self.SessionLocal()
        self.employer = add_user(self.session, "acme")
        now = utcnow()
        # ~1.1 km apart per 0.01 degree of latitude
        self.here = add_job(self.session, self.employer, title="Here", lon=10.0, lat=20.0, posted_at=now - timedelta(days=3))
        self.near = add_job(self.session, self.employer, title="Near", lon=10.0, lat=20.01, posted_at=now - timedelta(days=1))
        self.far = add_job(self.session, self.employer, title="Far", lon=10.0, lat=21.0, job_type="Contract", posted_at=now)
        self.twin = add_job(self.session, self.employer, title="Twin", lon=10.0, lat=20.0, posted_at=now - timedelta(hours=1))
        self.unknown = add_job(self.session, self.employer, title="Unknown", posted_at=now - timedelta(days=2))

    def tearDown(self):
        self.session.close()

    def test_strategy_selection(self):
        self.assertIsInstance(select_strategy(build_job_query({})), PlainFilterStrategy)
        self.assertIsInstance(
            select_strategy(build_job_query({"lon": "1", "lat": "2", "maxDistance": "3"})),
            ProximityStrategy,
        )

    def test_plain_orders_newest_first(self):
        ids, ranked = _ids(self.session, {})
        self.assertEqual(ids, [self.far.id, self.twin.id, self.near.id, self.unknown.id, self.here.id])
        self.assertEqual(ranked.distances, {})

    def test_proximity_orders_by_distance_then_recency(self):
        ids, ranked = _ids(self.session, {"lon": "10", "lat": "20", "maxDistance": "5000"})
        self.assertEqual(ids, [self.twin.id, self.here.id, self.near.id])
        self.assertEqual(ranked.total, 3)
        self.assertAlmostEqual(ranked.distances[self.twin.id], 0.0)
        self.assertAlmostEqual(ranked.distances[self.near.id], 1111.95, delta=1.0)

    def test_proximity_radius_is_inclusive_and_exact(self):
        ids, _ = _ids(self.session, {"lon": "10", "lat": "20", "maxDistance": "0"})
        self.assertEqual(ids, [self.twin.id, self.here.id])

    def test_filters_are_identical_with_and_without_proximity(self):
        everywhere = {"lon": "10", "lat": "20", "maxDistance": "1e8"}
        for params in ({}, {"jobType": "Contract"}, {"city": "spring"}, {"minPay": "60"}, {"q": "near"}):
            with self.subTest(params=params):
                plain_ids, plain = _ids(self.session, params)
                near_ids, near = _ids(self.session, {**params, **everywhere})
                self.assertEqual(sorted(plain_ids), sorted(near_ids))
                self.assertEqual(plain.total, near.total)

    def test_pages_are_disjoint_and_totals_stable(self):
        seen = []
        for number in (1, 2, 3):
            ids, ranked = _ids(self.session, {}, PageRequest(number, 2))
            self.assertEqual(ranked.total, 5)
            seen.extend(ids)
        self.assertEqual(len(seen), 5)
        self.assertEqual(len(set(seen)), 5)

        ids, ranked = _ids(self.session, {"lon": "10", "lat": "20", "maxDistance": "1e8"}, PageRequest(3, 2))
        self.assertEqual((ids, ranked.total), ([self.unknown.id], 5))

    def test_page_past_the_end_is_empty(self):
        ids, ranked = _ids(self.session, {}, PageRequest(9, 10))
        self.assertEqual((ids, ranked.total), ([], 5))

    def test_latitude_band_keeps_points_across_the_antimeridian(self):
        east = add_job(self.session, self.employer, title="East", lon=179.99, lat=0.5)
        strategy = ProximityStrategy(Proximity(longitude=-179.99, latitude=0.5, max_distance_m=5000))
        ranked = strategy.fetch(self.session, [], PageRequest(1, 10))
        self.assertEqual([job.id for job in ranked.jobs], [east.id])


class ProximityParityTests(unittest.TestCase):
    """Every filter selects the same jobs whether or not a radius is given."""

    def setUp(self):
        self.SessionLocal = make_session_factory()
        self.session = self.SessionLocal()
        acme = add_user(self.session, "acme")
        self.bolt = add_user(self.session, "bolt")
        now = utcnow()
        self.mow = add_job(
            self.session, acme, title="Mow lawn", lon=10.0, lat=20.001, skills=["Mowing"],
            pay=(10, 30), posted_at=now - timedelta(hours=1),
        )
        self.hedge = add_job(
            self.session, acme, title="Trim hedges", city="Shelbyville", job_type="Contract", lon=10.0, lat=20.002,
            skills=["Hedge trimming"], pay=(35, 60), posted_at=now - timedelta(days=10),
        )
        self.roof = add_job(
            self.session, self.bolt, title="Roof patch", city="North Springfield", job_type="Temporary",
            lon=10.0, lat=20.003, skills=["Roofing"], pay=(50, 90), status="Filled",
            posted_at=now - timedelta(days=2),
        )
        self.yard = add_job(
            self.session, self.bolt, title="Yard cleanup", lon=10.0, lat=20.004, skills=["MOWING", "Raking"],
            pay=(45, 70), posted_at=now - timedelta(days=40),
        )
        self.everywhere = {"lon": "10", "lat": "20", "maxDistance": "50000"}

    def tearDown(self):
        self.session.close()

    def test_each_filter_narrows_identically(self):
        cases = [
            ({}, {self.mow, self.hedge, self.roof, self.yard}),
            ({"skills": "mowing"}, {self.mow, self.yard}),
            ({"skills": "roofing, hedge trimming"}, {self.hedge, self.roof}),
            ({"datePosted": "7d"}, {self.mow, self.roof}),
            ({"datePosted": "24h"}, {self.mow}),
            ({"status": "Filled"}, {self.roof}),
            ({"status": "Active"}, {self.mow, self.hedge, self.yard}),
            ({"maxPay": "40"}, {self.mow, self.hedge}),
            ({"minPay": "65"}, {self.roof, self.yard}),
            ({"employerId": str(self.bolt.id)}, {self.roof, self.yard}),
            ({"jobType": "Contract"}, {self.hedge}),
            ({"city": "spring"}, {self.mow, self.roof, self.yard}),
            ({"q": "roof"}, {self.roof}),
            ({"skills": "mowing", "datePosted": "7d", "maxPay": "40", "status": "Active"}, {self.mow}),
        ]
        for params, expected in cases:
            with self.subTest(params=params):
                want = sorted(job.id for job in expected)
                plain_ids, plain = _ids(self.session, params)
                near_ids, near = _ids(self.session, {**params, **self.everywhere})
                self.assertEqual(sorted(plain_ids), want)
                self.assertEqual(sorted(near_ids), want)
                self.assertEqual((plain.total, near.total), (len(want), len(want)))


class ProjectionTests(unittest.TestCase):
    def setUp(self):
        self.SessionLocal = make_session_factory()
        self.session = self.SessionLocal()
        self.employer = add_user(self.session, "acme", company_name="Acme Co")
        self.worker = add_user(self.session, "wanda", user_type="laborer")
        self.busy = add_job(self.session, self.employer, title="Busy")
        self.quiet = add_job(self.session, self.employer, title="Quiet")
        self.session.add(Application(job_id=self.busy.id, applicant_id=self.worker.id, resume_url="/uploads/x.pdf"))
        self.session.commit()

    def tearDown(self):
        self.session.close()

    def test_applicant_counts_fill_zero(self):
        counts = applicant_counts(self.session, [self.busy.id, self.quiet.id])
        self.assertEqual(counts, {self.busy.id: 1, self.quiet.id: 0})

    def test_project_page_decorates_every_item(self):
        ranked = PlainFilterStrategy().fetch(self.session, [], PageRequest(1, 1))
        page = project_page(self.session, ranked, PageRequest(1, 1), with_applicant_counts=True)
        self.assertEqual((page.total, page.current_page, page.total_pages), (2, 1, 2))
        item = page.jobs[0]
        self.assertEqual(item.employer.company_name, "Acme Co")
        self.assertIsNotNone(item.applicants_count)
        self.assertFalse(item.location_known)
        self.assertEqual(item.location.coordinates, [0.0, 0.0])


if __name__ == "__main__":
    unittest.main()
