import unittest

from _support import FakeGeocoder, add_job, add_user, make_session_factory

from locallabor.cli import build_parser
from locallabor.maintenance import backfill_locations


class BackfillLocationsTests(unittest.TestCase):
    def setUp(self):
        self.SessionLocal = make_session_factory()
        self.session = self.SessionLocal()
        employer = add_user(self.session, "acme")
        self.lost = add_job(self.session, employer, city="Springfield")
        self.nowhere = add_job(self.session, employer, city="Atlantis")
        self.flaky = add_job(self.session, employer, city="Flakyton")
        self.placed = add_job(self.session, employer, city="Shelbyville", lon=11.0, lat=21.0)
        self.geocoder = FakeGeocoder(places={"Springfield": (10.0, 20.0)}, fail={"Flakyton"})

    def tearDown(self):
        self.session.close()

    def test_sentinel_jobs_are_resolved(self):
        summary = backfill_locations(self.session, self.geocoder)

        self.assertEqual(
            (summary.checked, summary.updated, summary.unresolved, summary.failed),
            (3, 1, 1, 1),
        )
        self.assertNotIn("Shelbyville", self.geocoder.calls)
        self.session.refresh(self.lost)
        self.assertEqual((self.lost.longitude, self.lost.latitude), (10.0, 20.0))
        self.assertEqual(self.lost.address_text, "Springfield, Testland")
        self.assertTrue(self.lost.location_known)

    def test_dry_run_changes_nothing(self):
        summary = backfill_locations(self.session, self.geocoder, dry_run=True)
        self.assertEqual(summary.updated, 1)
        self.assertEqual(summary.sample[0]["id"], self.lost.id)
        self.session.refresh(self.lost)
        self.assertFalse(self.lost.location_known)

    def test_limit(self):
        summary = backfill_locations(self.session, self.geocoder, limit=1)
        self.assertEqual(summary.checked, 1)


class ParserTests(unittest.TestCase):
    def test_subcommands(self):
        parser = build_parser()
        args = parser.parse_args(["backfill-locations", "--dry-run", "--limit", "5"])
        self.assertTrue(args.dry_run)
        self.assertEqual(args.limit, 5)
        args = parser.parse_args(["serve", "--port", "9000"])
        self.assertEqual(args.port, 9000)
        with self.assertRaises(SystemExit):
            parser.parse_args([])


if __name__ == "__main__":
    unittest.main()
