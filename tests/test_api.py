import threading
import time
import unittest
from pathlib import Path
from typing import List

from almanac.api.orchestrator import SearchRun
from almanac.api.server import app, search_options
from almanac.search.progress import ProgressEvent

EXAMPLE_TEXT = (Path(__file__).parent / "data" / "example_almanac.txt").read_text()


class TestAPISearches(unittest.TestCase):
    def setUp(self):
        app.testing = True
        app.config['API_KEY'] = None
        self.client = app.test_client()

    def _wait_for_completion(self, sid: str, timeout_s: float = 10.0) -> dict:
        deadline = time.time() + timeout_s
        last = None
        while time.time() < deadline:
            rv = self.client.get(f"/searches/{sid}")
            if rv.status_code != 200:
                time.sleep(0.05)
                continue
            last = rv.get_json()
            if last and last.get("status") in ("completed", "failed"):
                return last
            time.sleep(0.05)
        return last or {}

    def test_post_requires_almanac(self):
        rv = self.client.post("/searches", json={})
        self.assertEqual(rv.status_code, 400)
        self.assertEqual(rv.get_json().get("error"), "almanac is required")

    def test_post_rejects_bad_options(self):
        rv = self.client.post("/searches", json={"almanac": EXAMPLE_TEXT, "part": 3})
        self.assertEqual(rv.status_code, 400)
        rv = self.client.post("/searches", json={"almanac": EXAMPLE_TEXT, "workers": 0})
        self.assertEqual(rv.status_code, 400)

    def test_search_contract_and_events(self):
        rv = self.client.post("/searches", json={"almanac": EXAMPLE_TEXT, "workers": 2, "chunk_size": 4})
        self.assertEqual(rv.status_code, 200)
        body = rv.get_json()
        self.assertEqual(body.get("status"), "queued")
        sid = body["search_id"]

        final = self._wait_for_completion(sid)
        self.assertEqual(final.get("status"), "completed")
        self.assertEqual(final["summary"]["minimum"], 46)
        self.assertEqual(final["summary"]["values"], 27)

        stages = [e.get("stage") for e in final["events"]]
        expected_prefix: List[str] = ["Parse", "Validate", "Search", "Export"]
        it = iter(stages)
        for s in expected_prefix:
            for t in it:
                if t == s:
                    break
            else:
                self.fail(f"Did not find stage '{s}' in order. Stages: {stages}")
        self.assertEqual(stages[-1], "Done")

        self.assertEqual(set(final["artifacts"]), {"workers.csv", "summary.md"})
        rv_art = self.client.get(f"/searches/{sid}/artifacts/workers.csv")
        self.assertEqual(rv_art.status_code, 200)
        self.assertEqual(rv_art.mimetype, "text/csv")
        lines = rv_art.get_data(as_text=True).splitlines()
        self.assertTrue(lines[0].startswith("worker_id,range_start,range_end"))
        self.assertEqual(len(lines), 1 + 8)  # 14 and 13 values in chunks of 4

    def test_part_one(self):
        rv = self.client.post("/searches", json={"almanac": EXAMPLE_TEXT, "part": 1})
        final = self._wait_for_completion(rv.get_json()["search_id"])
        self.assertEqual(final.get("status"), "completed")
        self.assertEqual(final["summary"], {"part": 1, "minimum": 35, "values": 4})

    def test_parse_failure_reports_stage(self):
        rv = self.client.post("/searches", json={"almanac": "seeds: 1 2\n\nseed-to-location\n0 0 1\n"})
        final = self._wait_for_completion(rv.get_json()["search_id"])
        self.assertEqual(final.get("status"), "failed")
        self.assertEqual(final.get("error_stage"), "parse")
        self.assertEqual(final["artifacts"], [])
        self.assertEqual(final["events"][-1]["stage"], "Error")

    def test_domain_and_resolve_failures(self):
        rv = self.client.post("/searches", json={"almanac": EXAMPLE_TEXT.replace("55 13", "55 0")})
        final = self._wait_for_completion(rv.get_json()["search_id"])
        self.assertEqual(final.get("error_stage"), "domain")

        rv = self.client.post("/searches", json={"almanac": EXAMPLE_TEXT, "target": "nowhere"})
        final = self._wait_for_completion(rv.get_json()["search_id"])
        self.assertEqual(final.get("error_stage"), "resolve")

    def test_404s(self):
        self.assertEqual(self.client.get("/searches/does-not-exist").status_code, 404)
        self.assertEqual(self.client.get("/searches/does-not-exist/artifacts/workers.csv").status_code, 404)

        rv = self.client.post("/searches", json={"almanac": EXAMPLE_TEXT, "part": 1})
        sid = rv.get_json()["search_id"]
        self._wait_for_completion(sid)
        self.assertEqual(self.client.get(f"/searches/{sid}/artifacts/missing.txt").status_code, 404)

    def test_openapi_endpoint(self):
        rv = self.client.get('/openapi.json')
        self.assertEqual(rv.status_code, 200)
        self.assertIn('/searches', rv.get_json().get('paths', {}))

    def test_job_worker_logs_its_id(self):
        with self.assertLogs("almanac.api.orchestrator", level="DEBUG") as logs:
            rv = self.client.post("/searches", json={"almanac": EXAMPLE_TEXT, "part": 1})
            sid = rv.get_json()["search_id"]
            self._wait_for_completion(sid)
        picked = [m for m in logs.output if f"picked up search {sid}" in m]
        self.assertEqual(len(picked), 1)
        self.assertRegex(picked[0], r"job worker \d+ picked up")


class TestSearchOptions(unittest.TestCase):
    def test_defaults(self):
        opts = search_options({"almanac": EXAMPLE_TEXT})
        self.assertEqual(opts, {"part": 2, "workers": None, "chunk_size": None, "origin": None, "target": None})

    def test_rejects_wrongly_typed_values(self):
        for payload in (
            {"almanac": "   "},
            {"almanac": EXAMPLE_TEXT, "part": True},
            {"almanac": EXAMPLE_TEXT, "part": "2"},
            {"almanac": EXAMPLE_TEXT, "workers": "3"},
            {"almanac": EXAMPLE_TEXT, "workers": True},
            {"almanac": EXAMPLE_TEXT, "chunk_size": -1},
            {"almanac": EXAMPLE_TEXT, "target": ""},
        ):
            with self.subTest(payload={k: v for k, v in payload.items() if k != "almanac"}):
                with self.assertRaises(ValueError):
                    search_options(payload)


class TestSearchRunEvents(unittest.TestCase):
    def setUp(self):
        self.run = SearchRun(id="s_test", almanac=EXAMPLE_TEXT)

    def test_events_since_returns_new_events_only(self):
        self.run.record("Parse", "Parsing almanac")
        self.run.record("Validate", "Validating route")
        events, finished = self.run.events_since(0, timeout=0)
        self.assertEqual([e["stage"] for e in events], ["Parse", "Validate"])
        self.assertFalse(finished)
        events, _ = self.run.events_since(1, timeout=0)
        self.assertEqual([e["stage"] for e in events], ["Validate"])

    def test_waiting_reader_wakes_on_record(self):
        threading.Timer(0.05, self.run.record, args=("Parse", "Parsing almanac")).start()
        events, _ = self.run.events_since(0, timeout=5.0)
        self.assertEqual([e["stage"] for e in events], ["Parse"])

    def test_finish_ends_the_stream(self):
        self.run.finish("completed", "Done", "Minimum 46")
        events, finished = self.run.events_since(0, timeout=0)
        self.assertTrue(finished)
        self.assertEqual(events[-1]["stage"], "Done")
        events, finished = self.run.events_since(len(events), timeout=5.0)
        self.assertEqual(events, [])
        self.assertTrue(finished)

    def test_progress_event_fields(self):
        self.run.record_progress(ProgressEvent(worker_id=3, elapsed=0.5, percent=100 / 3, index=1, length=3))
        ev = self.run.events[-1]
        self.assertEqual(ev["stage"], "Search")
        self.assertEqual(ev["worker_id"], 3)
        self.assertEqual(ev["percent"], 33.33)


class TestAPIGuards(unittest.TestCase):
    def setUp(self):
        app.testing = True
        app.config['API_KEY'] = None
        self.client = app.test_client()

    def tearDown(self):
        app.config['API_KEY'] = None

    def test_auth_api_key(self):
        app.config['API_KEY'] = 'secret'
        self.assertEqual(self.client.get('/searches/not-exist').status_code, 401)
        rv = self.client.get('/searches/not-exist', headers={'X-API-Key': 'secret'})
        self.assertEqual(rv.status_code, 404)
        # unprotected route
        self.assertEqual(self.client.get('/openapi.json').status_code, 200)

    def test_no_archive_download(self):
        self.assertEqual(self.client.get('/searches/does-not-exist/download.zip').status_code, 404)
        self.assertNotIn('/searches/{search_id}/download.zip', self.client.get('/openapi.json').get_json()['paths'])


if __name__ == '__main__':
    unittest.main()
