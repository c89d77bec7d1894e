import unittest
from almanac.exports.reports import summary_md
from almanac.exports.writers import write_workers
from almanac.search.worker import WorkerResult


class TestExports(unittest.TestCase):
    def setUp(self):
        self.results = [
            WorkerResult(worker_id=0, range=(55, 68), minimum=56, elapsed=0.25),
            WorkerResult(worker_id=1, range=(79, 93), minimum=46, elapsed=0.5),
        ]

    def test_workers_csv(self):
        lines = write_workers(self.results).splitlines()
        self.assertEqual(lines[0], "worker_id,range_start,range_end,values,minimum,elapsed_sec")
        self.assertEqual(lines[1], "0,55,68,13,56,0.25")
        self.assertEqual(len(lines), 3)

    def test_summary_md(self):
        md = summary_md({"minimum": 46, "part": 2}, self.results)
        self.assertTrue(md.startswith("# Search Summary"))
        self.assertIn("- minimum: 46", md)
        self.assertIn("worker #1 on [79, 93)", md)
        self.assertIn("- slowest: 0.500s", md)

    def test_summary_without_workers(self):
        md = summary_md({"minimum": 35})
        self.assertNotIn("## Workers", md)


if __name__ == "__main__":
    unittest.main()
