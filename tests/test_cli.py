import io
import json
import subprocess
import unittest
from contextlib import redirect_stdout
from unittest import mock

from harvest import cli
from harvest.core.errors import StoreUnavailable
from harvest.shards import find_shard


def completed(code):
    return subprocess.CompletedProcess(args=[], returncode=code)


class LaunchTests(unittest.TestCase):
    def test_each_shard_gets_its_roles(self):
        shard = find_shard("qa-testing")
        with mock.patch("harvest.cli.subprocess.run", return_value=completed(0)) as run:
            code = cli.run_shard(shard)
        self.assertEqual(code, 0)
        cmd = run.call_args.args[0]
        self.assertEqual(cmd[1:], ["-m", "harvest.cli", "once"])
        env = run.call_args.kwargs["env"]
        self.assertEqual(json.loads(env["ROLES"]), list(shard.roles))

    def test_failures_reported_and_launcher_exits_zero(self):
        def fake_run(cmd, env, check):
            return completed(1 if "Blockchain Engineer" in env["ROLES"] else 0)

        out = io.StringIO()
        with mock.patch("harvest.cli.subprocess.run", side_effect=fake_run), redirect_stdout(out):
            code = cli.main(["launch", "--shard", "emerging-tech", "--shard", "data-ai", "--max-parallel", "2"])
        self.assertEqual(code, 0)
        text = out.getvalue()
        self.assertIn("[FAILED] emerging-tech", text)
        self.assertIn("[SUCCESS] data-ai", text)
        self.assertIn("Total: 2 | Success: 1 | Failed: 1", text)

    def test_spawn_error_counts_as_failure(self):
        with mock.patch("harvest.cli.subprocess.run", side_effect=OSError("no python")), redirect_stdout(io.StringIO()):
            results = cli.launch([find_shard("data-ai")])
        self.assertEqual(results, {"data-ai": False})

    def test_dedup_flag_forwarded_before_subcommand(self):
        with mock.patch("harvest.cli.subprocess.run", return_value=completed(0)) as run, \
                redirect_stdout(io.StringIO()):
            cli.main(["--dedup", "per-source", "launch", "--shard", "data-ai"])
        self.assertEqual(run.call_args.args[0][1:], ["-m", "harvest.cli", "--dedup", "per-source", "once"])

    def test_unknown_shard_is_an_error(self):
        self.assertEqual(cli.main(["launch", "--shard", "nope"]), 1)


class CommandTests(unittest.TestCase):
    def test_store_unavailable_exits_nonzero(self):
        with mock.patch("harvest.cli.connect_store", side_effect=StoreUnavailable("down")):
            self.assertEqual(cli.main(["init-db"]), 1)

    def test_suggest(self):
        out = io.StringIO()
        with redirect_stdout(out):
            self.assertEqual(cli.main(["suggest", "devops"]), 0)
        self.assertEqual(out.getvalue().splitlines(), ["DevOps Engineer"])

    def test_once_and_enqueue_share_request_building(self):
        args = cli.build_parser().parse_args(["once", "--roles", "AI Engineer,QA Engineer", "--experiences", "senior"])
        requests = cli._requests(args)
        self.assertEqual([(r.role, r.experience) for r in requests],
                         [("AI Engineer", "Senior Level"), ("QA Engineer", "Senior Level")])

    def test_stats(self):
        out = io.StringIO()
        with mock.patch.dict("os.environ", {"HARVEST_DATABASE_URL": "sqlite:///:memory:"}), redirect_stdout(out):
            self.assertEqual(cli.main(["stats"]), 0)
        self.assertIn("Total records: 0", out.getvalue())


if __name__ == "__main__":
    unittest.main()
