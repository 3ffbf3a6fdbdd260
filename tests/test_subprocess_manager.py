"""
Tests for managed subprocess execution
"""

import sys
import unittest

from bcg.utils.subprocess_manager import ProcessState, run_with_resource_management


class TestRunWithResourceManagement(unittest.TestCase):

    def test_completed(self):
        result = run_with_resource_management([sys.executable, "-c", "print('NN = [];')"], timeout=30)
        self.assertEqual(result.state, ProcessState.COMPLETED)
        self.assertEqual(result.returncode, 0)
        self.assertEqual(result.stdout.strip(), "NN = [];")

    def test_failed(self):
        result = run_with_resource_management(
            [sys.executable, "-c", "import sys; sys.stderr.write('no such as-set'); sys.exit(1)"],
            timeout=30,
        )
        self.assertEqual(result.state, ProcessState.FAILED)
        self.assertEqual(result.returncode, 1)
        self.assertIn("no such as-set", result.stderr)

    def test_timeout_reaps_child(self):
        result = run_with_resource_management(
            [sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.5)
        self.assertEqual(result.state, ProcessState.TIMEOUT)
        self.assertIn("timeout", result.error_message)

    def test_missing_executable(self):
        result = run_with_resource_management(["/nonexistent/bgpq4", "-Ab4", "AS-FOO"], timeout=5)
        self.assertEqual(result.state, ProcessState.FAILED)
        self.assertIn("Cannot execute /nonexistent/bgpq4", result.error_message)


if __name__ == '__main__':
    unittest.main()
