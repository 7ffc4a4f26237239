import json
import os
import shutil
import tempfile
import unittest
from typing import List, Optional

from libimpact.common.config import Config
from libimpact.common.util import read_text_file, write_text_file, split_lines
from libimpact.tests.data import create_project, SERVICE_JAVA, CART_TEST_JAVA, SUREFIRE_OUTPUT
from libimpact.workflow.controller import ConvergenceController
from libimpact.workflow.model import Phase, PhaseStatus
from libimpact.workflow.working_copy import BuildOutput, BuildError


class FakeBuild:
    """Reports a compiler error at the first line of each watched file which contains the marker text"""

    def __init__(self, main: List[str], test: List[str], *, marker: str = 'lib.', errors_per_pass: int = 1):
        self.main = main
        self.test_sources = test
        self.marker = marker
        self.errors_per_pass = errors_per_pass
        self.calls: List[str] = []
        self.failure: Optional[Exception] = None
        self.failed_exit_code = 0
        self.test_output = SUREFIRE_OUTPUT

    def diagnose(self, paths: List[str]) -> BuildOutput:
        if self.failure is not None:
            raise self.failure

        lines = ['[INFO] Compiling sources']
        for path in paths:
            found = 0
            for lineno, line in enumerate(split_lines(read_text_file(path)), 1):
                if self.marker in line and found < self.errors_per_pass:
                    lines.append(f'[ERROR] {path}:[{lineno},9] cannot find symbol')
                    found += 1

        exit_code = 1 if len(lines) > 1 else self.failed_exit_code
        return BuildOutput(exit_code=exit_code, lines=lines)

    def compile(self) -> BuildOutput:
        self.calls.append('compile')
        return self.diagnose(self.main)

    def test_compile(self) -> BuildOutput:
        self.calls.append('test-compile')
        return self.diagnose(self.test_sources)

    def test(self) -> BuildOutput:
        self.calls.append('test')
        return BuildOutput(exit_code=1, lines=split_lines(self.test_output))


class TestConvergenceController(unittest.TestCase):

    def setUp(self):
        super().setUp()
        self.maxDiff = None
        self.project_dir = tempfile.mkdtemp(prefix='libimpact-')
        self.paths = create_project(
            self.project_dir,
            main={'com/shop/Service.java': SERVICE_JAVA},
            test={'com/shop/CartTest.java': CART_TEST_JAVA},
        )
        self.service_path = self.paths['com/shop/Service.java']
        self.test_path = self.paths['com/shop/CartTest.java']

    def tearDown(self):
        shutil.rmtree(self.project_dir, ignore_errors=True)
        super().tearDown()

    def controller(self, build: FakeBuild, max_iterations: int = 20) -> ConvergenceController:
        config = Config(PROJECT_DIR=self.project_dir, MAX_ITERATIONS=max_iterations)
        return ConvergenceController(config, build)

    def test_no_diagnostics(self):
        build = FakeBuild([], [])
        controller = self.controller(build)

        outcome = controller.run_phase(Phase.MAIN)

        self.assertEqual(PhaseStatus.SUCCEEDED, outcome.status)
        self.assertEqual(1, outcome.iterations)
        self.assertEqual(set(), controller.metrics.main.modified_files)
        self.assertEqual(['compile'], build.calls)

    def test_converges(self):
        build = FakeBuild([self.service_path], [])
        controller = self.controller(build)

        outcome = controller.run_phase(Phase.MAIN)

        self.assertEqual(PhaseStatus.SUCCEEDED, outcome.status)
        self.assertEqual(4, outcome.iterations)
        self.assertNotIn('lib.', read_text_file(self.service_path))
        self.assertEqual(3, controller.metrics.main.deleted_elements)
        self.assertEqual(3, controller.metrics.main.deleted_lines)

    def test_exhausted(self):
        build = FakeBuild([self.service_path], [])
        controller = self.controller(build, max_iterations=2)

        outcome = controller.run_phase(Phase.MAIN)

        self.assertEqual(PhaseStatus.EXHAUSTED, outcome.status)
        self.assertEqual(2, outcome.iterations)
        self.assertEqual(['compile', 'compile'], build.calls)
        self.assertIn('lib.third();', read_text_file(self.service_path))

    def test_stalled(self):
        # Reported at the package declaration, nothing can be removed there
        build = FakeBuild([self.service_path], [], marker='package ')
        controller = self.controller(build)

        outcome = controller.run_phase(Phase.MAIN)

        self.assertEqual(PhaseStatus.STALLED, outcome.status)
        self.assertEqual(1, outcome.iterations)
        self.assertEqual(SERVICE_JAVA, read_text_file(self.service_path))

    def test_build_error(self):
        build = FakeBuild([self.service_path], [])
        build.failure = BuildError('mvn not found')
        controller = self.controller(build)

        outcome = controller.run_phase(Phase.MAIN)

        self.assertEqual(PhaseStatus.BUILD_FAILED, outcome.status)
        self.assertEqual('mvn not found', outcome.error)

    def test_failure_without_diagnostics(self):
        build = FakeBuild([], [])
        build.failed_exit_code = 1
        controller = self.controller(build)

        with self.assertLogs('libimpact.workflow.controller', level='WARNING') as logs:
            outcome = controller.run_phase(Phase.TEST)

        self.assertEqual(PhaseStatus.SUCCEEDED, outcome.status)
        self.assertIsNone(outcome.error)
        self.assertEqual(1, outcome.iterations)
        self.assertEqual(['test-compile'], build.calls)
        self.assertIn('exited with code 1', '\n'.join(logs.output))

    def test_errors_in_unknown_files(self):
        generated_path = os.path.join(self.project_dir, 'target', 'generated-sources', 'Generated.java')
        os.makedirs(os.path.dirname(generated_path))
        write_text_file(generated_path, 'package gen;\n\nclass Generated extends lib.Base {\n}\n')

        build = FakeBuild([generated_path], [])
        controller = self.controller(build)

        outcome = controller.run_phase(Phase.MAIN)

        self.assertEqual(PhaseStatus.SUCCEEDED, outcome.status)
        self.assertEqual(['compile'], build.calls)
        self.assertEqual(set(), controller.metrics.main.modified_files)
        self.assertIn('lib.Base', read_text_file(generated_path))

    def test_run(self):
        build = FakeBuild([self.service_path], [], errors_per_pass=3)
        controller = self.controller(build)

        result = controller.run()

        self.assertTrue(result.success)
        self.assertEqual(PhaseStatus.SUCCEEDED, result.main_phase.status)
        self.assertEqual(PhaseStatus.SUCCEEDED, result.test_phase.status)
        self.assertEqual(['compile', 'compile', 'test-compile', 'test'], build.calls)
        self.assertEqual(result.main_phase.iterations + result.test_phase.iterations, result.iterations)

        self.assertEqual({'src/main/java/com/shop/Service.java'}, result.main.modified_files)
        self.assertEqual(3, result.main.deleted_elements)
        self.assertEqual(set(), result.test.modified_files)

        self.assertIsNotNone(result.test_summary)
        self.assertEqual(10, result.test_summary.total_tests)
        self.assertEqual(['com.shop.CartTest.testSize'], result.test_summary.library_removal_failure_names)

        report_dir = os.path.join(self.project_dir, '.libimpact')
        report = read_text_file(os.path.join(report_dir, 'report.md'))
        self.assertIn('Result: **SUCCESS**', report)
        self.assertIn('`src/main/java/com/shop/Service.java`', report)
        self.assertIn('| EXPRESSION_STATEMENT | 3 |', report)
        self.assertIn('- `com.shop.CartTest.testSize`', report)

        data = json.loads(read_text_file(os.path.join(report_dir, 'result.json')))
        self.assertTrue(data['success'])
        self.assertEqual(['src/main/java/com/shop/Service.java'], data['main']['modified_files'])
        self.assertEqual({'EXPRESSION_STATEMENT': 3}, data['main']['deleted_elements_by_kind'])

    def test_run_test_phase(self):
        build = FakeBuild([], [self.test_path], marker='LibAssert', errors_per_pass=3)
        controller = self.controller(build)

        result = controller.run()

        self.assertTrue(result.success)
        self.assertEqual(2, result.test_phase.iterations)
        self.assertEqual({'src/test/java/com/shop/CartTest.java'}, result.test.modified_files)

        text = read_text_file(self.test_path)
        self.assertNotIn('LibAssert', text)
        self.assertEqual(2, text.count('LIB-REMOVED'))

    def test_partial_run(self):
        build = FakeBuild([self.service_path], [], marker='package ')
        controller = self.controller(build)

        result = controller.run()

        self.assertFalse(result.success)
        self.assertEqual(PhaseStatus.STALLED, result.main_phase.status)
        self.assertEqual(PhaseStatus.SUCCEEDED, result.test_phase.status)
        self.assertIsNone(result.test_summary)
        self.assertNotIn('test', build.calls)

        report = read_text_file(os.path.join(self.project_dir, '.libimpact', 'report.md'))
        self.assertIn('Result: **PARTIAL**', report)
        self.assertIn('Tests were not run.', report)
