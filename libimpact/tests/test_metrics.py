import os
import shutil
import tempfile
import unittest

from libimpact.code_map.model import ElementKind
from libimpact.repair.locator import ProjectIndex
from libimpact.repair.metrics import MetricsAccumulator
from libimpact.tests.data import create_project, CART_JAVA, CART_JAVA_REPAIRED, CART_TEST_JAVA
from libimpact.workflow.model import RepairOutcome, PhaseMetrics


class TestMetricsAccumulator(unittest.TestCase):

    def setUp(self):
        super().setUp()
        self.project_dir = tempfile.mkdtemp(prefix='libimpact-')
        self.paths = create_project(
            self.project_dir,
            main={'com/shop/Cart.java': CART_JAVA, 'com/shop/Order.java': 'class Order {}\n'},
            test={'com/shop/CartTest.java': CART_TEST_JAVA},
        )
        index = ProjectIndex(os.path.join(self.project_dir, 'src', 'main', 'java'), os.path.join(self.project_dir, 'src', 'test', 'java'))
        self.metrics = MetricsAccumulator(index, self.project_dir)

    def tearDown(self):
        shutil.rmtree(self.project_dir, ignore_errors=True)
        super().tearDown()

    def outcome(self, relpath: str, events, original: str = CART_JAVA, modified: str = CART_JAVA_REPAIRED) -> RepairOutcome:
        return RepairOutcome(path=self.paths[relpath], modified=True, original_text=original, modified_text=modified, events=events)

    def test_totals(self):
        main, test = self.metrics.snapshot()

        self.assertEqual(2, main.total_files)
        self.assertEqual(28, main.total_lines)
        self.assertEqual(1, test.total_files)
        self.assertEqual(28, test.total_lines)
        self.assertEqual(0.0, main.file_modification_rate)

    def test_record(self):
        metrics = self.metrics

        metrics.record(self.outcome('com/shop/Cart.java', [ElementKind.FIELD, ElementKind.RETURN_ADDED, ElementKind.FIELD]))
        metrics.record(self.outcome('com/shop/Cart.java', [ElementKind.IMPORT], original=CART_JAVA_REPAIRED, modified=CART_JAVA_REPAIRED + '\n'))
        metrics.record(self.outcome('com/shop/CartTest.java', [ElementKind.TEST_STUB], original=CART_TEST_JAVA, modified=CART_TEST_JAVA))
        metrics.record(RepairOutcome.unmodified(self.paths['com/shop/Order.java']))

        main, test = metrics.snapshot()

        self.assertEqual({'src/main/java/com/shop/Cart.java'}, main.modified_files)
        self.assertEqual(4, main.deleted_lines)
        self.assertEqual(4, main.deleted_elements)
        self.assertEqual({ElementKind.FIELD: 2, ElementKind.RETURN_ADDED: 1, ElementKind.IMPORT: 1}, main.deleted_elements_by_kind)
        self.assertEqual(main.deleted_elements, sum(main.deleted_elements_by_kind.values()))
        self.assertEqual([(ElementKind.FIELD, 2), (ElementKind.IMPORT, 1), (ElementKind.RETURN_ADDED, 1)], main.histogram)
        self.assertAlmostEqual(50.0, main.file_modification_rate)
        self.assertEqual(24, main.remaining_lines)

        self.assertEqual({'src/test/java/com/shop/CartTest.java'}, test.modified_files)
        self.assertEqual(0, test.deleted_lines)
        self.assertEqual({ElementKind.TEST_STUB: 1}, test.deleted_elements_by_kind)

    def test_snapshot_is_a_copy(self):
        main, _ = self.metrics.snapshot()
        main.modified_files.add('x')
        main.deleted_elements = 5

        main, _ = self.metrics.snapshot()
        self.assertEqual(set(), main.modified_files)
        self.assertEqual(0, main.deleted_elements)

    def test_empty_metrics(self):
        metrics = PhaseMetrics()
        self.assertEqual(0.0, metrics.file_modification_rate)
        self.assertEqual(0.0, metrics.line_deletion_rate)
        self.assertEqual([], metrics.histogram)
