import os
from logging import getLogger
from typing import Dict, Optional, Tuple

from .model import Phase, PhaseStatus, PhaseOutcome, RunResult, TestRunSummary
from .working_copy import MavenProject, BuildOutput, BuildError
from ..common.config import Config
from ..common.util import timer, write_text_file, render_markdown_template
from ..repair.diagnostics import DiagnosticExtractor, parse_test_output
from ..repair.locator import ProjectIndex, LocationResolver
from ..repair.metrics import MetricsAccumulator
from ..repair.policy import NodeRepairPolicy

logger = getLogger(__name__)


class ConvergenceController:
    """Drives the compile, diagnose and repair cycle, first for production then for test code"""

    def __init__(self, config: Config, build: MavenProject, index: Optional[ProjectIndex] = None):
        self.config = config
        self.build = build

        self.index = ProjectIndex.from_config(config) if index is None else index
        self.resolver = LocationResolver(self.index)
        self.extractor = DiagnosticExtractor(
            self.resolver,
            extension=config.SOURCE_EXTENSION,
            non_error_prefixes=config.NON_ERROR_PREFIXES,
        )
        self.metrics = MetricsAccumulator(self.index, config.project_dir)
        self.policy = NodeRepairPolicy(config, self.index, self.metrics)

    def run(self) -> RunResult:
        stats: Dict[str, float] = {}
        with timer('Run completed', stats=stats, logger=logger):
            main_phase = self.run_phase(Phase.MAIN)
            test_phase = self.run_phase(Phase.TEST)

            success = main_phase.succeeded and test_phase.succeeded

            test_summary: Optional[TestRunSummary] = None
            test_duration = 0.0
            if success:
                test_summary, test_duration = self.run_tests()
            else:
                logger.warning(f'Not running the tests, production code: {main_phase.status}, test code: {test_phase.status}')

        main, test = self.metrics.snapshot()
        result = RunResult(
            success=success,
            main=main,
            test=test,
            main_phase=main_phase,
            test_phase=test_phase,
            test_summary=test_summary,
            test_duration=test_duration,
            total_duration=stats['duration'],
        )

        self.write_report(result)
        return result

    def run_phase(self, phase: Phase) -> PhaseOutcome:
        outcome = PhaseOutcome(phase=phase)

        stats: Dict[str, float] = {}
        with timer(f'{phase} phase finished', stats=stats, logger=logger):
            outcome.status, outcome.iterations, outcome.error = self.iterate(phase)
        outcome.duration = stats['duration']

        if outcome.succeeded:
            logger.info(f'{phase} phase succeeded after {outcome.iterations} iteration(s)')
        elif outcome.status == PhaseStatus.BUILD_FAILED:
            logger.error(f'{phase} phase failed: {outcome.error}')
        else:
            logger.warning(f'{phase} phase {outcome.status} after {outcome.iterations} iteration(s)')

        return outcome

    def iterate(self, phase: Phase) -> Tuple[PhaseStatus, int, Optional[str]]:
        iteration = 1
        while iteration <= self.config.MAX_ITERATIONS:
            logger.info(f'{phase} phase, iteration {iteration}: {phase.goal}')

            try:
                output = self.compile(phase)
            except BuildError as e:
                return PhaseStatus.BUILD_FAILED, iteration, str(e)

            records = self.extractor.extract(output.lines)
            if not records:
                # Nothing left to repair, errors in unknown files are out of reach
                if output.failed:
                    logger.warning(f'Build exited with code {output.exit_code}, but none of its errors could be mapped to source files')
                return PhaseStatus.SUCCEEDED, iteration, None

            logger.info(f'Errors in {len(records)} file(s), {sum(len(record.error_lines) for record in records.values())} line(s)')

            any_modified = False
            for record in records.values():
                if not os.path.isfile(record.file_path):
                    logger.warning(f'Skipping missing source file: {record.file_path}')
                    continue

                if self.policy.process(record):
                    any_modified = True

            if not any_modified:
                return PhaseStatus.STALLED, iteration, None

            iteration += 1

        return PhaseStatus.EXHAUSTED, self.config.MAX_ITERATIONS, None

    def compile(self, phase: Phase) -> BuildOutput:
        if phase == Phase.MAIN:
            return self.build.compile()
        return self.build.test_compile()

    def run_tests(self) -> Tuple[Optional[TestRunSummary], float]:
        stats: Dict[str, float] = {}
        with timer('Tests finished', stats=stats, logger=logger):
            try:
                output = self.build.test()
            except BuildError as e:
                logger.error(f'Failed to run the tests: {e}')
                output = None

        if output is None:
            return None, stats['duration']

        summary = parse_test_output(output.lines, self.config.LIBRARY_REMOVAL_MARKER)
        logger.info(
            f'Tests run: {summary.total_tests}, passed: {summary.passed_tests}, '
            f'failed: {summary.failed_tests} ({len(summary.library_removal_failure_names)} on removed dependency), '
            f'skipped: {summary.skipped_tests}'
        )
        return summary, stats['duration']

    def write_report(self, result: RunResult):
        report_dir = self.config.report_dir
        try:
            os.makedirs(report_dir, exist_ok=True)
            write_text_file(os.path.join(report_dir, 'result.json'), result.model_dump_json(indent=2))
            report = render_markdown_template('report.md', result=result, config=self.config)
            write_text_file(os.path.join(report_dir, 'report.md'), report)
        except OSError as e:
            logger.error(f'Failed to write the report into {report_dir}: [{e.__class__.__name__}] {e}')
            return

        logger.info(f'Report written to {report_dir}')
