import argparse
import sys
import os
from logging import DEBUG, INFO
from typing import Optional, List

from libimpact.code_map.parsers import init_tree_sitter
from libimpact.common.config import Config
from libimpact.common.util import init_logger
from libimpact.workflow.controller import ConvergenceController
from libimpact.workflow.model import RunResult, TestRunSummary
from libimpact.workflow.working_copy import MavenProject

EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_PARTIAL = 2


class ArgParser(argparse.ArgumentParser):

    def __init__(self, add_subparsers=True, **kwargs):
        super().__init__(description='Repairs a Maven project after removing a dependency', **kwargs)
        self.subparsers = None

        if add_subparsers:
            # Common arguments
            self.add_argument('-v', '--verbose', action='count', default=0, help='Verbose logging')
            self.add_argument('-c', '--config', default='', help='Path to a configuration file (TOML)')
            self.add_argument('-p', '--project', default='', help='Maven project directory [current directory]')
            self.add_argument('-m', '--max-iterations', type=int, default=None, help='Maximum number of compile and repair iterations per phase [20]')

            # Subcommands
            self.subparsers = self.add_subparsers(dest='command', help='Subcommand')
            self.subparsers.required = True

            self.subparsers.add_parser('clean', help='Remove the code which does not compile anymore, then run the tests', add_subparsers=False)
            self.subparsers.add_parser('test', help='Run the tests and summarize the results', add_subparsers=False)

    def format_help(self):
        subcommand_helps = [super().format_help()]

        if self.subparsers:
            for name, subparser in self.subparsers.choices.items():
                subcommand_helps.append(f"{subparser.format_usage()[len('usage: '):].strip().replace('[-h] ', '', 1)}")
                subcommand_helps.append('  ' + subparser.format_help().partition('show this help message and exit\n')[2].strip())
                subcommand_helps.append('')

        return '\n'.join(subcommand_helps)


def load_config(args: argparse.Namespace) -> Config:
    config = Config()

    config_path = args.config
    if config_path:
        if not os.path.exists(config_path):
            raise IOError(f'Missing configuration file: {config_path}')
        config = Config.load(config_path)

    project_dir = args.project or config.PROJECT_DIR or '.'

    project_config_path = os.path.join(project_dir, config.REPORT_DIR, 'config.toml')
    if os.path.exists(project_config_path):
        project_config = Config.load(project_config_path)
        config = config.with_overrides(**project_config.model_dump(exclude_unset=True))

    return config.with_overrides(
        PROJECT_DIR=project_dir,
        MAX_ITERATIONS=args.max_iterations,
        VERBOSE=True if args.verbose else None,
    )


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = ArgParser()
    args = parser.parse_args(argv)

    command = args.command
    if command not in COMMANDS:
        print(f'Unknown command: {command}', file=sys.stderr)
        return EXIT_ERROR

    try:
        config = load_config(args)
    except (IOError, ValueError) as e:
        print(f'Invalid configuration: {e}', file=sys.stderr)
        return EXIT_ERROR

    if not os.path.isdir(config.project_dir):
        print(f'The path "{config.project_dir}" is not a valid directory.', file=sys.stderr)
        return EXIT_ERROR

    if not os.path.isfile(os.path.join(config.project_dir, 'pom.xml')):
        print(f'The directory "{config.project_dir}" is not a Maven project, missing pom.xml', file=sys.stderr)
        return EXIT_ERROR

    init_logger(loglevel=DEBUG if config.VERBOSE else INFO)

    print(f'Project directory: {config.project_dir}')

    build = MavenProject(config)
    return COMMANDS[command](config, build)


def command_clean(config: Config, build: MavenProject) -> int:
    init_tree_sitter()

    controller = ConvergenceController(config, build)
    result = controller.run()
    print_result(result)

    return EXIT_SUCCESS if result.success else EXIT_PARTIAL


def command_test(config: Config, build: MavenProject) -> int:
    controller = ConvergenceController(config, build)
    summary, duration = controller.run_tests()
    if summary is None:
        print('Failed to run the tests', file=sys.stderr)
        return EXIT_ERROR

    print_test_summary(summary)
    print(f'Test duration: {duration:.1f}s')
    return EXIT_SUCCESS if not summary.failed_tests else EXIT_PARTIAL


def print_result(result: RunResult):
    print(f'Production code: {result.main_phase.status} in {result.main_phase.iterations} iteration(s)')
    print(f'Test code: {result.test_phase.status} in {result.test_phase.iterations} iteration(s)')

    for title, metrics in (('Production', result.main), ('Test', result.test)):
        print(
            f'{title} files modified: {len(metrics.modified_files)}/{metrics.total_files} ({metrics.file_modification_rate:.1f}%), '
            f'lines deleted: {metrics.deleted_lines}/{metrics.total_lines} ({metrics.line_deletion_rate:.1f}%), '
            f'elements deleted: {metrics.deleted_elements}'
        )

    if result.test_summary is not None:
        print_test_summary(result.test_summary)

    print(f'Total duration: {result.total_duration:.1f}s')
    print('Done' if result.success else 'Done, but the project does not build yet')


def print_test_summary(summary: TestRunSummary):
    print(
        f'Tests: {summary.total_tests}, passed: {summary.passed_tests}, failed: {summary.failed_tests}, '
        f'errors: {summary.error_tests}, skipped: {summary.skipped_tests}'
    )
    for name in summary.library_removal_failure_names:
        print(f'  Disabled: {name}')
    for name in summary.failing_method_names:
        print(f'  Failed: {name}')
    for name in summary.error_method_names:
        print(f'  Error: {name}')


COMMANDS = {
    'clean': command_clean,
    'test': command_test,
}


def run():
    sys.exit(main())


if __name__ == '__main__':
    run()
