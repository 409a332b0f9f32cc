from __future__ import annotations

"""
Command line entrypoint of `interview-matrix`.

Each subcommand is an action object (see `interview_matrix.actions`). This
module only wires them into argparse, resolves the project configuration for
actions that need one and turns the known failure types into exit codes.
"""

import argparse
import logging
import sys
from dotenv import load_dotenv

from interview_matrix.actions.analyze import AnalyzeAction
from interview_matrix.actions.base import Action
from interview_matrix.actions.clean import CleanAction
from interview_matrix.actions.segment import SegmentAction
from interview_matrix.actions.template import TemplateAction
from interview_matrix.config import ConfigError, InterviewConfig, find_config_path, load_config
from interview_matrix.errors import PipelineError
from interview_matrix.logging_config import setup_logging
from interview_matrix.retry import FatalCallError, RetryExhaustedError

EXIT_OK = 0
EXIT_RUN_FAILED = 1
EXIT_USAGE = 2

# Failures of the analysis run itself, as opposed to a bad project setup.
RUN_FAILURES = (PipelineError, RetryExhaustedError, FatalCallError)

ACTIONS: tuple[type[Action], ...] = (TemplateAction, SegmentAction, AnalyzeAction, CleanAction)


def build_parser() -> argparse.ArgumentParser:
	"""
	Build the argument parser with one subparser per action.

	Actions with `requires_config` share the `--config` option through a
	parent parser.
	"""
	parser = argparse.ArgumentParser(
		prog="interview-matrix",
		description=(
			"Extract the best-supported quote, summary and theme per discussion guide "
			"question and respondent from interview transcripts."
		),
	)
	parser.add_argument(
		"--verbose",
		"-v",
		action="store_true",
		help="Log debug messages. Otherwise the level comes from LOG_LEVEL (default INFO).",
	)

	config_option = argparse.ArgumentParser(add_help=False)
	config_option.add_argument(
		"--config",
		"-c",
		metavar="PATH",
		help="Project file. Defaults to ./interviews.yaml.",
	)

	subparsers = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)

	for action_cls in ACTIONS:
		action = action_cls()
		sub = subparsers.add_parser(
			action.name,
			help=action.help,
			parents=[config_option] if action.requires_config else [],
		)
		action.add_arguments(sub)
		sub.set_defaults(_action=action)

	return parser


def _project_config(action: Action, args: argparse.Namespace) -> InterviewConfig | None:
	if not action.requires_config:
		return None
	return load_config(find_config_path(args.config))


def main(argv: list[str] | None = None) -> int:
	"""
	Parse the command line and run the selected action.

	Args:
		argv:
			Arguments without the program name. Defaults to `sys.argv[1:]`.

	Returns:
		`0` on success, `1` when the analysis run failed and `2` for
		configuration or usage errors.
	"""
	load_dotenv()

	args = build_parser().parse_args(argv)
	setup_logging(logging.DEBUG if args.verbose else None)

	action: Action = args._action

	try:
		action.run(args, _project_config(action, args))
	except ConfigError as exc:
		print(f"error: {exc}", file=sys.stderr)
		return EXIT_USAGE
	except RUN_FAILURES as exc:
		print(f"analysis failed: {exc}", file=sys.stderr)
		return EXIT_RUN_FAILED

	return EXIT_OK


if __name__ == "__main__":
	raise SystemExit(main())
