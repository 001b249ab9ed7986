"""Command line interface: scoring manifests, listing checks and printing the version."""

from __future__ import annotations

import argparse
import csv
import os
import sys
from collections.abc import Callable, Container, Iterable, Mapping
from typing import Any

from kubescore import apps
from kubescore.checks import Checks
from kubescore.config import Configuration, InvalidSemverError, parse_semver
from kubescore.domain import (
    Grade,
    ScoredObject,
    TestScore,
    any_below_or_equal_to_grade,
)
from kubescore.objects import KubeObject
from kubescore.parser import NamedSource, ParsedObjects, ParseError, Parser
from kubescore.renderers.ci import render_ci
from kubescore.renderers.human import render_human
from kubescore.renderers.json_v2 import _marshal_indent, render_json
from kubescore.renderers.sarif_output import render_sarif

VERSION = "development"
COMMIT = "N/A"
BUILD_DATE = "N/A"

OUTPUT_FORMATS = ("human", "json", "ci", "sarif")
COLOR_CHOICES = ("auto", "always", "never")

IGNORE_ANNOTATION = "kube-score/ignore"
ENABLE_ANNOTATION = "kube-score/enable"

DEFAULT_TERMINAL_WIDTH = 80


class CommandLineError(Exception):
    """Raised when the command line cannot be acted upon."""


class _FlagError(Exception):
    """Raised when flags cannot be parsed."""


class _FlagParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise _FlagError(message)


def _base_name(path: str) -> str:
    if not path:
        return "."
    stripped = path.rstrip("/")
    if not stripped:
        return "/"
    return stripped.rsplit("/", 1)[-1]


def exec_name(arg0: str) -> str:
    """The name to show in help texts, ``kubectl score`` when run as a plugin."""
    name = _base_name(arg0)
    if name.startswith("kubectl-"):
        name = name.replace("kubectl-", "kubectl ", 1)
    return name


def is_kubectl_plugin(help_name: str) -> bool:
    """True when running as the ``kubectl score`` plugin."""
    return exec_name(help_name) == "kubectl score"


def parse_command(args: list[str], commands: Container[str]) -> tuple[str, int]:
    """Pick the command to run and the index where its arguments begin.

    An empty command means that no known command was given.
    """
    help_name = exec_name(args[0])
    command, offset = "", 0

    # As a kubectl plugin "kubectl score" means "kubectl score score".
    if is_kubectl_plugin(help_name):
        command, offset = "score", 1

    if len(args) <= offset:
        raise CommandLineError("No command, flag or file")

    if len(args) > 1 and args[1] in commands:
        command, offset = args[1], 2
    return command, offset


def version_string() -> str:
    """The version line printed by the ``version`` command."""
    return f"kube-score version: {VERSION}, commit: {COMMIT}, built: {BUILD_DATE}"


def usage(bin_name: str, action_name: str, display_for_more_info: bool) -> str:
    """The usage text shown for ``help`` and for ``--help`` of an action."""
    text = (
        f"Usage of {bin_name}:\n"
        f"{bin_name} [action] --flags\n"
        "\n"
        "Actions:\n"
        "\tscore\tChecks all files in the input, and gives them a score and recommendations\n"
        "\tlist\tPrints a CSV list of all available score checks\n"
        "\tversion\tPrint the version of kube-score\n"
        "\thelp\tPrint this message\n"
        "\n"
    )
    if display_for_more_info:
        text += (
            f'Run "{bin_name} [action] --help" for more information about a particular command'
        )
    if action_name:
        text += f"Flags for {action_name}:"
    return text


def get_output_version(flag_value: str, output_format: str) -> str:
    """The explicit output version, or the default one for ``output_format``."""
    if flag_value:
        return flag_value
    return "v2" if output_format == "json" else "v1"


def use_color(color_arg: str) -> bool:
    """Decide whether output should be colored."""
    if color_arg == "always":
        return True
    if color_arg == "never":
        return False
    if "GITHUB_ACTIONS" in os.environ:
        return True
    if "NO_COLOR" in os.environ:
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    isatty = getattr(sys.stdout, "isatty", None)
    try:
        return bool(isatty and isatty())
    except ValueError:
        return False


# --- flags -------------------------------------------------------------------


def _score_flags(bin_name: str) -> _FlagParser:
    parser = _FlagParser(
        prog=bin_name, add_help=False, allow_abbrev=False, usage=argparse.SUPPRESS
    )
    parser.add_argument(
        "--exit-one-on-warning", action="store_true",
        help="Exit with code 1 in case of warnings",
    )
    parser.add_argument(
        "--ignore-container-cpu-limit", action="store_true",
        help="Disables the requirement of setting a container CPU limit",
    )
    parser.add_argument(
        "--ignore-container-memory-limit", action="store_true",
        help="Disables the requirement of setting a container memory limit",
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="Enable verbose output, can be set multiple times for increased verbosity.",
    )
    parser.add_argument("--help", action="store_true", help="Print help")
    parser.add_argument(
        "-o", "--output-format", default="human",
        help="Set to 'human', 'json', 'ci' or 'sarif'. If set to ci, kube-score will output "
        "the program in a format that is easier to parse by other programs. Sarif output "
        "allows for easier integration with CI platforms.",
    )
    parser.add_argument(
        "--output-version", default="",
        help="Changes the version of the --output-format. The 'json' format has version 'v2' "
        "(default) and 'v1' (deprecated). The 'human' and 'ci' formats has only version 'v1' "
        "(default). If not explicitly set, the default version for that particular output "
        "format will be used.",
    )
    parser.add_argument(
        "--color", default="auto",
        help="If the output should be colored. Set to 'always', 'never' or 'auto'.",
    )
    parser.add_argument(
        "--enable-optional-test", action="append", default=[],
        help="Enable an optional test, can be set multiple times",
    )
    parser.add_argument(
        "--ignore-test", action="append", default=[],
        help="Disable a test, can be set multiple times",
    )
    parser.add_argument(
        "--disable-ignore-checks-annotations", action="store_true",
        help="Set to true to disable the effect of the 'kube-score/ignore' annotations",
    )
    parser.add_argument(
        "--disable-optional-checks-annotations", action="store_true",
        help="Set to true to disable the effect of the 'kube-score/enable' annotations",
    )
    parser.add_argument(
        "--all-default-optional", action="store_true",
        help="Set to true to enable all tests",
    )
    parser.add_argument(
        "--kubernetes-version", default="v1.18",
        help="Setting the kubernetes-version will affect the checks ran against the manifests. "
        "Set this to the version of Kubernetes that you're using in production for the best "
        "results.",
    )
    parser.add_argument("files", nargs="*")
    return parser


def _print_action_help(parser: argparse.ArgumentParser, bin_name: str, action: str) -> None:
    print(usage(bin_name, action, False))
    print(parser.format_help(), end="")


def _split_list(values: Iterable[str]) -> list[str]:
    return [item for value in values for item in value.split(",") if item]


# --- scoring -----------------------------------------------------------------


def _all_checks(config: Configuration) -> Checks:
    checks = Checks(config)
    apps.register(checks, [], [])
    return checks


def _annotation_ids(annotations: Mapping[str, str], key: str) -> set[str]:
    return {part.strip() for part in annotations.get(key, "").split(",") if part.strip()}


def _object_key(obj: KubeObject) -> str:
    type_meta, meta = obj.type_meta(), obj.object_meta()
    return f"{type_meta.api_version}/{type_meta.kind}/{meta.namespace}/{meta.name}"


def _score(parsed: ParsedObjects, config: Configuration) -> dict[str, ScoredObject]:
    checks = Checks(config)
    apps.register(checks, parsed.horizontal_pod_autoscalers, parsed.services)
    scorecard: dict[str, ScoredObject] = {}

    targets = (("Deployment", parsed.deployments), ("StatefulSet", parsed.statefulsets))
    for target_type, objects in targets:
        registered = checks.for_target(target_type)
        for obj in objects:
            annotations = obj.object_meta().annotations
            ignored = (
                _annotation_ids(annotations, IGNORE_ANNOTATION)
                if config.use_ignore_checks_annotation
                else set()
            )
            enabled = set(config.enabled_optional_tests)
            if config.use_optional_checks_annotation:
                enabled |= _annotation_ids(annotations, ENABLE_ANNOTATION)

            results: list[TestScore] = []
            for check_id, entry in registered.items():
                if check_id in ignored or (entry.check.optional and check_id not in enabled):
                    results.append(TestScore(check=entry.check, skipped=True))
                    continue
                result = entry(obj)
                result.check = entry.check
                results.append(result)

            scorecard[_object_key(obj)] = ScoredObject(
                type_meta=obj.type_meta(),
                object_meta=obj.object_meta(),
                file_location=obj.location,
                checks=results,
            )
    return scorecard


def _render_json_v1(scorecard: Mapping[str, ScoredObject]) -> str:
    def score_dict(score: TestScore) -> dict[str, Any]:
        comments = [
            {
                "Path": c.path,
                "Summary": c.summary,
                "Description": c.description,
                "DocumentationURL": c.documentation_url,
            }
            for c in score.comments
        ]
        return {
            "Check": {
                "Name": score.check.name,
                "ID": score.check.id,
                "TargetType": score.check.target_type,
                "Comment": score.check.comment,
                "Optional": score.check.optional,
            },
            "Grade": int(score.grade),
            "Skipped": score.skipped,
            "Comments": comments or None,
        }

    data = {
        key: {
            "TypeMeta": scored.type_meta.to_dict(),
            "ObjectMeta": scored.object_meta.to_dict(),
            "FileLocation": {
                "Name": scored.file_location.name,
                "Line": scored.file_location.line,
            },
            "Checks": [score_dict(c) for c in scored.checks] or None,
        }
        for key, scored in sorted(scorecard.items())
    }
    return _marshal_indent(data)


def _terminal_width() -> int:
    try:
        return os.get_terminal_size(sys.stdin.fileno()).columns
    except (OSError, ValueError, AttributeError):
        return DEFAULT_TERMINAL_WIDTH


def _read_inputs(files: list[str]) -> list[NamedSource]:
    sources = []
    for file in files:
        if file == "-":
            sources.append(NamedSource(name="STDIN", content=sys.stdin.read()))
            continue
        try:
            with open(file, "rb") as handle:
                content = handle.read()
        except OSError as exc:
            raise CommandLineError(str(exc)) from exc
        sources.append(NamedSource(name=os.path.abspath(file), content=content))
    return sources


def _score_files(bin_name: str, args: list[str]) -> int:
    parser = _score_flags(bin_name)
    try:
        opts = parser.parse_args(args)
    except _FlagError as exc:
        print(exc, file=sys.stderr)
        _print_action_help(parser, bin_name, "score")
        return 2

    if opts.help:
        _print_action_help(parser, bin_name, "score")
        return 0

    if opts.output_format not in OUTPUT_FORMATS:
        _print_action_help(parser, bin_name, "score")
        raise CommandLineError(
            "Error: --output-format must be set to: 'human', 'json', 'sarif' or 'ci'"
        )

    if opts.color not in COLOR_CHOICES:
        _print_action_help(parser, bin_name, "score")
        raise CommandLineError("Error: --color must be set to: 'auto', 'always' or 'never'")

    if not opts.files:
        raise CommandLineError(
            "Error: No files given as arguments.\n\n"
            f"Usage: {exec_name(bin_name)} score [--flag1 --flag2] file1 file2 ...\n\n"
            'Use "-" as filename to read from STDIN.'
        )

    sources = _read_inputs(opts.files)

    ignore_tests = _split_list(opts.ignore_test)
    optional_tests = _split_list(opts.enable_optional_test)

    if ignore_tests and opts.all_default_optional:
        raise CommandLineError(
            "Invalid argument combination. --all-default-optional and --ignore-tests cannot "
            "be used together"
        )

    if opts.all_default_optional:
        optional_tests = [c.id for c in _all_checks(Configuration()).all() if c.optional]

    try:
        kubernetes_version = parse_semver(opts.kubernetes_version)
    except InvalidSemverError as exc:
        raise CommandLineError('Invalid --kubernetes-version. Use on format "vN.NN"') from exc

    config = Configuration(
        all_files=sources,
        verbose_output=opts.verbose,
        ignore_container_cpu_limit_requirement=opts.ignore_container_cpu_limit,
        ignore_container_memory_limit_requirement=opts.ignore_container_memory_limit,
        ignored_tests=set(ignore_tests),
        enabled_optional_tests=set(optional_tests),
        use_ignore_checks_annotation=not opts.disable_ignore_checks_annotations,
        use_optional_checks_annotation=not opts.disable_optional_checks_annotations,
        kubernetes_version=kubernetes_version,
    )

    try:
        parsed = Parser().parse_files(config)
    except ParseError as exc:
        raise CommandLineError(f"failed to parse files: {exc}") from exc

    scorecard = _score(parsed, config)

    if any_below_or_equal_to_grade(scorecard, Grade.CRITICAL):
        exit_code = 1
    elif opts.exit_one_on_warning and any_below_or_equal_to_grade(scorecard, Grade.WARNING):
        exit_code = 1
    else:
        exit_code = 0

    output_format = opts.output_format
    version = get_output_version(opts.output_version, output_format)
    renderers: dict[tuple[str, str], Callable[[], str]] = {
        ("json", "v1"): lambda: _render_json_v1(scorecard),
        ("json", "v2"): lambda: render_json(scorecard),
        ("human", "v1"): lambda: render_human(
            scorecard, opts.verbose, _terminal_width(), use_color(opts.color)
        ),
        ("ci", "v1"): lambda: render_ci(scorecard),
    }
    if output_format == "sarif":
        output = render_sarif(scorecard)
    else:
        renderer = renderers.get((output_format, version))
        if renderer is None:
            raise CommandLineError("error: Unknown --output-format or --output-version")
        output = renderer()

    sys.stdout.write(output)
    sys.stdout.flush()
    return exit_code


def _list_checks(bin_name: str, args: list[str]) -> int:
    parser = _FlagParser(
        prog=bin_name, add_help=False, allow_abbrev=False, usage=argparse.SUPPRESS
    )
    parser.add_argument("--help", action="store_true", help="Print help")
    try:
        opts = parser.parse_args(args)
    except _FlagError as exc:
        print(exc, file=sys.stderr)
        _print_action_help(parser, bin_name, "list")
        return 2

    if opts.help:
        _print_action_help(parser, bin_name, "list")
        return 0

    writer = csv.writer(sys.stdout, lineterminator="\n")
    for check in _all_checks(Configuration()).all():
        writer.writerow(
            [
                check.id,
                check.target_type,
                check.comment,
                "optional" if check.optional else "default",
            ]
        )
    sys.stdout.flush()
    return 0


# --- commands ----------------------------------------------------------------


def _score_command(help_name: str, args: list[str]) -> int:
    try:
        return _score_files(help_name, args)
    except CommandLineError as exc:
        print(f"Failed to score files: {exc}", file=sys.stderr)
        return 1


def _list_command(help_name: str, args: list[str]) -> int:
    try:
        return _list_checks(help_name, args)
    except CommandLineError as exc:
        print(f"Failed to list checks: {exc}", file=sys.stderr)
        return 1


def _version_command(help_name: str, args: list[str]) -> int:
    print(version_string())
    return 0


def _help_command(help_name: str, args: list[str]) -> int:
    print(usage(help_name, "", True))
    return 1


_COMMANDS: dict[str, Callable[[str, list[str]], int]] = {
    "score": _score_command,
    "list": _list_command,
    "version": _version_command,
    "help": _help_command,
}


def main(argv: list[str] | None = None) -> int:
    """Run the command line; ``argv`` excludes the program name."""
    program = sys.argv[0] if sys.argv and sys.argv[0] else "kube-score"
    args = [program, *(sys.argv[1:] if argv is None else argv)]
    help_name = exec_name(args[0])

    try:
        command, offset = parse_command(args, _COMMANDS)
    except CommandLineError:
        print(usage(help_name, "", True))
        return 1

    handler = _COMMANDS.get(command, _help_command)
    return handler(help_name, args[offset:])


if __name__ == "__main__":
    sys.exit(main())