"""
Entry point for the gpu-sensor-check CLI.

Usage:
    gpu-sensor-check -i 0                 Check the first GPU
    gpu-sensor-check -b 0000:01:00.0 -v   Check a GPU by PCI bus id
    gpu-sensor-check -i 0 -w 80,d,70      Override warning thresholds
    gpu-sensor-check --help               Show help message
    gpu-sensor-check --version            Show version and exit

Exit Codes:
    0 - OK
    1 - Warning
    2 - Critical
    3 - Unknown (usage, configuration or collection error)
"""

from __future__ import annotations

import argparse
import sys
from typing import TYPE_CHECKING, List, NoReturn, Optional

from gpu_sensor_check import __version__
from gpu_sensor_check.analysis.thresholds import (
    CRITICAL_SLOTS,
    DEFAULT_PLACEHOLDER,
    WARNING_SLOTS,
    ThresholdTable,
    parse_override_list,
)
from gpu_sensor_check.exceptions import ConfigurationError, ProbeError
from gpu_sensor_check.models.enums import Status

if TYPE_CHECKING:
    from gpu_sensor_check.config import ProbeSettings


class ProbeArgumentParser(argparse.ArgumentParser):
    """Argument parser reporting usage errors as configuration errors.

    argparse exits with 2 on errors, which a monitoring scheduler would
    read as Critical, and with 0 after --help or --version, read as OK.
    Both end the run as Unknown instead.
    """

    def error(self, message: str) -> NoReturn:
        raise ConfigurationError(message, hint=f"See '{self.prog} --help'.")

    def exit(self, status: int = 0, message: Optional[str] = None) -> NoReturn:
        if message:
            self._print_message(message, sys.stderr)
        sys.exit(Status.UNKNOWN.exit_code)


def build_parser() -> ProbeArgumentParser:
    """Build the command line parser."""
    parser = ProbeArgumentParser(
        prog="gpu-sensor-check",
        description="Check NVIDIA GPU sensors against warning and critical thresholds",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Exit Codes:
  0   OK
  1   Warning
  2   Critical
  3   Unknown (usage, configuration or collection error; also --help and --version)

Threshold positions:
  -w  {','.join(WARNING_SLOTS)}
  -c  {','.join(CRITICAL_SLOTS)}
  Use '{DEFAULT_PLACEHOLDER}' to keep the default of a position.

Environment Variables:
  GPU_SENSOR_CONFIG_PATH  Path to YAML configuration file
  GPU_SENSOR_LOG_LEVEL    Logging level on stderr: DEBUG, INFO, WARNING, ERROR
  GPU_SENSOR_LOG_FORMAT   Log format: json or text

Examples:
  # Check GPU 0 with detail output
  gpu-sensor-check -i 0 -vv

  # Raise the temperature warning level, keep the other defaults
  gpu-sensor-check -i 0 -w 90

  # Expect a PCIe gen 3 x16 link
  gpu-sensor-check -i 0 -c d,d,d,d,d,d,d,d,d,3,16
""",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument("-i", "--index", type=int, help="GPU index")
    parser.add_argument("-b", "--busid", help="GPU PCI bus id, e.g. 0000:01:00.0")
    parser.add_argument(
        "-T",
        "--sensors",
        action="append",
        default=[],
        help="Comma-separated sensor names to report as performance data (repeatable)",
    )
    parser.add_argument(
        "-w",
        "--warning",
        help=f"Comma-separated warning levels ({len(WARNING_SLOTS)} positions)",
    )
    parser.add_argument(
        "-c",
        "--critical",
        help=f"Comma-separated critical levels ({len(CRITICAL_SLOTS)} positions)",
    )
    parser.add_argument("--config", help="YAML file with threshold overrides by sensor name")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase output detail (up to -vvv)",
    )
    parser.add_argument(
        "--show-na",
        action="store_true",
        help="Include unavailable sensors in the detail output",
    )
    parser.add_argument("extra", nargs="*", help=argparse.SUPPRESS)
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse and validate command line arguments.

    Raises:
        ConfigurationError: On usage errors.
    """
    args = build_parser().parse_args(argv)

    if args.extra:
        raise ConfigurationError(f"Unused arguments: {' '.join(args.extra)}")
    if args.index is None and args.busid is None:
        raise ConfigurationError("No GPU selected", hint="Pass --index or --busid.")
    if args.index is not None and args.busid is not None:
        raise ConfigurationError("Pass only one of --index and --busid")

    args.verbose = min(args.verbose, 3)
    args.sensors = [
        name.strip()
        for value in args.sensors
        for name in value.split(",")
        if name.strip()
    ]
    return args


def build_thresholds(args: argparse.Namespace, settings: "ProbeSettings") -> ThresholdTable:
    """Build the threshold table of this run.

    Positional overrides are applied first, configuration overrides
    after them: the configuration file wins when both name a sensor.
    """
    thresholds = ThresholdTable.defaults()
    if args.warning:
        thresholds.apply_warning_overrides(
            parse_override_list(args.warning, WARNING_SLOTS, "--warning")
        )
    if args.critical:
        thresholds.apply_critical_overrides(
            parse_override_list(args.critical, CRITICAL_SLOTS, "--critical")
        )
    if settings.thresholds:
        thresholds.apply_mapping(settings.thresholds)
    return thresholds


def run_check(args: argparse.Namespace, settings: "ProbeSettings") -> Status:
    """Collect, evaluate and print the report for the selected GPU.

    Returns:
        Overall status of the device
    """
    from gpu_sensor_check.analysis import (
        ReportFormatter,
        SensorEvaluator,
        build_performance_record,
    )
    from gpu_sensor_check.nvml import NvmlSession

    thresholds = build_thresholds(args, settings)

    debug_info = None
    with NvmlSession() as nvml:
        handle = nvml.select_device(index=args.index, bus_id=args.busid)
        snapshot = nvml.collect_snapshot(handle)
        if args.verbose >= 3:
            debug_info = nvml.collect_debug_info(device_name=str(snapshot.get("productName")))

    record = build_performance_record(snapshot, args.sensors)
    result = SensorEvaluator(thresholds).evaluate(snapshot, record)

    formatter = ReportFormatter(verbosity=args.verbose, show_unavailable=args.show_na)
    print(formatter.format_report(snapshot, record, result, thresholds, debug_info))
    return result.status


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for gpu-sensor-check.

    Returns:
        Exit code (0=OK, 1=Warning, 2=Critical, 3=Unknown)
    """
    from gpu_sensor_check.config import load_config
    from gpu_sensor_check.logging import configure_logging, get_logger

    try:
        args = parse_args(argv)
        settings = load_config(args.config)
    except ConfigurationError as e:
        print(f"{Status.UNKNOWN.value} - {e}")
        return e.exit_code

    configure_logging(log_format=settings.log_format, log_level=settings.log_level)
    log = get_logger()

    try:
        return run_check(args, settings).exit_code
    except ProbeError as e:
        log.error("probe_failed", error=e.message, exit_code=e.exit_code)
        print(f"{Status.UNKNOWN.value} - {e}")
        return e.exit_code


if __name__ == "__main__":
    sys.exit(main())
