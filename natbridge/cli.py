"""
Command line entry point.
"""

import argparse
import sys

from . import __version__
from .config import load_settings
from .doctor import BridgeDoctor
from .errors import NatBridgeError
from .gateway import LinuxGateway
from .output import Colors, ColorManager, StatusPrinter, setup_logging
from .registry import RuleRegistry


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='natbridge',
        description="Diagnose and repair NAT forwarding through a secondary Linux bridge",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                         # Diagnose, fix and verify
  %(prog)s --check-only            # Diagnose and report only
  %(prog)s --skip-rule mac         # Skip a rule module
  %(prog)s --config natbridge.yaml # Use a custom configuration file
        """
    )

    parser.add_argument(
        '--config',
        help='Path to configuration YAML file'
    )

    parser.add_argument(
        '--check-only',
        action='store_true',
        help='Report issues without backing up or changing anything'
    )

    parser.add_argument(
        '--skip-rule',
        action='append',
        dest='skip_rules',
        help='Skip a rule module (can be used multiple times)'
    )

    parser.add_argument(
        '--list-rules',
        action='store_true',
        help='List available rule modules'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    parser.add_argument(
        '--no-color',
        action='store_true',
        help='Disable colored output'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'natbridge v{__version__}'
    )

    return parser


def main(argv=None, gateway=None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)

    logger = setup_logging(args.verbose)
    color_manager = ColorManager()
    if args.no_color:
        color_manager.set_colors_enabled(False)
    printer = StatusPrinter(logger, color_manager)

    if args.list_rules:
        registry = RuleRegistry(logger)
        registry.load_rules()
        print(color_manager.color(Colors.BOLD, "Available rules:"))
        for name in registry.get_available_rules():
            print(f"  {name}")
        return 0

    gateway = gateway or LinuxGateway(logger)
    if not gateway.is_root():
        printer.error("natbridge must be run as root (try: sudo natbridge)")
        return 1

    try:
        settings = load_settings(args.config, logger)
        for rule in args.skip_rules or []:
            settings.disabled_rules.append(rule)

        doctor = BridgeDoctor(settings, gateway, printer, logger=logger)
        report = doctor.run(check_only=args.check_only)
        doctor.print_summary(report)

    except KeyboardInterrupt:
        print(f"\n{color_manager.color(Colors.YELLOW, 'Operation cancelled by user')}")
        return 1
    except NatBridgeError as e:
        printer.error(str(e))
        return 1
    except Exception as e:
        printer.error(f"Error: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
