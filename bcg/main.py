#!/usr/bin/env python3
"""
bcg - BGP policy compiler

Usage examples:
bcg -c /etc/bcg/config.yml generate
bcg -c config.yml generate --dry-run
bcg -c config.yml check --resolve
bcg -c config.yml explain FOO 192.0.2.0/24 --as-path "65510 65510" --community 65535:0
"""

import argparse
import logging
import sys
from typing import List, Tuple

from bcg import __version__
from bcg.config.validator import is_valid_prefix
from bcg.models import normalize_name
from bcg.pipeline.workflow import BCGPipeline, PipelineConfig
from bcg.policy import PolicyEvaluator, Route
from bcg.utils.config import get_config_manager
from bcg.utils.error_handling import (
    ConfigurationError, ErrorFormatter, ErrorSeverity, handle_errors,
    print_error, print_success, print_warning,
)
from bcg.utils.exit_codes import BCGExitCodes, describe_exit_code
from bcg.utils.logging import setup_logging
from bcg.utils.timeout_config import timeout_manager

DEFAULT_CONFIG = "/etc/bcg/config.yml"


def setup_app_logging(verbose: bool = False, quiet: bool = False):
    """Configure logging for the application"""
    if quiet:
        level = 'WARNING'
    elif verbose:
        level = 'DEBUG'
    else:
        level = 'INFO'
    setup_logging(level=level, console_colors=sys.stderr.isatty())


def _load_settings(args):
    """Load application settings and attach file logging if configured"""
    manager = get_config_manager(args.settings)
    settings = manager.get_config()

    for issue in manager.validate_config():
        print_warning(f"Settings: {issue}")
    logging.getLogger('bcg.main').debug(f"Timeouts: {timeout_manager.get_all_timeouts()}")

    if settings.logging.log_to_file and settings.logging.log_file:
        level = 'WARNING' if args.quiet else 'DEBUG' if args.verbose else settings.logging.level
        setup_logging(level=level, log_to_file=True, log_file=settings.logging.log_file,
                      console_colors=sys.stderr.isatty())
    return settings


def _pipeline(args, settings, **overrides) -> BCGPipeline:
    config = PipelineConfig(config_path=args.config, **overrides)
    return BCGPipeline(config, settings=settings)


@handle_errors('bcg.generate')
def cmd_generate(args):
    """Compile the configuration, write artifacts and reconfigure the daemon"""
    settings = _load_settings(args)
    pipeline = _pipeline(
        args, settings,
        output_directory=args.output_dir,
        control_socket=args.socket,
        workers=args.workers,
        dry_run=args.dry_run,
        configure_daemon=not args.no_configure,
    )
    result = pipeline.run()

    for warning in result.warnings:
        print_warning(warning)

    if result.output_files:
        action = "Would write" if args.dry_run else "Wrote"
        print(f"{action} {len(result.output_files)} artifacts to {pipeline.output_directory}")
        for name in result.output_files:
            print(f"  {name}")
    for name in result.removed_files:
        print(f"  removed {name}")

    print_success(f"Compiled {result.peers_compiled} peers in {result.execution_time:.2f}s"
                  + (", daemon reconfigured" if result.reconfigured else ""))
    return BCGExitCodes.SUCCESS


@handle_errors('bcg.check')
def cmd_check(args):
    """Load and validate the configuration, optionally enriching and compiling it"""
    settings = _load_settings(args)
    pipeline = _pipeline(args, settings, workers=args.workers)

    if not args.resolve:
        config = pipeline.load()
        print_success(f"{args.config}: AS{config.asn}, {len(config.peers)} peers")
        return BCGExitCodes.SUCCESS

    model = pipeline.prepare()
    for peer in model.peers.values():
        classes = ", ".join(f"v{f}: {'filtered' if on else 'open'}"
                            for f, on in sorted(peer.prefix_filtering.items()))
        print(f"  {peer.name} AS{peer.peer.asn} {peer.peer.type} ({peer.policy_class}; {classes})")
        for warning in peer.warnings:
            print_warning(f"[{peer.name}] {warning}")
    print_success(f"{args.config}: {len(model.peers)} peers compiled")
    return BCGExitCodes.SUCCESS


def parse_community_args(values: List[str], parts: int) -> List[Tuple[int, ...]]:
    """Parse colon separated community arguments into integer tuples"""
    communities = []
    for value in values or []:
        fields = value.split(":")
        if len(fields) != parts or not all(f.isdigit() for f in fields):
            raise ConfigurationError(f"Invalid community '{value}'",
                                     guidance=f"Expected {parts} colon separated numbers")
        communities.append(tuple(int(f) for f in fields))
    return communities


@handle_errors('bcg.explain')
def cmd_explain(args):
    """Evaluate a route against one peer's compiled program"""
    settings = _load_settings(args)
    pipeline = _pipeline(args, settings)
    model = pipeline.prepare()

    wanted = normalize_name(args.peer)
    compiled = next((p for p in model.peers.values()
                     if p.peer.key == args.peer or p.name == wanted), None)
    if compiled is None:
        print_error(f"No peer named {args.peer}",
                    guidance=f"Known peers: {', '.join(sorted(model.peers))}")
        return BCGExitCodes.INVALID_USAGE

    if not is_valid_prefix(args.prefix):
        print_error(f"Invalid prefix '{args.prefix}'", guidance="Use network/length, e.g. 192.0.2.0/24")
        return BCGExitCodes.INVALID_USAGE

    try:
        as_path = tuple(int(asn) for asn in args.as_path.split()) if args.as_path else ()
    except ValueError:
        print_error(f"Invalid AS path '{args.as_path}'", guidance="Use space separated ASNs")
        return BCGExitCodes.INVALID_USAGE

    route = Route(
        prefix=args.prefix,
        as_path=as_path,
        communities=frozenset(parse_community_args(args.community, 2)),
        large_communities=frozenset(parse_community_args(args.large_community, 3)),
        next_hop=args.next_hop,
        neighbor=args.neighbor,
    )
    programs = compiled.export_programs if args.export else compiled.import_programs
    program = programs[6 if ":" in args.prefix else 4]

    evaluator = PolicyEvaluator(model.global_config.asn, rpki=pipeline.rpki_validator())
    decision = evaluator.evaluate(program, route)

    print(f"{program.name}: {route.prefix}")
    if decision.accepted:
        final = decision.route
        print_success(f"accepted at step {decision.step}")
        print(f"  as-path: {' '.join(str(a) for a in final.as_path) or '(empty)'}")
        print(f"  local-pref: {final.local_pref}")
        if final.next_hop:
            print(f"  next-hop: {final.next_hop}")
        for community in sorted(final.communities):
            print(f"  community: {community[0]}:{community[1]}")
        for community in sorted(final.large_communities):
            print(f"  large-community: {community[0]}:{community[1]}:{community[2]}")
    else:
        reason = decision.reason.value if decision.reason else "no accept step"
        print(ErrorFormatter.format_message(
            f"rejected ({reason})" + (f" at step {decision.step}" if decision.step is not None else ""),
            ErrorSeverity.ERROR))
    return BCGExitCodes.SUCCESS


def create_common_flags_parent(for_subcommand: bool = False):
    """
    Create a parent parser with common global flags

    Subcommand copies suppress their defaults so a flag given before the
    subcommand is not reset by the subparser.
    """
    parent_parser = argparse.ArgumentParser(add_help=False)

    def default(value):
        return argparse.SUPPRESS if for_subcommand else value

    verbose_group = parent_parser.add_mutually_exclusive_group()
    verbose_group.add_argument('-v', '--verbose', action='store_true', default=default(False),
                               help='Enable verbose logging')
    verbose_group.add_argument('-q', '--quiet', action='store_true', default=default(False),
                               help='Quiet mode (warnings only)')

    parent_parser.add_argument('-c', '--config', default=default(DEFAULT_CONFIG),
                               help=f'Peer configuration file (default: {DEFAULT_CONFIG})')
    parent_parser.add_argument('--settings', default=default(None),
                               help='Application settings JSON file')
    return parent_parser


def create_parser():
    """Create and configure argument parser"""
    common_flags_parent = create_common_flags_parent()
    subcommand_flags_parent = create_common_flags_parent(for_subcommand=True)

    parser = argparse.ArgumentParser(
        prog='bcg',
        description='bcg - BGP policy compiler',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
        parents=[common_flags_parent],
    )
    parser.add_argument('--version', action='version', version=f'bcg {__version__}')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    generate_parser = subparsers.add_parser('generate',
                                            help='Compile, write artifacts and reconfigure BIRD',
                                            parents=[subcommand_flags_parent])
    generate_parser.add_argument('--dry-run', action='store_true',
                                 help='Compile without writing artifacts or reconfiguring')
    generate_parser.add_argument('--no-configure', action='store_true',
                                 help="Write artifacts but don't reconfigure BIRD")
    generate_parser.add_argument('-o', '--output-dir', default=None,
                                 help='Artifact directory (default from settings)')
    generate_parser.add_argument('-s', '--socket', default=None,
                                 help='BIRD control socket (default from settings)')
    generate_parser.add_argument('-w', '--workers', type=int, default=None,
                                 help='Parallel peer enrichment workers')

    check_parser = subparsers.add_parser('check',
                                         help='Validate the configuration',
                                         parents=[subcommand_flags_parent])
    check_parser.add_argument('--resolve', action='store_true',
                              help='Also query PeeringDB and bgpq4 and compile')
    check_parser.add_argument('-w', '--workers', type=int, default=None,
                              help='Parallel peer enrichment workers')

    explain_parser = subparsers.add_parser('explain',
                                           help="Evaluate a route against a peer's filter",
                                           parents=[subcommand_flags_parent])
    explain_parser.add_argument('peer', help='Peer key or normalized name')
    explain_parser.add_argument('prefix', help='Route prefix, e.g. 192.0.2.0/24')
    explain_parser.add_argument('--as-path', default='',
                                help='Space separated AS path, neighbor first')
    explain_parser.add_argument('--community', action='append', default=[],
                                help='Standard community a:b (repeatable)')
    explain_parser.add_argument('--large-community', action='append', default=[],
                                help='Large community a:b:c (repeatable)')
    explain_parser.add_argument('--next-hop', default=None, help='Route next hop')
    explain_parser.add_argument('--neighbor', default=None,
                                help='Neighbor address the route was received from')
    explain_parser.add_argument('--export', action='store_true',
                                help='Evaluate the export program instead of import')

    return parser


def main(argv=None):
    """Main entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_app_logging(args.verbose, args.quiet)

    if not args.command:
        parser.print_help()
        return int(BCGExitCodes.INVALID_USAGE)

    command_functions = {
        'generate': cmd_generate,
        'check': cmd_check,
        'explain': cmd_explain,
    }

    exit_code = int(command_functions[args.command](args))
    logging.getLogger('bcg.main').debug(f"Exiting with {exit_code} ({describe_exit_code(exit_code)})")
    return exit_code


if __name__ == '__main__':
    sys.exit(main())
