"""
API Specs CLI

Command-line interface for running Postman collections and generating
API specifications from live responses.

Commands:
    validate    - Check that a collection can be loaded
    run         - Execute every request and summarize the results
    generate    - Execute the collection and write an OpenAPI or HAR document

Examples:
    # Validate a collection
    api-specs validate collection.json

    # Run against staging with an extra variable
    api-specs run collection.json --env staging.json --var token=abc123

    # Generate an OpenAPI spec
    api-specs generate collection.json --env staging.json -o openapi.yaml
"""

import argparse
import json
import logging
import sys
from typing import Dict, List, Optional

from . import __version__
from .collection import load_collection
from .errors import ApiSpecsError
from .orchestrator import SpecPipeline, save_file
from .export import HAREmitter
from .runner import ConfigError, RunConfig


def parse_variables(pairs: Optional[List[str]]) -> Dict[str, str]:
    """Parse KEY=VALUE pairs given with --var."""
    variables = {}
    for pair in pairs or []:
        if '=' not in pair:
            raise ConfigError(f"Invalid --var '{pair}' (expected KEY=VALUE)")
        key, value = pair.split('=', 1)
        variables[key.strip()] = value
    return variables


def build_config(args) -> RunConfig:
    """
    Build the run configuration from --config plus command-line overrides.

    Raises:
        ConfigError: If the config file or a flag value is invalid
    """
    config = RunConfig.from_yaml(args.config) if args.config else RunConfig()
    return config.with_overrides(
        timeout=args.timeout,
        concurrency=args.concurrency,
        follow_redirects=False if args.no_redirects else None,
        verify_ssl=False if args.no_verify_ssl else None,
        log_level=args.log_level,
        runtime_variables=parse_variables(args.variables)
    )


def cmd_validate(args) -> int:
    """
    Validate a collection and report warnings.

    Args:
        args: Parsed command-line arguments
    """
    print(f"✓ Collection Validation")
    print(f"   Collection: {args.collection}")

    try:
        validation = load_collection(args.collection)
    except ApiSpecsError as e:
        print(f"❌ {e}")
        return 1

    collection = validation.collection
    print(f"   Name: {collection.name}")
    print(f"   Requests: {collection.request_count}")
    print()

    if validation.warnings:
        print("⚠️  Warnings:")
        for warning in validation.warnings:
            print(f"   • {warning}")
        print()

    print("✅ Collection is valid")
    return 0


def cmd_run(args) -> int:
    """
    Run every request in a collection.

    Args:
        args: Parsed command-line arguments
    """
    config = build_config(args)
    pipeline = SpecPipeline(config)

    if not args.json:
        print(f"🚀 Collection Run")
        print(f"   Collection: {args.collection}")
        if args.env:
            print(f"   Environment: {args.env}")
        print()

    try:
        result = pipeline.run(args.collection, args.env)
    except ApiSpecsError as e:
        print(f"❌ {e}")
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(f"\n📊 Run Results:")
        print(f"   Total: {result.total_requests}")
        print(f"   Successful: {result.successful}")
        print(f"   Failed: {result.failed}")
        print(f"   Avg Response Time: {result.avg_duration_ms:.2f}ms")
        print(f"   Duration: {result.total_duration_sec:.2f}s")

        failures = [log for log in result.logs if not log.succeeded]
        if failures:
            print(f"\n❌ Failed requests:")
            for log in failures:
                print(f"   • {log.name}: {log.error}")

    if args.output:
        if args.output.endswith('.har'):
            content = HAREmitter(creator_version=__version__).render(result.logs)
        else:
            content = json.dumps([log.to_dict() for log in result.logs], indent=2)
        path = save_file(content, args.output)
        if not args.json:
            print(f"\n✅ Saved logs to {path}")

    return 1 if result.failed else 0


def cmd_generate(args) -> int:
    """
    Run a collection and write the generated document.

    Args:
        args: Parsed command-line arguments
    """
    config = build_config(args)
    pipeline = SpecPipeline(config)

    response = pipeline.generate(args.collection, args.env, output_format=args.format)

    if response.success and args.output:
        response.output_path = str(save_file(response.spec_content, args.output))

    if args.json:
        print(json.dumps(response.to_dict(), indent=2))
        return 0 if response.success else 1

    if not response.success:
        print(f"❌ {response.message}")
        return 1

    if response.output_path:
        print(f"✅ {response.message}")
        print(f"   Saved to {response.output_path}")
    else:
        print(response.spec_content)
    return 0


def add_run_arguments(parser: argparse.ArgumentParser):
    """Arguments shared by the run and generate commands."""
    parser.add_argument('collection', help='Postman collection JSON file (v2.0 or v2.1)')
    parser.add_argument('-e', '--env', help='Postman environment JSON file')
    parser.add_argument('--var', dest='variables', action='append', metavar='KEY=VALUE',
                        help='Runtime variable, overrides environment and collection (repeatable)')
    parser.add_argument('-c', '--config', help='YAML run configuration file')
    parser.add_argument('--timeout', type=float, help='Request timeout in seconds (default: 30)')
    parser.add_argument('-w', '--concurrency', type=int, help='Concurrent requests (default: 1)')
    parser.add_argument('--no-redirects', action='store_true', help='Do not follow redirects')
    parser.add_argument('--no-verify-ssl', action='store_true', help='Disable SSL verification')
    parser.add_argument('--json', action='store_true', help='Print the result as JSON')


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='api-specs',
        description="API Specs - Run Postman collections and generate OpenAPI specs from live responses",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate a collection
  %(prog)s validate collection.json

  # Run with an environment and save a HAR trace
  %(prog)s run collection.json --env staging.json -o run.har

  # Generate an OpenAPI spec
  %(prog)s generate collection.json --env staging.json -o openapi.yaml

  # Generate a HAR trace on stdout
  %(prog)s generate collection.json --format har
        """
    )
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    parser.add_argument('--log-level', choices=['debug', 'info', 'warning', 'error'],
                        help='Log level (default: info, or log_level from --config)')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # --- VALIDATE command ---
    validate_parser = subparsers.add_parser('validate', help='Validate a collection')
    validate_parser.add_argument('collection', help='Postman collection JSON file')

    # --- RUN command ---
    run_parser = subparsers.add_parser('run', help='Run every request in a collection')
    add_run_arguments(run_parser)
    run_parser.add_argument('-o', '--output', help='Save logs (.har for HAR, otherwise JSON)')

    # --- GENERATE command ---
    generate_parser = subparsers.add_parser('generate', help='Generate an OpenAPI spec or HAR trace')
    add_run_arguments(generate_parser)
    generate_parser.add_argument('-f', '--format', default='yaml',
                                 help='Output format: yaml (OpenAPI 3.0) or har (default: yaml)')
    generate_parser.add_argument('-o', '--output', help='Output file (default: stdout)')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, (args.log_level or 'info').upper()),
        format='%(levelname)s: %(message)s'
    )

    try:
        if args.command == 'validate':
            exit_code = cmd_validate(args)
        elif args.command == 'run':
            exit_code = cmd_run(args)
        elif args.command == 'generate':
            exit_code = cmd_generate(args)
        else:
            parser.print_help()
            exit_code = 1
    except ConfigError as e:
        print(f"❌ {e}")
        exit_code = 2
    except OSError as e:
        print(f"❌ Failed to write output: {e}")
        exit_code = 1
    except KeyboardInterrupt:
        print("\n\n👋 Interrupted")
        exit_code = 130

    sys.exit(exit_code)


if __name__ == '__main__':
    main()
