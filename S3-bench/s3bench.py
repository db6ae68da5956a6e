import os
import sys
import logging
import argparse
import asyncio

from botocore.exceptions import BotoCoreError, ClientError

# Required: Use uvloop for better performance
import uvloop
asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())

# Add the current directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from common.errors import TransportAbort
from configuration import (
    BenchmarkConfig, parse_size,
    S3_ENDPOINT, AWS_REGION,
    BUCKET_NAME, PATTERN_BUCKET_NAME,
    DEFAULT_DURATION_SECONDS, DEFAULT_THREADS, DEFAULT_LOOPS, DEFAULT_OBJECT_SIZE,
    DEFAULT_SEED, DEFAULT_DELTA_SECONDS, DEFAULT_FOLDER_CAPACITY,
    DEFAULT_OUTPUT_DIR, DEFAULT_METRICS_PORT,
)

# Set up logging (only if not already configured)
if not logging.root.handlers:
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


class SimpleS3BenchmarkCLI:
    """Simple CLI interface for the S3 benchmark."""

    def __init__(self):
        self.parser = self._create_parser()

    def _add_common_arguments(self, parser, default_bucket):
        parser.add_argument('-u', '--endpoint', type=str, default=None,
                            help=f'Service endpoint URL (default: {S3_ENDPOINT})')
        parser.add_argument('-a', '--access-key', type=str, default=None,
                            help='Access key (default: $AWS_ACCESS_KEY_ID)')
        parser.add_argument('-s', '--secret-key', type=str, default=None,
                            help='Secret key (default: $AWS_SECRET_ACCESS_KEY)')
        parser.add_argument('-b', '--bucket', type=str, default=default_bucket,
                            help=f'Bucket for testing (default: {default_bucket})')
        parser.add_argument('-r', '--region', type=str, default=AWS_REGION,
                            help=f'Region for testing (default: {AWS_REGION})')
        parser.add_argument('-d', '--duration', type=float, default=DEFAULT_DURATION_SECONDS,
                            help=f'Duration of each test in seconds (default: {DEFAULT_DURATION_SECONDS})')
        parser.add_argument('-t', '--threads', type=int, default=DEFAULT_THREADS,
                            help=f'Number of workers per operation (default: {DEFAULT_THREADS})')
        parser.add_argument('--output-dir', type=str, default=DEFAULT_OUTPUT_DIR,
                            help=f'Directory for Parquet results (default: {DEFAULT_OUTPUT_DIR})')
        parser.add_argument('--no-save', action='store_true',
                            help='Do not write a Parquet results file')
        parser.add_argument('--debug', action='store_true', help='Enable debug logging')

    def _create_parser(self):
        """Create the main argument parser."""
        parser = argparse.ArgumentParser(
            description='S3 Benchmark CLI',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # PUT/GET/LIST/DELETE phases, 8 workers, 1 MiB objects, 30 seconds each
  python s3bench.py run -u http://localhost:9000 -b bench -t 8 -z 1M -d 30

  # Backup pattern with 4 lanes, 10s stagger between streams
  python s3bench.py pattern -u http://localhost:9000 -t 4 -d 60 --delta 10 --seed 42
            """
        )

        subparsers = parser.add_subparsers(dest='command', help='Available commands')

        run_parser = subparsers.add_parser('run', help='Sequential PUT/GET/LIST/DELETE benchmark')
        self._add_common_arguments(run_parser, BUCKET_NAME)
        run_parser.add_argument('-l', '--loops', type=int, default=DEFAULT_LOOPS,
                                help=f'Number of times to repeat the test (default: {DEFAULT_LOOPS})')
        run_parser.add_argument('-z', '--size', type=str, default=DEFAULT_OBJECT_SIZE,
                                help=f'Object size, e.g. 512K, 1M, 4MiB (default: {DEFAULT_OBJECT_SIZE})')

        pattern_parser = subparsers.add_parser('pattern', help='Staggered backup-pattern benchmark')
        self._add_common_arguments(pattern_parser, PATTERN_BUCKET_NAME)
        pattern_parser.add_argument('--seed', type=int, default=DEFAULT_SEED,
                                    help=f'Initial seed for key generation (default: {DEFAULT_SEED})')
        pattern_parser.add_argument('--delta', type=float, default=DEFAULT_DELTA_SECONDS,
                                    help=f'Delay between PUT, GET, LIST and DELETE streams (default: {DEFAULT_DELTA_SECONDS})')
        for n in (1, 2, 3):
            pattern_parser.add_argument(f'--f{n}', type=int, default=DEFAULT_FOLDER_CAPACITY,
                                        help=f'Maximum entries per level-{n} folder (default: {DEFAULT_FOLDER_CAPACITY})')
        pattern_parser.add_argument('--metrics-port', type=int, default=DEFAULT_METRICS_PORT,
                                    help='Expose live counters to Prometheus on this port (0 = disabled)')

        return parser

    def build_config(self, args) -> BenchmarkConfig:
        """Turn parsed arguments into a validated BenchmarkConfig."""
        values = dict(
            endpoint=args.endpoint,
            access_key=args.access_key,
            secret_key=args.secret_key,
            bucket=args.bucket,
            region=args.region,
            threads=args.threads,
            duration_seconds=args.duration,
        )
        if args.command == 'run':
            values.update(loops=args.loops, object_size=parse_size(args.size))
        else:
            values.update(
                seed=args.seed,
                delta_seconds=args.delta,
                max_folder1=args.f1,
                max_folder2=args.f2,
                max_folder3=args.f3,
            )
        return BenchmarkConfig.from_env(**values).validate()

    async def run_benchmark(self, config, args):
        """Run the sequential benchmark."""
        from cli.benchmark import BenchmarkRunner

        runner = BenchmarkRunner(config, None if args.no_save else args.output_dir)
        await runner.run_benchmark()
        logger.info("Benchmark completed successfully")
        return 0

    async def run_pattern(self, config, args):
        """Run the staggered backup-pattern benchmark."""
        from cli.pattern import PatternRunner

        runner = PatternRunner(config, None if args.no_save else args.output_dir,
                               metrics_port=args.metrics_port)
        await runner.run_pattern()
        logger.info("Pattern benchmark completed successfully")
        return 0

    def run(self, args=None):
        """Run the CLI with the given arguments."""
        if args is None:
            args = sys.argv[1:]

        parsed_args = self.parser.parse_args(args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        if parsed_args.debug:
            logging.getLogger().setLevel(logging.DEBUG)

        try:
            config = self.build_config(parsed_args)
            logger.info(
                f"Parameters: url={config.endpoint}, bucket={config.bucket}, region={config.region}, "
                f"duration={config.duration_seconds}, threads={config.threads}"
            )
            if parsed_args.command == 'run':
                return asyncio.run(self.run_benchmark(config, parsed_args))
            elif parsed_args.command == 'pattern':
                return asyncio.run(self.run_pattern(config, parsed_args))
            else:
                logger.error(f"Unknown command: {parsed_args.command}")
                return 1
        except ValueError as e:
            logger.error(f"Invalid configuration: {e}")
            return 1
        except TransportAbort as e:
            logger.error(f"Benchmark aborted: {e}")
            return 1
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Storage request failed: {e}")
            return 1
        except KeyboardInterrupt:
            logger.info("Interrupted by user")
            return 1


def main():
    """Main entry point."""
    cli = SimpleS3BenchmarkCLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
