import argparse
import asyncio
import sys

from dotenv import load_dotenv

load_dotenv()

from greeter.config.config import ConfigSource, read_config_path
from greeter.config.logging_config import configure_logging
from greeter.db.pool import provision_pool
from greeter.db.seed import SchemaSeeder, SeedReport
from greeter.errors import BootstrapError
from greeter.server.bootstrap import Bootstrap
from greeter.server.listener import DEFAULT_PORT

_LOGGER = configure_logging()


def _print_seed_report(report: SeedReport) -> None:
	for outcome in report.outcomes:
		if outcome.ok:
			print(f"[ok]   rows={outcome.row_count}\t{outcome.statement}")
		else:
			print(f"[fail] {outcome.error}\t{outcome.statement}")
	print(f"Done. succeeded={len(report.succeeded)} failed={len(report.failed)}")


async def _serve(args: argparse.Namespace) -> int:
	bootstrap = Bootstrap(
		config_source=ConfigSource(args.config),
		seeder=SchemaSeeder(wait_for_completion=not args.unsafe_seeding),
		port=args.port,
	)
	signal = await bootstrap.start()
	try:
		await signal
	except BootstrapError as e:
		print(f"Startup failed: {e}", file=sys.stderr)
		await bootstrap.stop()
		return 1
	try:
		await bootstrap.listener.wait_closed()
	finally:
		await bootstrap.stop()
	return 0


async def _seed(args: argparse.Namespace) -> int:
	config = await ConfigSource(args.config).load()
	pool = provision_pool(config.datasource)
	try:
		report = await SchemaSeeder().seed(pool)
	finally:
		await pool.close()
	_print_seed_report(report)
	return 0 if not report.failed else 1


async def _check_config(args: argparse.Namespace) -> int:
	config = await ConfigSource(args.config).load()
	for key, value in config.datasource.masked().items():
		print(f"{key}\t{value}")
	return 0


def cmd_serve(args: argparse.Namespace) -> int:
	return asyncio.run(_serve(args))


def cmd_seed(args: argparse.Namespace) -> int:
	return asyncio.run(_seed(args))


def cmd_check_config(args: argparse.Namespace) -> int:
	return asyncio.run(_check_config(args))


def build_arg_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(description="Greeting HTTP service with a seeded movie database")
	sub = parser.add_subparsers(dest="command", required=True)

	def add_config_arg(p: argparse.ArgumentParser) -> None:
		p.add_argument("--config", default=read_config_path(), help="Path to the YAML config (default: application.yaml)")

	p_srv = sub.add_parser("serve", help="Load config, provision the pool, seed the schema and serve HTTP")
	add_config_arg(p_srv)
	p_srv.add_argument("--port", type=int, default=DEFAULT_PORT, help=f"Listening port (default: {DEFAULT_PORT})")
	p_srv.add_argument(
		"--unsafe-seeding",
		action="store_true",
		help="Release the seeding connection without waiting for statements (reproduces the old race)",
	)
	p_srv.set_defaults(func=cmd_serve)

	p_seed = sub.add_parser("seed", help="Run only the schema seeding and print each statement outcome")
	add_config_arg(p_seed)
	p_seed.set_defaults(func=cmd_seed)

	p_chk = sub.add_parser("check-config", help="Validate the config file and print the datasource")
	add_config_arg(p_chk)
	p_chk.set_defaults(func=cmd_check_config)
	return parser


def main() -> None:
	parser = build_arg_parser()
	args = parser.parse_args()
	try:
		code = args.func(args)
	except BootstrapError as e:
		print(f"Error: {e}", file=sys.stderr)
		sys.exit(1)
	except KeyboardInterrupt:
		code = 0
	sys.exit(code)


if __name__ == "__main__":
	main()
