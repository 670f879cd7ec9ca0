import argparse
import sys

from .config import HOST, PORT, REDIRECTS, SRC, ConfigError, ServerConfig
from .server import run
from .services.assets import AssetsService
from .services.responder import Responder
from .utils.logging import Logger, error


def main(args: list[str] | None = None) -> None:
	parser = argparse.ArgumentParser(
		prog="webserve",
		description="Serves the files of a directory over HTTP, with optional redirects",
		formatter_class=argparse.ArgumentDefaultsHelpFormatter,  # Shows default values in help
	)
	parser.add_argument(
		"-s",
		"--src",
		default=SRC,
		help="Directory to serve the files from",
	)
	parser.add_argument(
		"-r",
		"--redirects",
		default=REDIRECTS,
		help="CSV file of 'code,path,location' redirects",
	)
	parser.add_argument(
		"-H",
		"--host",
		default=HOST,
		help="Address to listen on",
	)
	parser.add_argument(
		"-p",
		"--port",
		type=int,
		default=PORT,
		help="Port to listen on",
	)
	options = parser.parse_args(args=args)
	config = ServerConfig(
		src=options.src,
		redirects=options.redirects,
		host=options.host,
		port=options.port,
	)
	try:
		run(
			Responder(config, log=Logger("webserve")),
			AssetsService(),
			host=config.host,
			port=config.port,
		)
	except ConfigError as e:
		error(e.message, "CONFIG", Path=e.path)
		sys.exit(1)


if __name__ == "__main__":
	main()

# EOF
