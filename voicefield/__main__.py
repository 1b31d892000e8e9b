import argparse
import logging
import typing

import voicefield.config
import voicefield.engine
import voicefield.pieces
import voicefield.scheduler


logger = logging.getLogger(__name__)


def parse_args (argv: typing.Optional[typing.Sequence[str]] = None) -> argparse.Namespace:

	parser = argparse.ArgumentParser(prog="voicefield", description="Play a voicefield piece.")

	parser.add_argument("piece", choices=sorted(voicefield.pieces.PIECES), help="Piece to play")
	parser.add_argument("--config", default="config.yaml", help="YAML configuration file (default: config.yaml)")
	parser.add_argument("--render", type=float, metavar="SECONDS", help="Render SECONDS on a virtual clock instead of playing in real time")
	parser.add_argument("--record", metavar="FILE", help="Record the MIDI output to a standard MIDI file")
	parser.add_argument("--seed", type=int, help="Seed every random decision")
	parser.add_argument("--verbose", "-v", action="store_true", help="Log every step at debug level")

	return parser.parse_args(argv)


def main (argv: typing.Optional[typing.Sequence[str]] = None) -> None:

	"""
	Main entry point for the voicefield command.
	"""

	args = parse_args(argv)

	logging.basicConfig(
		level = logging.DEBUG if args.verbose else logging.INFO,
		format = "%(asctime)s %(levelname)s %(name)s: %(message)s"
	)

	config = voicefield.config.load_config(args.config)

	if args.seed is not None:
		config.seed = args.seed

	if args.record:
		config.record = args.record

	clock: typing.Optional[voicefield.scheduler.Clock] = None

	if args.render is not None:
		clock = voicefield.scheduler.VirtualClock()

	engine = voicefield.engine.Engine(config, clock=clock)
	voicefield.pieces.build(args.piece, engine)

	logger.info(f"Voicefield: {args.piece}")

	if args.render is not None:
		engine.render(args.render)
		engine.finish()
		return

	engine.play()


if __name__ == "__main__":
	main()
