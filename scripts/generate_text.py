#!/usr/bin/env python3
"""
Utility to generate large plain-text files for end-to-end upload runs.
The backend counts letter frequencies, so the output is random words.
"""
import argparse
import os
import random
import string
import sys
from typing import List


DEFAULT_WORDS: List[str] = [
	"alpha", "bravo", "charlie", "delta", "echo", "foxtrot", "golf", "hotel", "india",
	"juliett", "kilo", "lima", "mike", "november", "oscar", "papa", "quebec", "romeo",
	"sierra", "tango", "uniform", "victor", "whiskey", "xray", "yankee", "zulu"
]


def parse_args() -> argparse.Namespace:
	parser = argparse.ArgumentParser(
		description="Generate a text file of random words"
	)
	parser.add_argument(
		"-o", "--out",
		dest="output_path",
		help="Output file path",
		default="sample.txt"
	)
	parser.add_argument(
		"-s", "--size-mb",
		dest="size_mb",
		type=float,
		help="Approximate file size in megabytes",
		default=25.0
	)
	parser.add_argument(
		"--random-letters",
		dest="random_letters",
		action="store_true",
		help="Use random letter sequences instead of the word list"
	)
	parser.add_argument(
		"--seed",
		dest="seed",
		type=int,
		help="Random seed for reproducibility",
		default=None
	)
	return parser.parse_args()


def validate_args(args: argparse.Namespace) -> None:
	if args.size_mb < 0:
		raise ValueError("--size-mb must be >= 0")


def _next_word(rnd: random.Random, random_letters: bool) -> str:
	if random_letters:
		return "".join(rnd.choice(string.ascii_lowercase) for _ in range(rnd.randint(2, 10)))
	return rnd.choice(DEFAULT_WORDS)


def main() -> int:
	args = parse_args()
	try:
		validate_args(args)
	except ValueError as exc:
		print(f"Invalid arguments: {exc}", file=sys.stderr)
		return 2

	rnd = random.Random(args.seed)
	target = int(args.size_mb * 1024 * 1024)

	output_dir = os.path.dirname(os.path.abspath(args.output_path)) or "."
	os.makedirs(output_dir, exist_ok=True)

	written = 0
	with open(args.output_path, "w", encoding="utf-8") as fh:
		line: List[str] = []
		while written < target:
			word = _next_word(rnd, args.random_letters)
			line.append(word)
			if len(line) == 12:
				text = " ".join(line) + "\n"
				fh.write(text[: target - written])
				written += min(len(text), target - written)
				line = []

	print(f"Text generated: {args.output_path} ({written} bytes)")
	return 0


if __name__ == "__main__":
	sys.exit(main())
